"""
Batch Composition Schemas

Draft state lives only in memory until commit: a ``BatchSession`` holds the
box pool and the draft batches, and is passed to each workflow step.
``CommitPayload`` is the wire format of the remote commit call.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
import enum
import uuid


def temp_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class SessionStep(str, enum.Enum):
    REVIEW = "review"
    DEFINITION = "definition"
    FINALIZE = "finalize"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


class DraftBox(BaseModel):
    temp_id: str = Field(default_factory=lambda: temp_id("box"))
    barcode: Optional[str] = None
    quantity: int = Field(1, ge=1)
    color: Optional[str] = None
    size: Optional[str] = None
    warehouse_id: Optional[str] = None
    location_id: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return bool(self.warehouse_id and self.location_id)

    class Config:
        validate_assignment = True


class DraftBatch(BaseModel):
    temp_id: str = Field(default_factory=lambda: temp_id("batch"))
    warehouse_id: str
    location_id: str
    boxes: List[DraftBox] = []

    @property
    def box_count(self) -> int:
        return len(self.boxes)

    @property
    def total_quantity(self) -> int:
        return sum(box.quantity for box in self.boxes)

    @property
    def barcodes(self) -> List[str]:
        return [box.barcode for box in self.boxes]


class CommitOutcome(BaseModel):
    """Terminal result of a submit, recorded on the session"""
    success: bool
    batch_ids: List[str] = []
    strategy: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


class BatchSession(BaseModel):
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    stock_in_id: str
    product_id: str
    product_name: str
    product_sku: str
    barcode_prefix: str
    requested_boxes: int
    source: Optional[str] = None
    notes: Optional[str] = None

    step: SessionStep = SessionStep.REVIEW
    boxes: List[DraftBox] = []  # Unallocated pool
    batches: List[DraftBatch] = []
    next_sequence: int = 1

    commit_in_flight: bool = False
    outcome: Optional[CommitOutcome] = None

    @property
    def allocated(self) -> int:
        return sum(batch.box_count for batch in self.batches)

    @property
    def remaining(self) -> int:
        return self.requested_boxes - self.allocated

    @property
    def is_terminal(self) -> bool:
        return self.step in (SessionStep.SUBMITTED, SessionStep.CANCELLED)


class BatchPreview(BaseModel):
    """Read projection of one draft batch on the finalize step"""
    batch_code: str
    warehouse_id: str
    location_id: str
    location_label: Optional[str] = None
    box_count: int
    total_quantity: int
    barcodes: List[str]


# ========== Remote commit wire format ==========

class CommitBox(BaseModel):
    barcode: str
    quantity: int = Field(..., ge=1)
    color: Optional[str] = None
    size: Optional[str] = None
    product_id: str


class CommitBatch(BaseModel):
    warehouse_id: str
    location_id: str
    boxes: List[CommitBox] = Field(..., min_length=1)


class CommitPayload(BaseModel):
    run_id: str
    stock_in_id: str
    user_id: str
    batches: List[CommitBatch] = Field(..., min_length=1)

    @property
    def total_boxes(self) -> int:
        return sum(len(batch.boxes) for batch in self.batches)


class CommitResponse(BaseModel):
    batch_ids: List[str]
