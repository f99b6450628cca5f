"""
Session Service - Staged batch composition workflow

    review -> definition -> finalize -> submitted
                 ^             |
                 +-------------+          (any non-terminal) -> cancelled

The ``BatchSession`` value object carries all draft state; each step takes it
explicitly and either mutates it or raises without touching it.
"""
from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Set
import logging

from pydantic import ValidationError as PydanticValidationError

from stockin.core.exceptions import SessionStateError, StockInError, ValidationError
from stockin.models import Product, StockIn, StockInStatus
from stockin.schemas.batch import (
    BatchPreview, BatchSession, CommitOutcome, DraftBatch, DraftBox, SessionStep,
)
from stockin.services.allocation_service import LocationAllocator, make_db_location_check
from stockin.services.barcode_service import (
    BarcodeGenerator, clean_token, derive_prefix, make_db_checker, session_claims,
)
from stockin.services.commit_service import CommitProcessor
from stockin.services.stock_in_service import ProgressCallback

logger = logging.getLogger(__name__)

_BOX_FIELDS = {"quantity", "color", "size", "warehouse_id", "location_id"}


def open_session(stock_in: StockIn, product: Product) -> BatchSession:
    """Start composing batches for a pending stock-in request"""
    if stock_in.status != StockInStatus.PENDING.value:
        raise ValidationError(f"Stock-in {stock_in.id} is {stock_in.status}, not pending", field="status")
    if stock_in.product_id != product.id:
        raise ValidationError("Product does not match stock-in request", field="product_id")

    session = BatchSession(
        stock_in_id=stock_in.id,
        product_id=product.id,
        product_name=product.name,
        product_sku=clean_token(product.sku) or clean_token(product.name)[:6],
        barcode_prefix=derive_prefix(product.category, product.name),
        requested_boxes=stock_in.boxes,
        source=stock_in.source,
        notes=stock_in.notes,
        boxes=[DraftBox() for _ in range(stock_in.boxes)],
    )
    logger.info(f"Opened session {session.run_id} for stock-in {stock_in.id} ({stock_in.boxes} boxes)")
    return session


def _require_step(session: BatchSession, *steps: SessionStep) -> None:
    if session.step not in steps:
        allowed = ", ".join(s.value for s in steps)
        raise SessionStateError(
            f"Expected step {allowed}, session is at {session.step.value}", session.step.value
        )


def _require_editable(session: BatchSession) -> None:
    if session.commit_in_flight:
        raise SessionStateError("A commit is in progress; the session is locked", session.step.value)
    _require_step(session, SessionStep.DEFINITION)


def _checked_box_fields(fields: dict) -> dict:
    """Validate box edits against DraftBox field types before touching the session"""
    try:
        candidate = DraftBox.model_validate(fields)
    except PydanticValidationError as e:
        error = e.errors()[0]
        name = ".".join(str(part) for part in error["loc"])
        raise ValidationError(f"Invalid {name}: {error['msg']}", field=name)
    return {name: getattr(candidate, name) for name in fields}


def _issued_barcodes(session: BatchSession) -> List[str]:
    codes = [box.barcode for batch in session.batches for box in batch.boxes if box.barcode]
    codes.extend(box.barcode for box in session.boxes if box.barcode)
    return codes


def _find_box(session: BatchSession, box_temp_id: str) -> DraftBox:
    for box in session.boxes:
        if box.temp_id == box_temp_id:
            return box
    for batch in session.batches:
        for box in batch.boxes:
            if box.temp_id == box_temp_id:
                raise ValidationError(
                    f"Box {box_temp_id} belongs to batch {batch.temp_id}; remove the batch first",
                    field="box_id",
                )
    raise ValidationError(f"Box {box_temp_id} not found", field="box_id")


class BatchSessionService:
    """Drives a BatchSession through its steps"""

    def __init__(self, allocator: LocationAllocator, processor: CommitProcessor):
        self.allocator = allocator
        self.processor = processor

    # ========== Navigation ==========

    @staticmethod
    def begin_definition(session: BatchSession) -> None:
        if session.commit_in_flight:
            raise SessionStateError("A commit is in progress", session.step.value)
        _require_step(session, SessionStep.REVIEW)
        session.step = SessionStep.DEFINITION

    @staticmethod
    def finalize(session: BatchSession) -> None:
        _require_editable(session)
        if session.remaining != 0:
            raise ValidationError(
                f"{session.remaining} boxes still unallocated", field="remaining"
            )
        session.step = SessionStep.FINALIZE

    @staticmethod
    def back(session: BatchSession) -> None:
        """One step backwards; allocated batches are kept"""
        if session.commit_in_flight:
            raise SessionStateError("A commit is in progress", session.step.value)
        if session.step == SessionStep.FINALIZE:
            session.step = SessionStep.DEFINITION
        elif session.step == SessionStep.DEFINITION:
            session.step = SessionStep.REVIEW
        else:
            raise SessionStateError(f"Cannot go back from {session.step.value}", session.step.value)

    def cancel(self, session: BatchSession) -> None:
        """Abandon the session; issued barcodes are released, nothing is persisted"""
        if session.commit_in_flight or session.is_terminal:
            raise SessionStateError(f"Cannot cancel at {session.step.value}", session.step.value)
        self.allocator.generator.release(_issued_barcodes(session))
        session.step = SessionStep.CANCELLED
        logger.info(f"Session {session.run_id} for stock-in {session.stock_in_id} cancelled")

    # ========== Definition step ==========

    async def allocate(
        self,
        session: BatchSession,
        warehouse_id: str,
        location_id: str,
        count: int,
        quantity_per_box: int = 1,
        color: Optional[str] = None,
        size: Optional[str] = None,
    ) -> DraftBatch:
        _require_editable(session)
        batch = await self.allocator.allocate(
            session, warehouse_id, location_id, count,
            quantity_per_box=quantity_per_box, color=color, size=size,
        )
        # Cancelled while barcodes were being issued
        if session.is_terminal:
            self.allocator.release_batch(session, batch.temp_id)
            raise SessionStateError("Session was cancelled during allocation", session.step.value)
        return batch

    def remove_batch(self, session: BatchSession, batch_temp_id: str) -> DraftBatch:
        _require_editable(session)
        return self.allocator.release_batch(session, batch_temp_id)

    @staticmethod
    def apply_defaults(
        session: BatchSession,
        warehouse_id: Optional[str] = None,
        location_id: Optional[str] = None,
        quantity: Optional[int] = None,
        color: Optional[str] = None,
        size: Optional[str] = None,
    ) -> int:
        """Fill blank fields of every unallocated box; returns boxes touched"""
        _require_editable(session)
        if quantity is not None:
            quantity = _checked_box_fields({"quantity": quantity})["quantity"]

        touched = 0
        for box in session.boxes:
            changed = False
            if warehouse_id and not box.warehouse_id:
                box.warehouse_id = warehouse_id
                changed = True
            if location_id and not box.location_id:
                box.location_id = location_id
                changed = True
            if quantity is not None and box.quantity != quantity:
                box.quantity = quantity
                changed = True
            if color and not box.color:
                box.color = color
                changed = True
            if size and not box.size:
                box.size = size
                changed = True
            touched += changed
        return touched

    @staticmethod
    def update_box(session: BatchSession, box_temp_id: str, **fields) -> DraftBox:
        """Edit one unallocated box (quantity, color, size, warehouse_id, location_id)"""
        _require_editable(session)
        unknown = set(fields) - _BOX_FIELDS
        if unknown:
            raise ValidationError(f"Unknown box fields: {sorted(unknown)}", field="box")
        fields = _checked_box_fields(fields)

        box = _find_box(session, box_temp_id)
        if "warehouse_id" in fields and fields["warehouse_id"] != box.warehouse_id and "location_id" not in fields:
            # A location only makes sense inside its warehouse
            box.location_id = None
        for name, value in fields.items():
            setattr(box, name, value)
        return box

    async def batches_from_boxes(self, session: BatchSession) -> List[DraftBatch]:
        _require_editable(session)
        batches = await self.allocator.batches_from_boxes(session)
        if session.is_terminal:
            for batch in batches:
                self.allocator.release_batch(session, batch.temp_id)
            raise SessionStateError("Session was cancelled during grouping", session.step.value)
        return batches

    # ========== Finalize step ==========

    @staticmethod
    def preview(session: BatchSession, location_labels: Optional[Dict[str, str]] = None) -> List[BatchPreview]:
        """Read-only summary per draft batch, labelled BATCH-001, BATCH-002, ..."""
        _require_step(session, SessionStep.FINALIZE, SessionStep.SUBMITTED)
        labels = location_labels or {}
        return [
            BatchPreview(
                batch_code=f"BATCH-{index:03d}",
                warehouse_id=batch.warehouse_id,
                location_id=batch.location_id,
                location_label=labels.get(batch.location_id),
                box_count=batch.box_count,
                total_quantity=batch.total_quantity,
                barcodes=batch.barcodes,
            )
            for index, batch in enumerate(session.batches, start=1)
        ]

    async def submit(
        self,
        session: BatchSession,
        user_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CommitOutcome:
        """
        Hand the finalized batches to the commit processor.

        The session ends in ``submitted`` whatever happens; commit errors are
        recorded on ``session.outcome`` rather than raised.
        """
        if session.commit_in_flight:
            raise SessionStateError("Submit already in progress", session.step.value)
        _require_step(session, SessionStep.FINALIZE)

        session.commit_in_flight = True
        try:
            result = await self.processor.commit(
                session.stock_in_id,
                user_id,
                session.run_id,
                session.batches,
                product_id=session.product_id,
                on_progress=on_progress,
            )
            session.outcome = CommitOutcome(
                success=True, batch_ids=result.batch_ids, strategy=result.strategy,
            )
        except StockInError as e:
            logger.error(f"Submit of session {session.run_id} failed: [{e.code}] {e.message}")
            session.outcome = CommitOutcome(success=False, error_code=e.code, error_message=e.message)
        except Exception as e:
            session.outcome = CommitOutcome(success=False, error_code="UNEXPECTED_ERROR", error_message=str(e))
            raise
        finally:
            # Committed codes are now visible to the persisted check
            self.allocator.generator.release(_issued_barcodes(session))
            session.commit_in_flight = False
            session.step = SessionStep.SUBMITTED

        return session.outcome


def create_session_service(
    db: Session,
    use_remote: bool = True,
    claims: Optional[Set[str]] = None,
) -> BatchSessionService:
    """
    Wire a session service against one database session. Barcode claims
    default to the process-wide set so concurrent sessions stay disjoint.
    """
    generator = BarcodeGenerator(make_db_checker(db), claims=session_claims if claims is None else claims)
    allocator = LocationAllocator(generator, make_db_location_check(db))
    return BatchSessionService(allocator, CommitProcessor(db, use_remote=use_remote))
