"""
Stock-In Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class StockInCreate(BaseModel):
    product_id: str
    boxes: int = Field(..., ge=1)
    source: Optional[str] = None
    notes: Optional[str] = None
    submitted_by: Optional[str] = None

class StockInResponse(BaseModel):
    id: str
    product_id: str
    boxes: int
    source: Optional[str] = None
    notes: Optional[str] = None
    status: str
    rejection_reason: Optional[str] = None
    submitted_by: Optional[str] = None
    processed_by: Optional[str] = None
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BatchItemResponse(BaseModel):
    id: str
    box_number: int
    barcode: str
    quantity: int
    color: Optional[str] = None
    size: Optional[str] = None
    status: str

    class Config:
        from_attributes = True

class ProcessedBatchResponse(BaseModel):
    id: str
    stock_in_id: str
    run_id: str
    batch_number: int
    warehouse_id: str
    location_id: str
    total_boxes: int
    total_quantity: int
    status: str
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    items: List[BatchItemResponse] = []

    class Config:
        from_attributes = True
