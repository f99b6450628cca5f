"""
Stock-In Request Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
import enum

from stockin.core import Base
from .base import UUIDMixin, TimestampMixin


class StockInStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class StockIn(Base, UUIDMixin, TimestampMixin):
    """Request to receive N boxes of one product"""
    __tablename__ = "stock_in"
    
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False, index=True)
    boxes = Column(Integer, nullable=False)  # Requested box count
    source = Column(String(100))
    notes = Column(Text)
    
    status = Column(String(20), default=StockInStatus.PENDING.value, nullable=False, index=True)
    rejection_reason = Column(Text)
    
    submitted_by = Column(String(36))
    processed_by = Column(String(36))
    processing_started_at = Column(DateTime(timezone=True))
    processing_completed_at = Column(DateTime(timezone=True))
    
    # Relationships
    product = relationship("Product")
    details = relationship("StockInDetail", back_populates="stock_in")
    batches = relationship("ProcessedBatch", back_populates="stock_in", order_by="ProcessedBatch.batch_number")


class StockInDetail(Base, UUIDMixin):
    """One received box of a stock-in"""
    __tablename__ = "stock_in_details"
    
    stock_in_id = Column(String(36), ForeignKey("stock_in.id"), nullable=False, index=True)
    batch_id = Column(String(36), ForeignKey("processed_batches.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False)
    warehouse_id = Column(String(36), nullable=False)
    location_id = Column(String(36), nullable=False)
    
    barcode = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    color = Column(String(50))
    size = Column(String(50))
    processing_order = Column(Integer, nullable=False)
    status = Column(String(20), default="completed")
    
    created_by = Column(String(36))
    
    # Relationships
    stock_in = relationship("StockIn", back_populates="details")
