"""
Processed Batch & Batch Item Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from stockin.core import Base
from .base import UUIDMixin


class ProcessedBatch(Base, UUIDMixin):
    """Group of boxes committed to one warehouse location"""
    __tablename__ = "processed_batches"
    __table_args__ = (
        # One row per (run, position): a replayed run cannot add batches
        UniqueConstraint("run_id", "batch_number", name="uq_processed_batch_run_number"),
    )
    
    stock_in_id = Column(String(36), ForeignKey("stock_in.id"), nullable=False, index=True)
    run_id = Column(String(64), nullable=False, index=True)
    batch_number = Column(Integer, nullable=False)
    
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False)
    warehouse_id = Column(String(36), nullable=False)
    location_id = Column(String(36), nullable=False)
    
    total_boxes = Column(Integer, nullable=False)
    total_quantity = Column(Integer, nullable=False)
    status = Column(String(20), default="completed", nullable=False)
    
    processed_by = Column(String(36))
    processed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    # Relationships
    stock_in = relationship("StockIn", back_populates="batches")
    items = relationship("BatchItem", back_populates="batch", order_by="BatchItem.box_number")


class BatchItem(Base, UUIDMixin):
    """One box inside a processed batch"""
    __tablename__ = "batch_items"
    
    batch_id = Column(String(36), ForeignKey("processed_batches.id"), nullable=False, index=True)
    box_number = Column(Integer, nullable=False)
    
    barcode = Column(String(100), unique=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    color = Column(String(50))
    size = Column(String(50))
    warehouse_id = Column(String(36), nullable=False)
    location_id = Column(String(36), nullable=False)
    status = Column(String(20), default="available", nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    # Relationships
    batch = relationship("ProcessedBatch", back_populates="items")
