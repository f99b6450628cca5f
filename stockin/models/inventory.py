"""
Inventory & Barcode Log Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func

from stockin.core import Base
from .base import UUIDMixin, TimestampMixin


class Inventory(Base, UUIDMixin, TimestampMixin):
    """Located, scannable inventory unit (one per box)"""
    __tablename__ = "inventory"
    
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False, index=True)
    warehouse_id = Column(String(36), nullable=False, index=True)
    location_id = Column(String(36), nullable=False)
    
    barcode = Column(String(100), unique=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    color = Column(String(50))
    size = Column(String(50))
    status = Column(String(20), default="available", nullable=False)  # available, reserved, sold
    
    batch_id = Column(String(36), ForeignKey("processed_batches.id"), nullable=False, index=True)
    stock_in_id = Column(String(36), ForeignKey("stock_in.id"), nullable=False)
    stock_in_detail_id = Column(String(36), ForeignKey("stock_in_details.id"), nullable=False)


class BarcodeLog(Base, UUIDMixin):
    """Audit trail of barcode actions"""
    __tablename__ = "barcode_logs"
    
    barcode = Column(String(100), nullable=False, index=True)
    action = Column(String(30), nullable=False)  # stock_in
    user_id = Column(String(36))
    batch_id = Column(String(36))
    
    # {"stock_in_id": ..., "product_id": ..., "quantity": ...}
    details = Column(JSON, default=dict)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
