"""
Stock Movement Ledger
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.sql import func

from stockin.core import Base
from .base import UUIDMixin


class StockLedger(Base, UUIDMixin):
    """Stock Movement Ledger"""
    __tablename__ = "stock_ledger"
    
    warehouse_id = Column(String(36), nullable=False, index=True)
    location_id = Column(String(36))
    product_id = Column(String(36), ForeignKey("product.id"), nullable=False, index=True)
    barcode = Column(String(100))  # Box the movement belongs to
    
    # Movement info
    movement_type = Column(String(20), nullable=False)  # IN, OUT, RESERVE, RELEASE, ADJUST
    quantity = Column(Integer, nullable=False)  # Positive or negative
    status = Column(String(20), default="approved", nullable=False)
    
    # Reference
    reference_type = Column(String(30))  # STOCK_IN
    reference_id = Column(String(50), index=True)  # ID of related record
    
    # Metadata
    note = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_by = Column(String(36))
