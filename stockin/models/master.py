"""
Master Tables: Warehouse, WarehouseLocation
"""
from sqlalchemy import Column, String, Boolean, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from stockin.core import Base
from .base import UUIDMixin, TimestampMixin

class Warehouse(Base, UUIDMixin, TimestampMixin):
    """Warehouse"""
    __tablename__ = "warehouse"
    
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    address = Column(Text)
    is_active = Column(Boolean, default=True)
    
    # Relationships
    locations = relationship("WarehouseLocation", back_populates="warehouse", cascade="all, delete-orphan")

class WarehouseLocation(Base, UUIDMixin, TimestampMixin):
    """Storage location inside a warehouse (floor / zone)"""
    __tablename__ = "warehouse_location"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "code", name="uq_warehouse_location_code"),
    )
    
    warehouse_id = Column(String(36), ForeignKey("warehouse.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    floor = Column(String(20))
    zone = Column(String(20))
    is_active = Column(Boolean, default=True)
    
    # Relationships
    warehouse = relationship("Warehouse", back_populates="locations")
    
    @property
    def label(self) -> str:
        if self.floor or self.zone:
            return f"Floor {self.floor or '-'}, Zone {self.zone or '-'}"
        return self.code
