"""
Product & SKU Models
"""
from sqlalchemy import Column, String, Boolean, Text
from stockin.core import Base
from .base import UUIDMixin, TimestampMixin

class Product(Base, UUIDMixin, TimestampMixin):
    """Product Master"""
    __tablename__ = "product"
    
    sku = Column(String(100), unique=True, index=True)
    name = Column(String(300), nullable=False)
    description = Column(Text)
    category = Column(String(100))
    is_active = Column(Boolean, default=True)
