from .base import TimestampMixin, UUIDMixin
from .master import Warehouse, WarehouseLocation
from .product import Product
from .stock_in import StockIn, StockInDetail, StockInStatus
from .batch import ProcessedBatch, BatchItem
from .inventory import Inventory, BarcodeLog
from .stock import StockLedger

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin",
    # Master
    "Warehouse", "WarehouseLocation",
    # Product
    "Product",
    # Stock-in
    "StockIn", "StockInDetail", "StockInStatus",
    # Batch
    "ProcessedBatch", "BatchItem",
    # Inventory
    "Inventory", "BarcodeLog",
    # Stock
    "StockLedger",
]
