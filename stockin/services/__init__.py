# Services Package
from .barcode_service import BarcodeGenerator, derive_prefix, make_db_checker
from .allocation_service import LocationAllocator, group_boxes_by_location, make_db_location_check
from .stock_in_service import StockInService
from .commit_service import (
    CommitProcessor, CommitResult, CommitStrategy, LocalCommitStrategy, RemoteCommitStrategy,
)
from .session_service import BatchSessionService, create_session_service, open_session

__all__ = [
    "BarcodeGenerator", "derive_prefix", "make_db_checker",
    "LocationAllocator", "group_boxes_by_location", "make_db_location_check",
    "StockInService",
    "CommitProcessor", "CommitResult", "CommitStrategy", "LocalCommitStrategy", "RemoteCommitStrategy",
    "BatchSessionService", "create_session_service", "open_session",
]
