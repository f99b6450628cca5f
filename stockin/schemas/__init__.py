# Pydantic Schemas Package
from .stock_in import StockInCreate, StockInResponse, ProcessedBatchResponse, BatchItemResponse
from .batch import (
    SessionStep, DraftBox, DraftBatch, BatchSession, BatchPreview, CommitOutcome,
    CommitBox, CommitBatch, CommitPayload, CommitResponse,
)

__all__ = [
    "StockInCreate", "StockInResponse", "ProcessedBatchResponse", "BatchItemResponse",
    "SessionStep", "DraftBox", "DraftBatch", "BatchSession", "BatchPreview", "CommitOutcome",
    "CommitBox", "CommitBatch", "CommitPayload", "CommitResponse",
]
