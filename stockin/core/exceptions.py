"""
Stock-in error taxonomy.

Every error carries a machine-readable ``code`` so the API layer and the
session can react by type instead of parsing messages.

    StockInError
    +-- ValidationError          pre-commit input problem, nothing mutated
    +-- SessionStateError        navigation / submit guard violated
    +-- StockInNotFound
    +-- GenerationExhausted      barcode collisions exceeded the retry budget
    +-- CommitError
        +-- RemoteProcessingFailure   remote atomic commit failed (fallback)
        +-- LocalCommitFailure        durable write failed during local commit
        +-- ConcurrencyConflict       another execution owns the request
"""
from typing import Optional


class StockInError(Exception):
    code: str = "STOCK_IN_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(StockInError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class SessionStateError(StockInError):
    code = "INVALID_SESSION_STATE"

    def __init__(self, message: str, current_step: Optional[str] = None):
        self.current_step = current_step
        super().__init__(message)


class StockInNotFound(StockInError):
    code = "STOCK_IN_NOT_FOUND"

    def __init__(self, stock_in_id: str):
        self.stock_in_id = stock_in_id
        super().__init__(f"Stock-in {stock_in_id} not found")


class GenerationExhausted(StockInError):
    code = "GENERATION_EXHAUSTED"

    def __init__(self, prefix: str, sku: str, sequence: int, attempts: int):
        self.prefix = prefix
        self.sku = sku
        self.sequence = sequence
        self.attempts = attempts
        super().__init__(
            f"Could not issue a unique barcode for {prefix}/{sku} #{sequence} "
            f"after {attempts} attempts"
        )


class CommitError(StockInError):
    code = "COMMIT_ERROR"

    def __init__(self, message: str, stock_in_id: Optional[str] = None):
        self.stock_in_id = stock_in_id
        super().__init__(message)


class RemoteProcessingFailure(CommitError):
    code = "REMOTE_PROCESSING_FAILED"

    def __init__(self, message: str, stock_in_id: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, stock_in_id)


class LocalCommitFailure(CommitError):
    code = "LOCAL_COMMIT_FAILED"


class ConcurrencyConflict(CommitError):
    code = "CONCURRENCY_CONFLICT"

    def __init__(self, stock_in_id: str, current_status: Optional[str] = None):
        self.current_status = current_status
        super().__init__(
            f"Stock-in {stock_in_id} is already being processed (status: {current_status})",
            stock_in_id,
        )
