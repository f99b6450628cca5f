"""
Stock-In API - Request registration, status polling and the atomic commit endpoint
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from stockin.core import get_db, settings
from stockin.core.exceptions import (
    CommitError, ConcurrencyConflict, LocalCommitFailure, SessionStateError,
    StockInError, StockInNotFound, ValidationError,
)
from stockin.schemas import (
    CommitPayload, CommitResponse, ProcessedBatchResponse, StockInCreate, StockInResponse,
)
from stockin.services import StockInService

router = APIRouter(prefix="/stock-in", tags=["Stock-In"])
logger = logging.getLogger(__name__)


def to_http_error(e: StockInError) -> HTTPException:
    """Map the stock-in error taxonomy onto HTTP status codes"""
    if isinstance(e, ValidationError):
        status_code = 400
    elif isinstance(e, StockInNotFound):
        status_code = 404
    elif isinstance(e, (ConcurrencyConflict, SessionStateError)):
        status_code = 409
    elif isinstance(e, LocalCommitFailure):
        status_code = 422
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=e.to_dict())


def _check_token(authorization: Optional[str]) -> None:
    if settings.REMOTE_COMMIT_TOKEN and authorization != f"Bearer {settings.REMOTE_COMMIT_TOKEN}":
        raise HTTPException(status_code=401, detail="Invalid commit token")


@router.post("", response_model=StockInResponse, status_code=201)
def create_stock_in(data: StockInCreate, db: Session = Depends(get_db)):
    """
    Register a pending stock-in request
    """
    try:
        stock_in = StockInService.create_stock_in(db, data)
    except StockInError as e:
        raise to_http_error(e)
    logger.info(f"Stock-in {stock_in.id} registered: {stock_in.boxes} boxes of {stock_in.product_id}")
    return stock_in


@router.post("/process", response_model=CommitResponse)
def process_stock_in(
    payload: CommitPayload,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
    idempotency_key: Optional[str] = Header(None),
):
    """
    Apply a finalized stock-in in a single transaction.
    Replaying a completed run_id returns the original batch ids.
    """
    _check_token(authorization)
    if idempotency_key and idempotency_key != payload.run_id:
        raise HTTPException(status_code=400, detail="Idempotency-Key does not match run_id")

    try:
        batch_ids = StockInService.process_atomic(db, payload)
    except StockInError as e:
        logger.warning(f"Atomic commit of stock-in {payload.stock_in_id} refused: [{e.code}] {e.message}")
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Atomic commit of stock-in {payload.stock_in_id} failed: {e}")
        raise to_http_error(CommitError(str(e), payload.stock_in_id))
    return CommitResponse(batch_ids=batch_ids)


@router.get("/{stock_in_id}", response_model=StockInResponse)
def get_stock_in(stock_in_id: str, db: Session = Depends(get_db)):
    try:
        return StockInService.get_stock_in(db, stock_in_id)
    except StockInError as e:
        raise to_http_error(e)


@router.get("/{stock_in_id}/batches", response_model=List[ProcessedBatchResponse])
def list_batches(stock_in_id: str, db: Session = Depends(get_db)):
    """Processed batches of a stock-in with their box barcodes"""
    try:
        StockInService.get_stock_in(db, stock_in_id)
    except StockInError as e:
        raise to_http_error(e)
    return StockInService.get_batches_for_stock_in(db, stock_in_id)
