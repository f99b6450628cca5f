"""
Stock-In Service - Persistence of stock-in requests and committed batches
"""
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import Callable, List, Optional
import logging

from stockin.core.exceptions import (
    ConcurrencyConflict, LocalCommitFailure, StockInNotFound, ValidationError,
)
from stockin.models import (
    BarcodeLog, BatchItem, Inventory, ProcessedBatch, Product, StockIn,
    StockInDetail, StockInStatus, StockLedger,
)
from stockin.models.base import new_id
from stockin.schemas.batch import CommitBatch, CommitPayload
from stockin.schemas.stock_in import StockInCreate
from stockin.services.barcode_service import find_existing_barcodes

logger = logging.getLogger(__name__)

# (current_batch, total_batches)
ProgressCallback = Callable[[int, int], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StockInService:
    """Stock-in request and batch record operations"""

    @staticmethod
    def create_stock_in(db: Session, data: StockInCreate) -> StockIn:
        """Register a new pending stock-in request"""
        product = db.query(Product).filter(Product.id == data.product_id).first()
        if not product:
            raise ValidationError(f"Product {data.product_id} not found", field="product_id")

        stock_in = StockIn(
            product_id=data.product_id,
            boxes=data.boxes,
            source=data.source,
            notes=data.notes,
            submitted_by=data.submitted_by,
            status=StockInStatus.PENDING.value,
        )
        db.add(stock_in)
        db.commit()
        db.refresh(stock_in)
        return stock_in

    @staticmethod
    def get_stock_in(db: Session, stock_in_id: str) -> StockIn:
        stock_in = db.query(StockIn).filter(StockIn.id == stock_in_id).first()
        if not stock_in:
            raise StockInNotFound(stock_in_id)
        return stock_in

    @staticmethod
    def get_status(db: Session, stock_in_id: str) -> Optional[str]:
        """Current status read straight from the database"""
        return db.query(StockIn.status).filter(StockIn.id == stock_in_id).scalar()

    @staticmethod
    def get_batches_for_run(db: Session, run_id: str) -> List[ProcessedBatch]:
        return db.query(ProcessedBatch)\
            .filter(ProcessedBatch.run_id == run_id)\
            .order_by(ProcessedBatch.batch_number)\
            .all()

    @staticmethod
    def get_batches_for_stock_in(db: Session, stock_in_id: str) -> List[ProcessedBatch]:
        return db.query(ProcessedBatch)\
            .filter(ProcessedBatch.stock_in_id == stock_in_id)\
            .order_by(ProcessedBatch.processed_at, ProcessedBatch.batch_number)\
            .all()

    @staticmethod
    def find_completed_run(db: Session, stock_in_id: str, run_id: str) -> Optional[List[str]]:
        """
        Batch ids of an already applied run, or None.

        A run counts as applied only when its batches exist and the request
        reached ``completed``.
        """
        batches = StockInService.get_batches_for_run(db, run_id)
        if not batches:
            return None
        if any(b.stock_in_id != stock_in_id for b in batches):
            raise ValidationError(f"Run {run_id} belongs to another stock-in", field="run_id")
        if StockInService.get_status(db, stock_in_id) != StockInStatus.COMPLETED.value:
            return None
        return [b.id for b in batches]

    # ========== Validation ==========

    @staticmethod
    def validate_payload(stock_in: StockIn, payload: CommitPayload) -> None:
        """Check a commit payload against its request before any write"""
        if payload.stock_in_id != stock_in.id:
            raise ValidationError("Payload stock_in_id does not match request", field="stock_in_id")

        if payload.total_boxes != stock_in.boxes:
            raise ValidationError(
                f"Batches hold {payload.total_boxes} boxes but request expects {stock_in.boxes}",
                field="batches",
            )

        seen = set()
        for batch in payload.batches:
            for box in batch.boxes:
                if box.product_id != stock_in.product_id:
                    raise ValidationError(f"Box {box.barcode} is for another product", field="product_id")
                if box.barcode in seen:
                    raise ValidationError(f"Duplicate barcode {box.barcode} in payload", field="barcode")
                seen.add(box.barcode)

    # ========== Status transitions ==========

    @staticmethod
    def claim_for_processing(db: Session, stock_in_id: str, user_id: str, commit: bool = True) -> None:
        """
        Compare-and-set ``pending -> processing``.

        First writer wins; every other caller gets ConcurrencyConflict and
        nothing is written on its behalf.
        """
        claimed = db.query(StockIn)\
            .filter(StockIn.id == stock_in_id, StockIn.status == StockInStatus.PENDING.value)\
            .update({
                StockIn.status: StockInStatus.PROCESSING.value,
                StockIn.processed_by: user_id,
                StockIn.processing_started_at: _now(),
            }, synchronize_session=False)

        if claimed != 1:
            db.rollback()
            current = StockInService.get_status(db, stock_in_id)
            if current is None:
                raise StockInNotFound(stock_in_id)
            raise ConcurrencyConflict(stock_in_id, current)

        if commit:
            db.commit()
        logger.info(f"[CLAIMED] stock-in {stock_in_id} -> processing by {user_id}")

    @staticmethod
    def mark_completed(db: Session, stock_in_id: str) -> None:
        """``processing -> completed``, flushed into the current transaction"""
        updated = db.query(StockIn)\
            .filter(StockIn.id == stock_in_id, StockIn.status == StockInStatus.PROCESSING.value)\
            .update({
                StockIn.status: StockInStatus.COMPLETED.value,
                StockIn.processing_completed_at: _now(),
                StockIn.rejection_reason: None,
            }, synchronize_session=False)
        if updated != 1:
            raise LocalCommitFailure(f"Stock-in {stock_in_id} left processing before completion", stock_in_id)

    @staticmethod
    def mark_rejected(db: Session, stock_in_id: str, reason: str) -> bool:
        """Best-effort move to ``rejected``; failures are logged, not raised"""
        try:
            db.rollback()
            db.query(StockIn)\
                .filter(StockIn.id == stock_in_id)\
                .update({
                    StockIn.status: StockInStatus.REJECTED.value,
                    StockIn.rejection_reason: reason[:1000],
                }, synchronize_session=False)
            db.commit()
            logger.warning(f"[REJECTED] stock-in {stock_in_id}: {reason}")
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to mark stock-in {stock_in_id} rejected: {e}")
            return False

    # ========== Batch writes ==========

    @staticmethod
    def write_batch(
        db: Session,
        stock_in: StockIn,
        payload: CommitPayload,
        batch: CommitBatch,
        batch_number: int,
    ) -> ProcessedBatch:
        """
        Insert one processed batch, then per box its detail, batch item,
        inventory, barcode log and stock ledger rows, in that order.
        Flushes but does not commit.
        """
        record = ProcessedBatch(
            stock_in_id=stock_in.id,
            run_id=payload.run_id,
            batch_number=batch_number,
            product_id=stock_in.product_id,
            warehouse_id=batch.warehouse_id,
            location_id=batch.location_id,
            total_boxes=len(batch.boxes),
            total_quantity=sum(box.quantity for box in batch.boxes),
            processed_by=payload.user_id,
            status="completed",
        )
        db.add(record)
        db.flush()

        for box_number, box in enumerate(batch.boxes, start=1):
            detail = StockInDetail(
                id=new_id(),
                stock_in_id=stock_in.id,
                batch_id=record.id,
                product_id=box.product_id,
                warehouse_id=batch.warehouse_id,
                location_id=batch.location_id,
                barcode=box.barcode,
                quantity=box.quantity,
                color=box.color,
                size=box.size,
                processing_order=box_number,
                created_by=payload.user_id,
            )
            db.add(detail)
            db.flush()

            db.add(BatchItem(
                batch_id=record.id,
                box_number=box_number,
                barcode=box.barcode,
                quantity=box.quantity,
                color=box.color,
                size=box.size,
                warehouse_id=batch.warehouse_id,
                location_id=batch.location_id,
            ))
            db.flush()

            db.add(Inventory(
                product_id=box.product_id,
                warehouse_id=batch.warehouse_id,
                location_id=batch.location_id,
                barcode=box.barcode,
                quantity=box.quantity,
                color=box.color,
                size=box.size,
                status="available",
                batch_id=record.id,
                stock_in_id=stock_in.id,
                stock_in_detail_id=detail.id,
            ))
            db.add(BarcodeLog(
                barcode=box.barcode,
                action="stock_in",
                user_id=payload.user_id,
                batch_id=record.id,
                details={
                    "stock_in_id": stock_in.id,
                    "product_id": box.product_id,
                    "quantity": box.quantity,
                },
            ))
            db.add(StockLedger(
                warehouse_id=batch.warehouse_id,
                location_id=batch.location_id,
                product_id=box.product_id,
                barcode=box.barcode,
                movement_type="IN",
                quantity=box.quantity,
                status="approved",
                reference_type="STOCK_IN",
                reference_id=stock_in.id,
                created_by=payload.user_id,
            ))
            db.flush()

        return record

    @staticmethod
    def ensure_barcodes_free(db: Session, payload: CommitPayload) -> None:
        """Re-validate barcode uniqueness right before insert"""
        codes = [box.barcode for batch in payload.batches for box in batch.boxes]
        taken = find_existing_barcodes(db, codes)
        if taken:
            raise LocalCommitFailure(
                f"Barcodes already issued: {', '.join(sorted(taken))}", payload.stock_in_id
            )

    @staticmethod
    def process_atomic(db: Session, payload: CommitPayload) -> List[str]:
        """
        Apply a whole commit in one database transaction.

        Used by the remote processing endpoint. Replaying a completed
        ``run_id`` returns the original batch ids without writing.
        """
        stock_in = StockInService.get_stock_in(db, payload.stock_in_id)

        existing = StockInService.find_completed_run(db, stock_in.id, payload.run_id)
        if existing is not None:
            logger.info(f"[REPLAY] run {payload.run_id} already applied ({len(existing)} batches)")
            return existing

        StockInService.validate_payload(stock_in, payload)

        try:
            StockInService.claim_for_processing(db, stock_in.id, payload.user_id, commit=False)
            StockInService.ensure_barcodes_free(db, payload)

            batch_ids = []
            for number, batch in enumerate(payload.batches, start=1):
                record = StockInService.write_batch(db, stock_in, payload, batch, number)
                batch_ids.append(record.id)

            StockInService.mark_completed(db, stock_in.id)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[OK] stock-in {stock_in.id} committed atomically: {len(batch_ids)} batches")
        return batch_ids
