"""
Commit Service - Durable side effects of a finalized stock-in

Two interchangeable strategies:
- RemoteCommitStrategy: one call to the atomic processing endpoint
- LocalCommitStrategy: sequential writes through the local database session

CommitProcessor tries them in order, falling back from remote to local
on RemoteProcessingFailure.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence
from sqlalchemy.orm import Session
import logging

from stockin.core.exceptions import (
    CommitError, ConcurrencyConflict, LocalCommitFailure, RemoteProcessingFailure,
    StockInError, ValidationError,
)
from stockin.integrations.commit_client import RemoteCommitClient
from stockin.schemas.batch import CommitBatch, CommitBox, CommitPayload, DraftBatch
from stockin.services.stock_in_service import ProgressCallback, StockInService

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    stock_in_id: str
    run_id: str
    batch_ids: List[str] = field(default_factory=list)
    strategy: str = ""
    replayed: bool = False


def build_payload(
    stock_in_id: str,
    user_id: str,
    run_id: str,
    product_id: str,
    batches: Sequence[DraftBatch],
) -> CommitPayload:
    """Map draft batches onto the commit wire format"""
    for batch in batches:
        missing = [box.temp_id for box in batch.boxes if not box.barcode]
        if missing:
            raise ValidationError(f"Boxes without barcode in batch {batch.temp_id}: {missing}")

    return CommitPayload(
        run_id=run_id,
        stock_in_id=stock_in_id,
        user_id=user_id,
        batches=[
            CommitBatch(
                warehouse_id=batch.warehouse_id,
                location_id=batch.location_id,
                boxes=[
                    CommitBox(
                        barcode=box.barcode,
                        quantity=box.quantity,
                        color=box.color,
                        size=box.size,
                        product_id=product_id,
                    )
                    for box in batch.boxes
                ],
            )
            for batch in batches
        ],
    )


class ProgressReporter:
    """Fans (current, total) batch progress out to observers, never backwards"""

    def __init__(self, observers: Optional[List[ProgressCallback]] = None):
        self.observers = list(observers or [])
        self.current = 0

    def report(self, current: int, total: int) -> None:
        if current <= self.current:
            return
        self.current = current
        for observer in self.observers:
            try:
                observer(current, total)
            except Exception as e:
                logger.warning(f"Progress observer failed: {e}")


class CommitStrategy(ABC):
    """A way of applying a commit payload"""
    name: str = "base"

    @abstractmethod
    async def execute(self, payload: CommitPayload, progress: ProgressReporter) -> List[str]:
        """Apply the payload and return created batch ids"""
        pass


class RemoteCommitStrategy(CommitStrategy):
    """Atomic execution by the remote processing endpoint"""
    name = "remote"

    def __init__(self, client: Optional[RemoteCommitClient] = None):
        self.client = client or RemoteCommitClient()

    @property
    def is_available(self) -> bool:
        return self.client.is_configured

    async def execute(self, payload: CommitPayload, progress: ProgressReporter) -> List[str]:
        batch_ids = await self.client.process(payload)
        if len(batch_ids) != len(payload.batches):
            raise RemoteProcessingFailure(
                f"Remote returned {len(batch_ids)} batch ids for {len(payload.batches)} batches",
                payload.stock_in_id,
            )
        progress.report(len(payload.batches), len(payload.batches))
        return batch_ids


class LocalCommitStrategy(CommitStrategy):
    """
    Sequential apply through the local database session.

    1. ``pending -> processing`` compare-and-set (single-flight guard)
    2. per batch: processed batch, then per box detail / item / inventory
    3. ``processing -> completed``, committed together with step 2
    4. on failure in 2-3: roll back and best-effort ``rejected``
    """
    name = "local"

    def __init__(self, db: Session):
        self.db = db

    async def execute(self, payload: CommitPayload, progress: ProgressReporter) -> List[str]:
        db = self.db
        stock_in = StockInService.get_stock_in(db, payload.stock_in_id)
        StockInService.validate_payload(stock_in, payload)

        # Raises ConcurrencyConflict without writing if someone else owns it
        StockInService.claim_for_processing(db, stock_in.id, payload.user_id)

        total = len(payload.batches)
        batch_ids = []
        try:
            StockInService.ensure_barcodes_free(db, payload)
            for number, batch in enumerate(payload.batches, start=1):
                record = StockInService.write_batch(db, stock_in, payload, batch, number)
                batch_ids.append(record.id)
                progress.report(number, total)

            StockInService.mark_completed(db, stock_in.id)
            db.commit()
        except Exception as e:
            reason = e.message if isinstance(e, StockInError) else str(e)
            logger.error(f"Local commit of stock-in {payload.stock_in_id} failed: {reason}")
            StockInService.mark_rejected(db, payload.stock_in_id, reason)
            if isinstance(e, LocalCommitFailure):
                raise
            raise LocalCommitFailure(reason, payload.stock_in_id) from e

        return batch_ids


class CommitProcessor:
    """
    Runs a commit through the configured strategies.

    ``run_id`` is the idempotence key: a run that already completed returns
    its original batch ids and writes nothing.
    """

    def __init__(
        self,
        db: Session,
        remote: Optional[RemoteCommitStrategy] = None,
        local: Optional[LocalCommitStrategy] = None,
        use_remote: bool = True,
    ):
        self.db = db
        self.remote = remote if remote is not None else RemoteCommitStrategy()
        self.local = local if local is not None else LocalCommitStrategy(db)
        self.use_remote = use_remote

    def _strategies(self) -> List[CommitStrategy]:
        strategies: List[CommitStrategy] = []
        if self.use_remote and self.remote.is_available:
            strategies.append(self.remote)
        strategies.append(self.local)
        return strategies

    async def commit(
        self,
        stock_in_id: str,
        user_id: str,
        run_id: str,
        batches: Sequence[DraftBatch],
        product_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CommitResult:
        if not batches:
            raise ValidationError("Nothing to commit: no batches", field="batches")

        existing = StockInService.find_completed_run(self.db, stock_in_id, run_id)
        if existing is not None:
            logger.info(f"[REPLAY] run {run_id} for stock-in {stock_in_id} already committed")
            return CommitResult(stock_in_id, run_id, existing, strategy="replay", replayed=True)

        if product_id is None:
            product_id = StockInService.get_stock_in(self.db, stock_in_id).product_id

        payload = build_payload(stock_in_id, user_id, run_id, product_id, batches)
        return await self.commit_payload(payload, on_progress)

    def _applied_remotely(self, payload: CommitPayload) -> Optional[CommitResult]:
        self.db.expire_all()
        existing = StockInService.find_completed_run(self.db, payload.stock_in_id, payload.run_id)
        if existing is None:
            return None
        logger.info(f"[REPLAY] run {payload.run_id} was applied remotely")
        return CommitResult(payload.stock_in_id, payload.run_id, existing, strategy="remote")

    async def commit_payload(
        self,
        payload: CommitPayload,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CommitResult:
        progress = ProgressReporter([on_progress] if on_progress else None)
        logger.info(
            f"[COMMIT] stock-in {payload.stock_in_id} run {payload.run_id}: "
            f"{len(payload.batches)} batches / {payload.total_boxes} boxes"
        )

        for strategy in self._strategies():
            try:
                batch_ids = await strategy.execute(payload, progress)
            except RemoteProcessingFailure as e:
                logger.warning(
                    f"Remote commit failed for stock-in {payload.stock_in_id}, "
                    f"continuing locally: {e.message}"
                )
                # The remote side may have applied the run before failing to answer
                applied = self._applied_remotely(payload)
                if applied is not None:
                    return applied
                continue
            except ConcurrencyConflict:
                # The owner may be a late remote execution of this same run
                applied = self._applied_remotely(payload)
                if applied is not None:
                    return applied
                logger.warning(f"Stock-in {payload.stock_in_id} is owned by another execution")
                raise

            logger.info(
                f"[OK] stock-in {payload.stock_in_id} committed via {strategy.name}: "
                f"{len(batch_ids)} batches"
            )
            return CommitResult(payload.stock_in_id, payload.run_id, batch_ids, strategy=strategy.name)

        # Local strategy is always last and raises on failure
        raise CommitError("No commit strategy available", payload.stock_in_id)
