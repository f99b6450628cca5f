"""
Allocation Service - Partition a stock-in's boxes across warehouse locations
"""
from typing import Callable, Dict, List, Optional, Sequence
from sqlalchemy.orm import Session
import logging

from stockin.core.exceptions import ValidationError
from stockin.models import WarehouseLocation
from stockin.schemas.batch import BatchSession, DraftBatch, DraftBox
from stockin.services.barcode_service import BarcodeGenerator

logger = logging.getLogger(__name__)

LOCATION_KEY_SEPARATOR = "|"

# (warehouse_id, location_id) -> location belongs to warehouse
LocationCheck = Callable[[str, str], bool]


def location_key(warehouse_id: str, location_id: str) -> str:
    return f"{warehouse_id}{LOCATION_KEY_SEPARATOR}{location_id}"


def group_boxes_by_location(boxes: Sequence[DraftBox]) -> List[DraftBatch]:
    """
    One batch per distinct (warehouse, location), in first-seen order.
    Box order inside a batch follows input order.
    """
    groups: Dict[str, DraftBatch] = {}
    for box in boxes:
        if not box.has_location:
            raise ValidationError(f"Box {box.temp_id} has no warehouse/location", field="location_id")
        key = location_key(box.warehouse_id, box.location_id)
        if key not in groups:
            groups[key] = DraftBatch(warehouse_id=box.warehouse_id, location_id=box.location_id)
        groups[key].boxes.append(box)
    return list(groups.values())


def make_db_location_check(db: Session) -> LocationCheck:
    def location_exists(warehouse_id: str, location_id: str) -> bool:
        return db.query(WarehouseLocation.id).filter(
            WarehouseLocation.id == location_id,
            WarehouseLocation.warehouse_id == warehouse_id,
            WarehouseLocation.is_active == True,
        ).first() is not None
    return location_exists


class LocationAllocator:
    """Builds draft batches out of a session's unallocated box pool"""

    def __init__(self, generator: BarcodeGenerator, location_exists: Optional[LocationCheck] = None):
        self.generator = generator
        self.location_exists = location_exists

    def _validate_location(self, warehouse_id: Optional[str], location_id: Optional[str]) -> None:
        if not warehouse_id:
            raise ValidationError("Select a warehouse", field="warehouse_id")
        if not location_id:
            raise ValidationError("Select a location", field="location_id")
        if self.location_exists and not self.location_exists(warehouse_id, location_id):
            raise ValidationError(
                f"Location {location_id} does not belong to warehouse {warehouse_id}", field="location_id"
            )

    @staticmethod
    def _validate_count(session: BatchSession, count: int) -> None:
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise ValidationError("Box count must be at least 1", field="count")
        if count > session.remaining:
            raise ValidationError(
                f"Box count {count} exceeds remaining {session.remaining}", field="count"
            )
        if count > len(session.boxes):
            raise ValidationError(
                f"Only {len(session.boxes)} unallocated boxes left", field="count"
            )

    async def allocate(
        self,
        session: BatchSession,
        warehouse_id: str,
        location_id: str,
        count: int,
        quantity_per_box: int = 1,
        color: Optional[str] = None,
        size: Optional[str] = None,
    ) -> DraftBatch:
        """
        Take ``count`` boxes from the pool, issue their barcodes and bind
        them to one location. Invalid input raises ValidationError with the
        session untouched.
        """
        self._validate_location(warehouse_id, location_id)
        self._validate_count(session, count)
        if quantity_per_box < 1:
            raise ValidationError("Quantity per box must be at least 1", field="quantity_per_box")

        start = session.next_sequence
        barcodes = await self.generator.generate_batch(
            session.barcode_prefix, session.product_sku, start, count
        )

        # The session may have changed while barcodes were being issued
        try:
            self._validate_count(session, count)
            if session.next_sequence != start:
                raise ValidationError("Another allocation ran concurrently; retry", field="count")
        except ValidationError:
            self.generator.release(barcodes)
            raise

        taken, session.boxes = session.boxes[:count], session.boxes[count:]
        for box, barcode in zip(taken, barcodes):
            box.barcode = barcode
            box.quantity = quantity_per_box
            box.color = color
            box.size = size
            box.warehouse_id = warehouse_id
            box.location_id = location_id

        batch = DraftBatch(warehouse_id=warehouse_id, location_id=location_id, boxes=taken)
        session.batches.append(batch)
        session.next_sequence = start + count

        logger.info(
            f"Allocated {count} boxes to {location_key(warehouse_id, location_id)} "
            f"for stock-in {session.stock_in_id} (remaining {session.remaining})"
        )
        return batch

    def release_batch(self, session: BatchSession, batch_temp_id: str) -> DraftBatch:
        """Remove a draft batch; its boxes go back to the pool"""
        for index, batch in enumerate(session.batches):
            if batch.temp_id == batch_temp_id:
                break
        else:
            raise ValidationError(f"Batch {batch_temp_id} not found", field="batch_id")

        removed = session.batches.pop(index)
        self.generator.release(box.barcode for box in removed.boxes if box.barcode)
        for box in removed.boxes:
            box.barcode = None
            box.warehouse_id = None
            box.location_id = None
        session.boxes.extend(removed.boxes)
        logger.info(f"Released batch {batch_temp_id} ({removed.box_count} boxes) for stock-in {session.stock_in_id}")
        return removed

    async def batches_from_boxes(self, session: BatchSession) -> List[DraftBatch]:
        """
        Alternate entry path: every pool box already carries its own
        location; issue missing barcodes and group the pool into batches.
        """
        pool = session.boxes
        if not pool:
            raise ValidationError("No unallocated boxes to group", field="boxes")
        for box in pool:
            self._validate_location(box.warehouse_id, box.location_id)
            if box.quantity < 1:
                raise ValidationError(f"Box {box.temp_id} needs a quantity of at least 1", field="quantity")

        needing = [box for box in pool if not box.barcode]
        start = session.next_sequence
        barcodes = []
        if needing:
            barcodes = await self.generator.generate_batch(
                session.barcode_prefix, session.product_sku, start, len(needing)
            )
            if session.boxes is not pool or session.next_sequence != start:
                self.generator.release(barcodes)
                raise ValidationError("Boxes changed while grouping; retry", field="boxes")

        for box, barcode in zip(needing, barcodes):
            box.barcode = barcode

        batches = group_boxes_by_location(pool)
        session.batches.extend(batches)
        session.boxes = []
        session.next_sequence = start + len(needing)
        logger.info(f"Grouped {len(pool)} boxes into {len(batches)} batches for stock-in {session.stock_in_id}")
        return batches
