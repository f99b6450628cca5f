"""Tests for splitting a box pool across warehouse locations."""
import asyncio

import pytest

from stockin.core.exceptions import GenerationExhausted, ValidationError
from stockin.schemas import BatchSession, DraftBox
from stockin.services.allocation_service import (
    LocationAllocator, group_boxes_by_location, location_key, make_db_location_check,
)
from stockin.services.barcode_service import BarcodeGenerator


async def _never_taken(code):
    await asyncio.sleep(0)
    return False


def _session(boxes=6):
    return BatchSession(
        stock_in_id="si-1",
        product_id="p-1",
        product_name="Widget",
        product_sku="WID1",
        barcode_prefix="ELE",
        requested_boxes=boxes,
        boxes=[DraftBox() for _ in range(boxes)],
    )


def _allocator(is_taken=_never_taken, location_exists=None, **kwargs):
    return LocationAllocator(BarcodeGenerator(is_taken, **kwargs), location_exists)


# ------------------------------------------------------------------
# 1. allocate
# ------------------------------------------------------------------

def test_allocate_splits_pool_and_conserves_boxes():
    session = _session(6)
    allocator = _allocator()

    first = asyncio.run(allocator.allocate(session, "WH1", "LocA", 4, quantity_per_box=10, color="red"))
    assert session.remaining == 2
    assert first.box_count == 4
    assert first.total_quantity == 40
    assert [b.split("-")[2] for b in first.barcodes] == ["0001", "0002", "0003", "0004"]
    assert all(box.color == "red" and box.location_id == "LocA" for box in first.boxes)

    second = asyncio.run(allocator.allocate(session, "WH1", "LocB", 2))
    assert session.remaining == 0
    assert [b.split("-")[2] for b in second.barcodes] == ["0005", "0006"]
    assert session.next_sequence == 7
    assert session.boxes == []
    assert session.allocated + session.remaining == session.requested_boxes


def test_allocate_more_than_remaining_is_rejected():
    session = _session(6)
    allocator = _allocator()
    asyncio.run(allocator.allocate(session, "WH1", "LocA", 4))

    with pytest.raises(ValidationError) as exc:
        asyncio.run(allocator.allocate(session, "WH1", "LocB", 3))

    assert exc.value.field == "count"
    assert session.remaining == 2
    assert len(session.batches) == 1
    assert session.next_sequence == 5


@pytest.mark.parametrize("count", [0, -1])
def test_allocate_requires_positive_count(count):
    session = _session(3)
    with pytest.raises(ValidationError):
        asyncio.run(_allocator().allocate(session, "WH1", "LocA", count))
    assert session.remaining == 3


@pytest.mark.parametrize("warehouse_id, location_id", [(None, "LocA"), ("WH1", None), ("", "")])
def test_allocate_requires_location(warehouse_id, location_id):
    session = _session(3)
    with pytest.raises(ValidationError):
        asyncio.run(_allocator().allocate(session, warehouse_id, location_id, 1))
    assert session.batches == []


def test_allocate_checks_location_directory():
    session = _session(3)
    allocator = _allocator(location_exists=lambda w, l: (w, l) == ("WH1", "LocA"))

    with pytest.raises(ValidationError):
        asyncio.run(allocator.allocate(session, "WH1", "LocZ", 1))
    asyncio.run(allocator.allocate(session, "WH1", "LocA", 1))
    assert session.remaining == 2


def test_generation_failure_leaves_session_untouched():
    async def always_taken(code):
        return True

    session = _session(4)
    allocator = _allocator(always_taken, max_attempts=2)

    with pytest.raises(GenerationExhausted):
        asyncio.run(allocator.allocate(session, "WH1", "LocA", 2))

    assert session.batches == []
    assert len(session.boxes) == 4
    assert session.next_sequence == 1
    assert allocator.generator.claimed == set()


def test_concurrent_allocations_cannot_overshoot():
    session = _session(6)
    allocator = _allocator()

    async def run():
        return await asyncio.gather(
            allocator.allocate(session, "WH1", "LocA", 4),
            allocator.allocate(session, "WH1", "LocB", 4),
            return_exceptions=True,
        )

    results = asyncio.run(run())
    errors = [r for r in results if isinstance(r, Exception)]

    assert len(errors) == 1
    assert isinstance(errors[0], ValidationError)
    assert session.remaining == 2
    assert allocator.generator.claimed == set(session.batches[0].barcodes)


# ------------------------------------------------------------------
# 2. release_batch
# ------------------------------------------------------------------

def test_release_batch_returns_boxes_to_pool():
    session = _session(6)
    allocator = _allocator()
    batch = asyncio.run(allocator.allocate(session, "WH1", "LocA", 4))

    allocator.release_batch(session, batch.temp_id)

    assert session.remaining == 6
    assert len(session.boxes) == 6
    assert all(box.barcode is None and box.location_id is None for box in session.boxes)
    assert allocator.generator.claimed == set()


def test_release_unknown_batch():
    with pytest.raises(ValidationError):
        _allocator().release_batch(_session(1), "batch-missing")


# ------------------------------------------------------------------
# 3. Grouping by location
# ------------------------------------------------------------------

def test_group_boxes_by_location_keeps_first_seen_order():
    boxes = [
        DraftBox(warehouse_id="WH1", location_id="LocB"),
        DraftBox(warehouse_id="WH1", location_id="LocA"),
        DraftBox(warehouse_id="WH1", location_id="LocB"),
        DraftBox(warehouse_id="WH2", location_id="LocA"),
    ]
    batches = group_boxes_by_location(boxes)

    assert [(b.warehouse_id, b.location_id) for b in batches] == [
        ("WH1", "LocB"), ("WH1", "LocA"), ("WH2", "LocA"),
    ]
    assert batches[0].boxes == [boxes[0], boxes[2]]


def test_group_key_does_not_collide_on_hyphens():
    boxes = [
        DraftBox(warehouse_id="a-b", location_id="c"),
        DraftBox(warehouse_id="a", location_id="b-c"),
    ]
    assert location_key("a-b", "c") != location_key("a", "b-c")
    assert len(group_boxes_by_location(boxes)) == 2


def test_group_rejects_box_without_location():
    with pytest.raises(ValidationError):
        group_boxes_by_location([DraftBox(warehouse_id="WH1")])


def test_batches_from_boxes_issues_barcodes_and_empties_pool():
    session = _session(3)
    for box, location in zip(session.boxes, ["LocA", "LocB", "LocA"]):
        box.warehouse_id = "WH1"
        box.location_id = location

    allocator = _allocator()
    batches = asyncio.run(allocator.batches_from_boxes(session))

    assert [b.location_id for b in batches] == ["LocA", "LocB"]
    assert [b.box_count for b in batches] == [2, 1]
    assert session.remaining == 0
    assert session.next_sequence == 4
    assert all(box.barcode for b in batches for box in b.boxes)


def test_batches_from_boxes_rejects_missing_location():
    session = _session(2)
    session.boxes[0].warehouse_id = "WH1"
    session.boxes[0].location_id = "LocA"

    with pytest.raises(ValidationError):
        asyncio.run(_allocator().batches_from_boxes(session))
    assert session.batches == []
    assert len(session.boxes) == 2


def test_db_location_check(db, seed):
    location_exists = make_db_location_check(db)
    assert location_exists(seed.warehouse.id, seed.loc_a.id)
    assert not location_exists("other-warehouse", seed.loc_a.id)
