import os

# Settings and the module engine are built at import time
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite://")
os.environ["REMOTE_COMMIT_URL"] = ""
os.environ.pop("REMOTE_COMMIT_TOKEN", None)

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from stockin.core import Base, build_engine, get_db
from stockin.models import Product, Warehouse, WarehouseLocation
from stockin.schemas import DraftBatch, DraftBox, StockInCreate
from stockin.services import StockInService
from stockin.services.barcode_service import session_claims


@pytest.fixture(autouse=True)
def clear_session_claims():
    session_claims.clear()
    yield
    session_claims.clear()


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'stockin.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(db):
    """Widget / WID-1 stored in WH1 with locations LocA and LocB"""
    product = Product(sku="WID-1", name="Widget", category="Electronics")
    warehouse = Warehouse(code="WH1", name="Main Warehouse")
    db.add_all([product, warehouse])
    db.flush()
    loc_a = WarehouseLocation(warehouse_id=warehouse.id, code="LocA", floor="1", zone="A")
    loc_b = WarehouseLocation(warehouse_id=warehouse.id, code="LocB", floor="1", zone="B")
    db.add_all([loc_a, loc_b])
    db.commit()
    return SimpleNamespace(product=product, warehouse=warehouse, loc_a=loc_a, loc_b=loc_b)


@pytest.fixture
def make_stock_in(db, seed):
    def _make(boxes=6):
        return StockInService.create_stock_in(
            db, StockInCreate(product_id=seed.product.id, boxes=boxes, submitted_by="user-1")
        )
    return _make


@pytest.fixture
def stock_in(make_stock_in):
    return make_stock_in(6)


@pytest.fixture
def draft_batches(seed):
    """Build finalized draft batches: [(location, box_count), ...] with fixed barcodes"""
    def _build(layout=None, tag="T"):
        layout = layout or [(seed.loc_a, 4), (seed.loc_b, 2)]
        batches = []
        sequence = 1
        for location, count in layout:
            boxes = []
            for _ in range(count):
                boxes.append(DraftBox(
                    barcode=f"ELE-WID1-{sequence:04d}-{tag}",
                    quantity=10,
                    warehouse_id=seed.warehouse.id,
                    location_id=location.id,
                ))
                sequence += 1
            batches.append(DraftBatch(warehouse_id=seed.warehouse.id, location_id=location.id, boxes=boxes))
        return batches
    return _build


@pytest.fixture
def app(session_factory):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)
