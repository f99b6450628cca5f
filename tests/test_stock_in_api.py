"""Tests for the HTTP surface."""
import asyncio

from stockin.services import CommitProcessor
from stockin.services.commit_service import build_payload


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_get_stock_in(client, seed):
    response = client.post("/api/stock-in", json={"product_id": seed.product.id, "boxes": 6, "submitted_by": "user-1"})
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "pending"
    assert created["boxes"] == 6

    response = client.get(f"/api/stock-in/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


def test_create_with_unknown_product(client, seed):
    response = client.post("/api/stock-in", json={"product_id": "nope", "boxes": 1})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_create_requires_boxes(client, seed):
    response = client.post("/api/stock-in", json={"product_id": seed.product.id, "boxes": 0})
    assert response.status_code == 422


def test_unknown_stock_in(client):
    assert client.get("/api/stock-in/missing").status_code == 404
    assert client.get("/api/stock-in/missing/batches").status_code == 404


def test_batches_after_commit(client, db, stock_in, draft_batches):
    asyncio.run(CommitProcessor(db, use_remote=False).commit(stock_in.id, "user-1", "run-1", draft_batches()))

    response = client.get(f"/api/stock-in/{stock_in.id}/batches")
    assert response.status_code == 200
    batches = response.json()
    assert [b["total_boxes"] for b in batches] == [4, 2]
    assert [len(b["items"]) for b in batches] == [4, 2]
    assert batches[0]["items"][0]["barcode"] == "ELE-WID1-0001-T"

    assert client.get(f"/api/stock-in/{stock_in.id}").json()["status"] == "completed"


def _process_body(stock_in, draft_batches, run_id="run-1"):
    payload = build_payload(stock_in.id, "user-1", run_id, stock_in.product_id, draft_batches())
    return payload.model_dump()


def test_process_is_idempotent(client, stock_in, draft_batches):
    body = _process_body(stock_in, draft_batches)

    first = client.post("/api/stock-in/process", json=body)
    again = client.post("/api/stock-in/process", json=body)

    assert first.status_code == 200
    assert again.status_code == 200
    assert again.json()["batch_ids"] == first.json()["batch_ids"]


def test_process_conflict_for_other_run(client, stock_in, draft_batches):
    client.post("/api/stock-in/process", json=_process_body(stock_in, draft_batches))

    response = client.post("/api/stock-in/process", json=_process_body(stock_in, draft_batches, run_id="run-2"))
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "CONCURRENCY_CONFLICT"


def test_process_rejects_mismatched_idempotency_key(client, stock_in, draft_batches):
    response = client.post(
        "/api/stock-in/process",
        json=_process_body(stock_in, draft_batches),
        headers={"Idempotency-Key": "something-else"},
    )
    assert response.status_code == 400


def test_process_validation_error(client, stock_in, seed, draft_batches):
    body = _process_body(stock_in, lambda: draft_batches([(seed.loc_a, 2)]))
    response = client.post("/api/stock-in/process", json=body)

    assert response.status_code == 400
    assert client.get(f"/api/stock-in/{stock_in.id}").json()["status"] == "pending"


def test_setup_logging_creates_log_file(tmp_path, monkeypatch):
    from stockin.core import logging_config

    monkeypatch.setattr(logging_config, "_configured", False)
    logging_config.setup_logging(log_dir=str(tmp_path / "logs"), level="DEBUG")

    assert (tmp_path / "logs" / "stockin.log").exists()
