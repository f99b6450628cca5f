"""Tests for the remote commit HTTP client."""
import asyncio
import json

import httpx
import pytest

from stockin.core.exceptions import RemoteProcessingFailure
from stockin.integrations import RemoteCommitClient
from stockin.schemas import CommitBatch, CommitBox, CommitPayload

URL = "http://commit.test/api/stock-in/process"


@pytest.fixture
def payload():
    return CommitPayload(
        run_id="run-1",
        stock_in_id="si-1",
        user_id="user-1",
        batches=[CommitBatch(
            warehouse_id="WH1",
            location_id="LocA",
            boxes=[CommitBox(barcode="ELE-WID1-0001-AAAA", quantity=2, product_id="p-1")],
        )],
    )


def _client(handler, **kwargs):
    return RemoteCommitClient(base_url=URL, transport=httpx.MockTransport(handler), **kwargs)


def test_posts_payload_with_headers(payload):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"batch_ids": ["b-1"]})

    batch_ids = asyncio.run(_client(handler, token="secret").process(payload))

    assert batch_ids == ["b-1"]
    assert seen["body"]["run_id"] == "run-1"
    assert seen["body"]["batches"][0]["boxes"][0]["barcode"] == "ELE-WID1-0001-AAAA"
    assert seen["headers"]["Idempotency-Key"] == "run-1"
    assert seen["headers"]["Authorization"] == "Bearer secret"


def test_error_detail_becomes_message(payload):
    def handler(request):
        return httpx.Response(409, json={"detail": {"code": "CONCURRENCY_CONFLICT", "message": "busy"}})

    with pytest.raises(RemoteProcessingFailure) as exc:
        asyncio.run(_client(handler).process(payload))

    assert exc.value.message == "busy"
    assert exc.value.status_code == 409


def test_plain_text_error(payload):
    with pytest.raises(RemoteProcessingFailure) as exc:
        asyncio.run(_client(lambda r: httpx.Response(500, text="boom")).process(payload))
    assert exc.value.message == "boom"


def test_malformed_success_body(payload):
    with pytest.raises(RemoteProcessingFailure):
        asyncio.run(_client(lambda r: httpx.Response(200, json={"ids": []})).process(payload))


def test_timeout(payload):
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(RemoteProcessingFailure) as exc:
        asyncio.run(_client(handler).process(payload))
    assert "timed out" in exc.value.message


def test_unconfigured_client(payload):
    client = RemoteCommitClient(base_url="")
    assert not client.is_configured
    with pytest.raises(RemoteProcessingFailure):
        asyncio.run(client.process(payload))
