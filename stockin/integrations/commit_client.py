"""
Remote Commit Client - Calls the transactional stock-in processing endpoint
"""
from typing import Dict, List, Optional
import httpx
import logging

from stockin.core.config import settings
from stockin.core.exceptions import RemoteProcessingFailure
from stockin.schemas.batch import CommitPayload, CommitResponse

logger = logging.getLogger(__name__)


class RemoteCommitClient:
    """
    HTTP client for the atomic commit endpoint.

    Any transport error, timeout, non-2xx status or malformed body is
    reported as RemoteProcessingFailure; callers fall back to local commit.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = base_url if base_url is not None else settings.REMOTE_COMMIT_URL
        self.timeout = timeout if timeout is not None else settings.REMOTE_COMMIT_TIMEOUT
        self.token = token if token is not None else settings.REMOTE_COMMIT_TOKEN
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    def _build_headers(self, payload: CommitPayload) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": payload.run_id,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def process(self, payload: CommitPayload) -> List[str]:
        """POST the payload; returns created batch ids"""
        if not self.is_configured:
            raise RemoteProcessingFailure("Remote commit endpoint not configured", payload.stock_in_id)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    json=payload.model_dump(),
                    headers=self._build_headers(payload),
                )
        except httpx.TimeoutException as e:
            raise RemoteProcessingFailure(f"Remote commit timed out: {e}", payload.stock_in_id) from e
        except httpx.HTTPError as e:
            raise RemoteProcessingFailure(f"Remote commit request failed: {e}", payload.stock_in_id) from e

        logger.info(f"[remote] POST {self.url} -> {response.status_code}")

        if not response.is_success:
            raise RemoteProcessingFailure(
                self._error_message(response), payload.stock_in_id, status_code=response.status_code
            )

        try:
            body = CommitResponse.model_validate(response.json())
        except ValueError as e:
            raise RemoteProcessingFailure(f"Malformed remote response: {e}", payload.stock_in_id) from e

        return body.batch_ids

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Non-success bodies are human-readable; unwrap FastAPI's detail"""
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict):
            detail = data.get("detail", data.get("error", data))
            if isinstance(detail, dict):
                return str(detail.get("message", detail))
            return str(detail)
        return str(data)
