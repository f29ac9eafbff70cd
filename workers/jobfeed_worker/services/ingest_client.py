from __future__ import annotations

from typing import Any

import httpx


class IngestClientError(Exception):
    """Raised when the API rejects or fails an ingestion run."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"ingest failed status={status_code} detail={detail}")
        self.status_code = status_code
        self.detail = detail

    @property
    def retryable(self) -> bool:
        # Bad secret or missing configuration will not fix itself between attempts.
        return self.status_code not in (401, 403, 503)


class IngestClient:
    def __init__(
        self,
        base_url: str,
        ingest_secret: str,
        *,
        header_name: str = "X-Ingest-Secret",
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {header_name: ingest_secret}
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def trigger_ingest(self) -> dict[str, Any]:
        url = f"{self.base_url}/ingest"
        if self._client is not None:
            response = await self._client.post(url, headers=self.headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, headers=self.headers)

        if response.status_code >= 400:
            raise IngestClientError(response.status_code, _error_detail(response))
        return response.json()


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return str(payload)[:200]
