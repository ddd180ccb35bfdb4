"""Synchronous HTTP fetcher used for provider and METAR requests."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from ..config import Settings
from ..exceptions import TransportError
from ..redaction import sanitize_text


class Fetcher(Protocol):
    def get(self, url: str) -> str: ...


class HttpFetcher:
    """Fetches raw response bodies; every failure surfaces as TransportError.

    There is no retry: the next scheduled collection run is the retry.
    """

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger("forecast_accuracy.ingestion.http")
        self._client = httpx.Client(
            timeout=settings.http_timeout_seconds,
            headers={
                "Accept": "application/json",
                "User-Agent": settings.http_user_agent,
            },
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def get(self, url: str) -> str:
        safe_url = sanitize_text(url)
        self.logger.debug("GET %s", safe_url)
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise TransportError(
                f"Request failed with status {status} at {safe_url}: "
                f"{sanitize_text(exc.response.text[:300])}",
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Request failed at {safe_url}: {sanitize_text(str(exc))}"
            ) from exc
        return response.text
