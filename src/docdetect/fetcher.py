# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page / repository listing fetcher.

A single GET per URL: bounded duration (``timeout``), bounded body
(``max_bytes``, enforced while streaming), identifying User-Agent.  Any
non-2xx status, transport error, timeout, oversize or non-textual body raises
FetchError.  No retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Protocol

import httpx

from .config import DEFAULT_USER_AGENT
from .errors import FetchError

logger = logging.getLogger(__name__)

_TEXTUAL_MARKERS = ("html", "text", "xml", "markdown", "json")


@dataclass(frozen=True, slots=True)
class FetchResult:
    status_code: int
    body: str
    final_url: str = ""
    content_type: str = ""


class PageFetcher(Protocol):
    """Anything that can fetch a URL's body for content analysis."""

    async def fetch(self, url: str) -> FetchResult: ...


class HttpxFetcher:
    """httpx-backed PageFetcher.

    Usage::

        async with HttpxFetcher(timeout=10.0, max_bytes=500_000) as fetcher:
            result = await fetcher.fetch("https://docs.python.org/3/")
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        max_bytes: int = 500_000,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_bytes <= 0:
            raise ValueError(f"max_bytes must be > 0, got {max_bytes}")
        self._max_bytes = max_bytes
        self._headers = {"User-Agent": user_agent, "Accept": "text/html,application/xhtml+xml,*/*;q=0.8"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)

    async def __aenter__(self) -> HttpxFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, url: str) -> FetchResult:
        try:
            async with self._client.stream("GET", url, headers=self._headers, follow_redirects=True) as resp:
                if not 200 <= resp.status_code < 300:
                    raise FetchError(
                        f"HTTP {resp.status_code} fetching {url}",
                        url=url,
                        status_code=resp.status_code,
                    )

                content_type = resp.headers.get("content-type", "").lower()
                if content_type and not any(m in content_type for m in _TEXTUAL_MARKERS):
                    raise FetchError(f"Non-textual content type {content_type!r} at {url}", url=url)

                declared = resp.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > self._max_bytes:
                    raise FetchError(
                        f"Content-Length {declared} exceeds limit of {self._max_bytes} bytes at {url}",
                        url=url,
                    )

                chunks: list[bytes] = []
                received = 0
                async for chunk in resp.aiter_bytes():
                    received += len(chunk)
                    if received > self._max_bytes:
                        raise FetchError(f"Response exceeds limit of {self._max_bytes} bytes at {url}", url=url)
                    chunks.append(chunk)

                encoding = resp.encoding or "utf-8"
                try:
                    body = b"".join(chunks).decode(encoding, errors="replace")
                except LookupError:
                    body = b"".join(chunks).decode("utf-8", errors="replace")

                logger.debug("Fetched %s: status=%d bytes=%d", url, resp.status_code, received)
                return FetchResult(
                    status_code=resp.status_code,
                    body=body,
                    final_url=str(resp.url),
                    content_type=content_type,
                )
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {url}: {e}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Transport error fetching {url}: {e}", url=url) from e
        except httpx.InvalidURL as e:
            raise FetchError(f"Invalid URL {url!r}: {e}", url=url) from e
