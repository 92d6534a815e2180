# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Fake collaborators shared by the test modules.

Underscore prefix prevents pytest collection.
These are plain classes (not fixtures — conftest.py is reserved for fixtures).
"""

from __future__ import annotations

import json
from collections.abc import Callable

from docdetect.errors import FetchError
from docdetect.fetcher import FetchResult


class FakeClock:
    """Manually advanced monotonic clock with a matching async sleep."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeFetcher:
    """PageFetcher returning canned bodies; unknown URLs raise FetchError(404)."""

    def __init__(self, pages: dict[str, str] | None = None, *, error: Exception | None = None) -> None:
        self.pages = dict(pages or {})
        self.error = error
        self.calls: list[str] = []

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        if url not in self.pages:
            raise FetchError(f"HTTP 404 fetching {url}", url=url, status_code=404)
        return FetchResult(status_code=200, body=self.pages[url], final_url=url, content_type="text/html")


class FakeArbiterClient:
    """ArbiterClient returning a fixed reply (or raising)."""

    def __init__(
        self,
        reply: str | dict | None = None,
        *,
        error: Exception | None = None,
        on_call: Callable[[str, str], None] | None = None,
    ) -> None:
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        self.reply = reply or ""
        self.error = error
        self.on_call = on_call
        self.calls: list[tuple[str, str]] = []

    async def complete(self, *, system: str, user: str) -> str:
        self.calls.append((system, user))
        if self.on_call is not None:
            self.on_call(system, user)
        if self.error is not None:
            raise self.error
        return self.reply
