# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import docdetect  # noqa: F401
except ImportError:
    raise ImportError("docdetect is not installed. Run: pip install -e '.[dev]'") from None

import pytest

from tests._fakes import FakeClock, FakeFetcher


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture(autouse=True)
def _no_ambient_config(monkeypatch):
    """Keep the developer's environment out of config-dependent tests."""
    for var in (
        "OPENAI_API_KEY",
        "DOCDETECT_ENABLE_ARBITER",
        "DOCDETECT_ARBITER_MODEL",
        "DOCDETECT_ARBITER_MAX_TOKENS",
        "DOCDETECT_ARBITER_TEMPERATURE",
        "DOCDETECT_REQUESTS_PER_MINUTE",
        "DOCDETECT_CACHE_TTL",
        "DOCDETECT_MAX_CONTENT_BYTES",
        "DOCDETECT_LOCAL_CONFIDENCE",
        "DOCDETECT_MIN_ARBITER_CONFIDENCE",
        "DOCDETECT_REQUEST_TIMEOUT",
        "DOCDETECT_USER_AGENT",
        "DOCDETECT_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
