# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""DocDetect exception hierarchy.

All DocDetect-specific errors inherit from DocDetectError.  Per-call errors
(InvalidUrlError, FetchError, ArbiterError) are recovered inside the engine
and never escape ``DocumentationDetector.classify``; ConfigError is raised at
construction time.
"""

from __future__ import annotations


class DocDetectError(Exception):
    """Base exception for all DocDetect errors."""


class InvalidUrlError(DocDetectError):
    """Input is not an absolute http(s) URL."""


class FetchError(DocDetectError):
    """Content retrieval failed (network, timeout, status, size limit)."""

    def __init__(self, message: str, *, url: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ArbiterError(DocDetectError):
    """Arbiter call failed or returned a response outside the verdict schema."""


class ConfigError(DocDetectError):
    """Detector cannot be constructed with the given configuration."""
