# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""DocDetect: decide whether a URL points to technical documentation.

Combines cheap URL-shape signals, content signals extracted from the fetched
page or repository listing, and an optional natural-language arbiter for the
inconclusive cases.  Every decision carries the evidence that produced it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import DetectorConfig
    from .content_features import PageFeatures, RepoFeatures
    from .url_patterns import RepositoryInfo

__all__ = [
    "ClassificationResult",
    "Evidence",
    "Source",
    "analyze_doc_url",
    "classify",
    "is_doc_url",
]


@dataclass(frozen=True, slots=True)
class Evidence:
    """A signed observation contributing to a decision."""

    score: int  # positive = documentation-like, negative = not
    reason: str

    def __post_init__(self) -> None:
        if isinstance(self.score, bool) or not isinstance(self.score, int):
            raise TypeError(f"score must be an int, got {type(self.score).__name__}")

    def __str__(self) -> str:
        return f"{self.score:+d} {self.reason}"


class Source(StrEnum):
    """Which pipeline stage produced the final decision."""

    URL_PATTERN = "url-pattern"
    CONTENT_ANALYSIS = "content-analysis"
    CONTENT_ANALYSIS_WITH_ARBITER = "content-analysis-with-arbiter"
    ARBITER_FALLBACK = "arbiter-fallback"
    FETCH_FAILURE_FALLBACK = "fetch-failure-fallback"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Outcome of one classification run."""

    url: str
    is_documentation: bool
    confidence: float  # 0.0–1.0
    source: Source
    evidence: tuple[Evidence, ...] = ()
    total_score: int = 0
    repo_info: RepositoryInfo | None = None
    page_features: PageFeatures | None = None
    repo_features: RepoFeatures | None = None
    arbiter_reasoning: str = ""
    warnings: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if not math.isfinite(self.confidence):
            raise ValueError(f"confidence must be finite, got {self.confidence}")
        # Clamp via object.__setattr__ (frozen dataclass)
        object.__setattr__(self, "confidence", min(1.0, max(0.0, float(self.confidence))))

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready rendering (used by the CLI ``--json`` mode)."""
        data: dict[str, Any] = {
            "url": self.url,
            "isDocumentation": self.is_documentation,
            "confidence": round(self.confidence, 4),
            "source": self.source.value,
            "totalScore": self.total_score,
            "evidence": [{"score": e.score, "reason": e.reason} for e in self.evidence],
        }
        if self.repo_info is not None:
            data["repoInfo"] = self.repo_info.to_dict()
        if self.page_features is not None:
            data["pageFeatures"] = self.page_features.to_dict()
        if self.repo_features is not None:
            data["repoFeatures"] = self.repo_features.to_dict()
        if self.arbiter_reasoning:
            data["arbiterReasoning"] = self.arbiter_reasoning
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


# ---------------------------------------------------------------------------
# Convenience entry points
# ---------------------------------------------------------------------------


async def classify(url: str, config: DetectorConfig | None = None) -> ClassificationResult:
    """Classify *url* with a fresh detector built from *config*.

    Each call owns its own cache and rate window; long-lived callers should
    construct one :class:`~docdetect.engine.DocumentationDetector` and reuse it.
    """
    from .engine import DocumentationDetector

    async with DocumentationDetector(config) as detector:
        return await detector.classify(url)


analyze_doc_url = classify


async def is_doc_url(url: str, config: DetectorConfig | None = None) -> bool:
    """Boolean-only projection of :func:`classify`."""
    result = await classify(url, config)
    return result.is_documentation
