# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Evidence aggregation: signed total + bounded confidence.

Pure function over an evidence sequence; no I/O, no configuration lookup
beyond the floor/ceiling passed in.

Curve: ``0.5 + min(0.4, |total| × 0.05)`` clamped to ``[floor, ceiling]``.
Each point of evidence moves confidence 5 points away from the coin flip,
saturating at 8 points.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from . import Evidence

DEFAULT_FLOOR = 0.1
DEFAULT_CEILING = 0.95

_NEUTRAL = 0.5
_STEP = 0.05  # confidence per evidence point
_MAX_SWING = 0.4


@dataclass(frozen=True, slots=True)
class Aggregate:
    """Reduction of one run's evidence."""

    total_score: int
    confidence: float

    @property
    def is_documentation(self) -> bool:
        # Ties default to "not documentation"
        return self.total_score > 0


def confidence_for(total_score: int, *, floor: float = DEFAULT_FLOOR, ceiling: float = DEFAULT_CEILING) -> float:
    """Confidence for a signed total; 0.5 at zero, non-decreasing in ``|total_score|``."""
    raw = _NEUTRAL + min(_MAX_SWING, abs(total_score) * _STEP)
    return max(floor, min(ceiling, raw))


def aggregate(
    evidence: Iterable[Evidence],
    *,
    floor: float = DEFAULT_FLOOR,
    ceiling: float = DEFAULT_CEILING,
) -> Aggregate:
    """Sum *evidence* and derive its confidence."""
    total = sum(e.score for e in evidence)
    return Aggregate(total_score=total, confidence=confidence_for(total, floor=floor, ceiling=ceiling))
