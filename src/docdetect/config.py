# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Immutable detector configuration.

Defaults are tuned for interactive use: arbiter off unless credentials are
provided, 10 requests/minute, 24h result cache.  ``DetectorConfig.from_env``
layers ``DOCDETECT_*`` environment overrides on top; malformed values are
ignored and the default stays.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

try:
    from importlib.metadata import version as _pkg_version

    _DOCDETECT_VERSION = _pkg_version("docdetect")
except Exception:
    _DOCDETECT_VERSION = "unknown"

DEFAULT_USER_AGENT = f"DocDetect/{_DOCDETECT_VERSION}"

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True, slots=True)
class DetectorConfig:
    """Immutable configuration for :class:`~docdetect.engine.DocumentationDetector`."""

    # Arbiter
    enable_arbiter: bool = False
    arbiter_api_key: str = dataclasses.field(default="", repr=False)
    arbiter_model: str = "gpt-4o"
    arbiter_max_tokens: int = 300
    arbiter_temperature: float = 0.1

    # Throttling + caching
    requests_per_minute: int = 10
    cache_ttl: float = 86400.0  # seconds
    cache_max_entries: int = 1024

    # Fetching
    max_content_bytes: int = 500_000
    request_timeout: float = 10.0  # seconds
    user_agent: str = DEFAULT_USER_AGENT

    # Decision thresholds
    local_confidence_threshold: float = 0.7
    min_arbiter_confidence: float = 0.8
    strong_signal_confidence: float = 0.85
    fetch_failure_confidence: float = 0.6
    abstain_confidence_factor: float = 0.9
    confidence_floor: float = 0.1
    confidence_ceiling: float = 0.95

    # Prompt bounds
    max_sample_chars: int = 2000
    max_prompt_chars: int = 8000

    def __post_init__(self) -> None:
        if self.arbiter_max_tokens <= 0:
            raise ValueError(f"arbiter_max_tokens must be > 0, got {self.arbiter_max_tokens}")
        if not 0.0 <= self.arbiter_temperature <= 2.0:
            raise ValueError(f"arbiter_temperature must be in [0, 2], got {self.arbiter_temperature}")
        if self.requests_per_minute <= 0:
            raise ValueError(f"requests_per_minute must be > 0, got {self.requests_per_minute}")
        if self.cache_ttl < 0:
            raise ValueError(f"cache_ttl must be >= 0, got {self.cache_ttl}")
        if self.cache_max_entries <= 0:
            raise ValueError(f"cache_max_entries must be > 0, got {self.cache_max_entries}")
        if self.max_content_bytes <= 0:
            raise ValueError(f"max_content_bytes must be > 0, got {self.max_content_bytes}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")
        if not 0.0 < self.confidence_floor <= 0.5:
            raise ValueError(f"confidence_floor must be in (0, 0.5], got {self.confidence_floor}")
        if not 0.5 <= self.confidence_ceiling < 1.0:
            raise ValueError(f"confidence_ceiling must be in [0.5, 1), got {self.confidence_ceiling}")
        for name in (
            "local_confidence_threshold",
            "min_arbiter_confidence",
            "strong_signal_confidence",
            "fetch_failure_confidence",
            "abstain_confidence_factor",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.max_sample_chars <= 0:
            raise ValueError(f"max_sample_chars must be > 0, got {self.max_sample_chars}")
        if self.max_prompt_chars < self.max_sample_chars:
            raise ValueError(
                f"max_prompt_chars must be >= max_sample_chars, got {self.max_prompt_chars} < {self.max_sample_chars}"
            )

    def clamp(self, confidence: float) -> float:
        """Clamp *confidence* into ``[confidence_floor, confidence_ceiling]``."""
        return max(self.confidence_floor, min(self.confidence_ceiling, confidence))

    def replace(self, **changes: Any) -> DetectorConfig:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> DetectorConfig:
        """Build a config from ``DOCDETECT_*`` variables (plus ``OPENAI_API_KEY``).

        Explicit *overrides* win over the environment.  The arbiter is enabled
        when an API key is present unless ``DOCDETECT_ENABLE_ARBITER`` says otherwise.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        api_key = env.get("OPENAI_API_KEY", "").strip()
        if api_key:
            values["arbiter_api_key"] = api_key

        env_enable = env.get("DOCDETECT_ENABLE_ARBITER", "").strip().lower()
        if env_enable in _TRUTHY:
            values["enable_arbiter"] = True
        elif env_enable in _FALSY:
            values["enable_arbiter"] = False
        else:
            values["enable_arbiter"] = bool(api_key)

        env_model = env.get("DOCDETECT_ARBITER_MODEL", "").strip()
        if env_model:
            values["arbiter_model"] = env_model

        env_ua = env.get("DOCDETECT_USER_AGENT", "").strip()
        if env_ua:
            values["user_agent"] = env_ua

        for var, name, conv in (
            ("DOCDETECT_ARBITER_MAX_TOKENS", "arbiter_max_tokens", int),
            ("DOCDETECT_ARBITER_TEMPERATURE", "arbiter_temperature", float),
            ("DOCDETECT_REQUESTS_PER_MINUTE", "requests_per_minute", int),
            ("DOCDETECT_CACHE_TTL", "cache_ttl", float),
            ("DOCDETECT_MAX_CONTENT_BYTES", "max_content_bytes", int),
            ("DOCDETECT_LOCAL_CONFIDENCE", "local_confidence_threshold", float),
            ("DOCDETECT_MIN_ARBITER_CONFIDENCE", "min_arbiter_confidence", float),
            ("DOCDETECT_REQUEST_TIMEOUT", "request_timeout", float),
        ):
            raw = env.get(var, "").strip()
            if raw:
                with suppress(ValueError):
                    values[name] = conv(raw)

        values.update(overrides)
        return cls(**values)
