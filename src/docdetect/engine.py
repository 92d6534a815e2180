# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Classification engine: cache → rate gate → URL patterns → content → arbiter.

One ``classify`` call walks::

    Init → CacheCheck → RateGate → PatternAnalysis ─┬─ ShortCircuit ──────────────┐
                                                    └─ ContentFetch → Extraction  │
                                   Aggregation ─┬─ ReturnLocal                    │
                                                └─ Arbiter / ArbiterFallback      │
                                   CacheStore ← ──────────────────────────────────┘

Malformed input ends in ``Failed`` before touching cache, rate budget,
network or arbiter.  Per-call problems never escape ``classify``; they
degrade to a lower-confidence result with a warning attached.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from urllib.parse import SplitResult

import structlog

from . import ClassificationResult, Evidence, Source
from .aggregator import Aggregate, aggregate
from .arbiter import ArbiterClient, ArbiterGateway, ArbiterRequest, OpenAIArbiterClient
from .cache import ResultCache
from .config import DetectorConfig
from .content_features import ContentAnalysis, extract_features
from .errors import ArbiterError, ConfigError, FetchError, InvalidUrlError
from .fetcher import HttpxFetcher, PageFetcher
from .rate_limiter import RateLimiter
from .url_patterns import UrlAnalysis, analyze_url, validate_url

logger = logging.getLogger(__name__)


class DocumentationDetector:
    """Long-lived classifier owning a cache, a rate window and its collaborators.

    Usage::

        async with DocumentationDetector(DetectorConfig.from_env()) as detector:
            result = await detector.classify("https://docs.python.org/3/")

    *fetcher* and *arbiter_client* are injectable; when omitted the detector
    builds (and later closes) an :class:`HttpxFetcher` and, if the arbiter is
    enabled, an :class:`OpenAIArbiterClient`.
    """

    def __init__(
        self,
        config: DetectorConfig | None = None,
        *,
        fetcher: PageFetcher | None = None,
        arbiter_client: ArbiterClient | None = None,
        cache: ResultCache | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        cfg = config or DetectorConfig()
        self._config = cfg

        self._arbiter: ArbiterGateway | None = None
        self._owned_arbiter_client: OpenAIArbiterClient | None = None
        if cfg.enable_arbiter:
            if arbiter_client is None:
                if not cfg.arbiter_api_key:
                    raise ConfigError("Arbiter is enabled but no API key or client was provided")
                self._owned_arbiter_client = OpenAIArbiterClient.from_config(cfg)
                arbiter_client = self._owned_arbiter_client
            self._arbiter = ArbiterGateway(
                arbiter_client,
                min_confidence=cfg.min_arbiter_confidence,
                max_sample_chars=cfg.max_sample_chars,
                max_prompt_chars=cfg.max_prompt_chars,
            )

        self._owned_fetcher: HttpxFetcher | None = None
        if fetcher is None:
            self._owned_fetcher = HttpxFetcher(
                timeout=cfg.request_timeout,
                max_bytes=cfg.max_content_bytes,
                user_agent=cfg.user_agent,
            )
            fetcher = self._owned_fetcher
        self._fetcher: PageFetcher = fetcher

        self._cache = cache if cache is not None else ResultCache(cfg.cache_ttl, cfg.cache_max_entries)
        if rate_limiter is None:
            rate_limiter = RateLimiter.per_minute(cfg.requests_per_minute)
        self._rate_limiter = rate_limiter

    # -- Async context manager --

    async def __aenter__(self) -> DocumentationDetector:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close collaborators this detector created (injected ones are left alone)."""
        if self._owned_fetcher is not None:
            await self._owned_fetcher.aclose()
            self._owned_fetcher = None
        if self._owned_arbiter_client is not None:
            await self._owned_arbiter_client.aclose()
            self._owned_arbiter_client = None

    # -- Introspection --

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def arbiter_enabled(self) -> bool:
        return self._arbiter is not None

    # -- Public API --

    async def classify(self, url: str) -> ClassificationResult:
        """Classify *url*.  Never raises for per-call problems.

        Every log record emitted during the call carries the input URL as ``url``.
        """
        with structlog.contextvars.bound_contextvars(url=url):
            return await self._classify(url)

    async def _classify(self, url: str) -> ClassificationResult:
        try:
            parts = validate_url(url)
        except InvalidUrlError as e:
            logger.info("Rejected malformed URL %r: %s", url, e)
            return self._failed(url, str(e))

        cached = self._cache.get(url)
        if cached is not None:
            logger.debug("Cache hit: %s", url)
            return cached
        logger.debug("Cache miss: %s", url)

        try:
            result = await self._classify_uncached(url, parts)
        except Exception as e:
            logger.exception("Classification failed for %s", url)
            return self._failed(url, f"{type(e).__name__}: {e}")

        self._cache.store(url, result)
        logger.info(
            "Classified %s: doc=%s confidence=%.2f source=%s score=%+d",
            url,
            result.is_documentation,
            result.confidence,
            result.source.value,
            result.total_score,
        )
        return result

    # -- Internal: pipeline --

    async def _classify_uncached(self, url: str, parts: SplitResult) -> ClassificationResult:
        cfg = self._config

        waited = await self._rate_limiter.acquire()
        if waited > 0:
            logger.debug("Rate gate released %s after %.2fs", url, waited)

        analysis = analyze_url(parts)
        if analysis.is_strong_signal:
            logger.debug(
                "Short-circuit on URL pattern for %s (positive=%s negative=%s)",
                url,
                analysis.strong_positive,
                analysis.strong_negative,
            )
            return self._from_pattern(analysis, Source.URL_PATTERN, cfg.strong_signal_confidence)

        try:
            async with asyncio.timeout(cfg.request_timeout):
                fetched = await self._fetcher.fetch(analysis.url)
        except TimeoutError:
            logger.warning("Fetch timed out for %s after %.1fs", url, cfg.request_timeout)
            return self._from_pattern(
                analysis,
                Source.FETCH_FAILURE_FALLBACK,
                cfg.fetch_failure_confidence,
                warning=f"fetch timed out after {cfg.request_timeout}s",
            )
        except FetchError as e:
            logger.warning("Fetch failed for %s: %s", url, e)
            return self._from_pattern(
                analysis, Source.FETCH_FAILURE_FALLBACK, cfg.fetch_failure_confidence, warning=str(e)
            )

        content = extract_features(fetched.body, analysis, max_sample_chars=cfg.max_sample_chars)
        evidence = analysis.evidence + content.evidence
        agg = aggregate(evidence, floor=cfg.confidence_floor, ceiling=cfg.confidence_ceiling)

        if agg.confidence >= cfg.local_confidence_threshold or self._arbiter is None:
            return self._from_content(analysis, content, evidence, agg, Source.CONTENT_ANALYSIS, agg.confidence)

        return await self._consult_arbiter(url, analysis, content, evidence, agg)

    async def _consult_arbiter(
        self,
        url: str,
        analysis: UrlAnalysis,
        content: ContentAnalysis,
        evidence: tuple[Evidence, ...],
        agg: Aggregate,
    ) -> ClassificationResult:
        assert self._arbiter is not None
        cfg = self._config
        fallback_confidence = max(cfg.confidence_floor, agg.confidence * cfg.abstain_confidence_factor)

        request = ArbiterRequest(
            url=analysis.url,
            category=analysis.category,
            evidence=evidence,
            local_total=agg.total_score,
            repo_info=analysis.repo_info,
            page_features=content.page_features,
            repo_features=content.repo_features,
        )
        try:
            async with asyncio.timeout(cfg.request_timeout):
                verdict = await self._arbiter.judge(request)
        except TimeoutError:
            logger.warning("Arbiter timed out for %s after %.1fs", url, cfg.request_timeout)
            return self._from_content(
                analysis,
                content,
                evidence,
                agg,
                Source.ARBITER_FALLBACK,
                fallback_confidence,
                warning=f"arbiter timed out after {cfg.request_timeout}s",
            )
        except ArbiterError as e:
            logger.warning("Arbiter failed for %s: %s", url, e)
            return self._from_content(
                analysis, content, evidence, agg, Source.ARBITER_FALLBACK, fallback_confidence, warning=str(e)
            )

        if not self._arbiter.is_confident(verdict):
            logger.info(
                "Arbiter abstained for %s: confidence %.2f below %.2f",
                url,
                verdict.confidence,
                self._arbiter.min_confidence,
            )
            return self._from_content(
                analysis,
                content,
                evidence,
                agg,
                Source.ARBITER_FALLBACK,
                fallback_confidence,
                warning=f"arbiter confidence {verdict.confidence:.2f} below {self._arbiter.min_confidence:.2f}",
                reasoning=verdict.reasoning,
            )

        return ClassificationResult(
            url=analysis.url,
            is_documentation=verdict.is_documentation,
            confidence=cfg.clamp(verdict.confidence),
            source=Source.CONTENT_ANALYSIS_WITH_ARBITER,
            evidence=evidence,
            total_score=agg.total_score,
            repo_info=analysis.repo_info,
            page_features=content.page_features,
            repo_features=content.repo_features,
            arbiter_reasoning=verdict.reasoning,
        )

    # -- Internal: result builders --

    @staticmethod
    def _failed(url: str, message: str) -> ClassificationResult:
        return ClassificationResult(
            url=url,
            is_documentation=False,
            confidence=0.0,
            source=Source.ERROR,
            warnings=(message,),
        )

    @staticmethod
    def _from_pattern(
        analysis: UrlAnalysis,
        source: Source,
        confidence: float,
        *,
        warning: str = "",
    ) -> ClassificationResult:
        return ClassificationResult(
            url=analysis.url,
            is_documentation=analysis.is_likely_doc,
            confidence=confidence,
            source=source,
            evidence=analysis.evidence,
            total_score=analysis.total_score,
            repo_info=analysis.repo_info,
            warnings=(warning,) if warning else (),
        )

    @staticmethod
    def _from_content(
        analysis: UrlAnalysis,
        content: ContentAnalysis,
        evidence: tuple[Evidence, ...],
        agg: Aggregate,
        source: Source,
        confidence: float,
        *,
        warning: str = "",
        reasoning: str = "",
    ) -> ClassificationResult:
        return ClassificationResult(
            url=analysis.url,
            is_documentation=agg.is_documentation,
            confidence=confidence,
            source=source,
            evidence=evidence,
            total_score=agg.total_score,
            repo_info=analysis.repo_info,
            page_features=content.page_features,
            repo_features=content.repo_features,
            arbiter_reasoning=reasoning,
            warnings=(warning,) if warning else (),
        )
