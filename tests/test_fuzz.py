# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Property-based fuzz tests using Hypothesis.

Verifies invariants hold for arbitrary inputs across the URL analyzer,
content extractor and arbiter response parser.
"""

from __future__ import annotations

import pytest
from hypothesis import HealthCheck, example, given, settings
from hypothesis import strategies as st

from docdetect.arbiter import ArbiterVerdict, parse_verdict
from docdetect.content_features import ContentAnalysis, extract_features
from docdetect.errors import ArbiterError, InvalidUrlError
from docdetect.url_patterns import UrlAnalysis, analyze_url

# ---------------------------------------------------------------------------
# Module-level strategies
# ---------------------------------------------------------------------------

GENERAL_TEXT = st.text(min_size=0, max_size=2000)

HTML_LIKE = st.text(
    alphabet=st.characters(
        whitelist_categories=("L", "N", "P", "Z"),
        whitelist_characters="<>/=\"'&;#!.- \n\t",
    ),
    min_size=0,
    max_size=3000,
)

VALID_URL = st.from_regex(
    r"https?://[a-z0-9\-]+(\.[a-z]{2,6}){1,2}(/[a-z0-9\-._~:/?#\[\]@!$&'()*+,;=]*)?",
    fullmatch=True,
)

REPO_URL = st.builds(
    lambda host, owner, repo, rest: f"https://{host}/{owner}/{repo}{rest}",
    st.sampled_from(["github.com", "gitlab.com", "bitbucket.org"]),
    st.from_regex(r"[a-z0-9][a-z0-9\-]{0,20}", fullmatch=True),
    st.from_regex(r"[a-z0-9][a-z0-9\-_.]{0,20}", fullmatch=True),
    st.sampled_from(["", "/", "/wiki", "/-/wikis/home", "/blob/main/README.md", "/tree/main/docs", "/src/x/y/"]),
)

# ---------------------------------------------------------------------------
# Shared settings
# ---------------------------------------------------------------------------

_fuzz_settings = settings(
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
)


@pytest.mark.fuzz
class TestFuzzUrlAnalyzer:
    @_fuzz_settings
    @given(url=st.one_of(VALID_URL, REPO_URL))
    def test_valid_urls_never_crash(self, url: str) -> None:
        result = analyze_url(url)
        assert isinstance(result, UrlAnalysis)
        assert result.total_score == sum(e.score for e in result.evidence)

    @_fuzz_settings
    @given(text=GENERAL_TEXT)
    @example("http://[::1")
    @example("https://:80/")
    def test_arbitrary_text_is_analyzed_or_rejected(self, text: str) -> None:
        try:
            result = analyze_url(text)
        except InvalidUrlError:
            return
        assert result.url.lower().startswith(("http://", "https://"))

    @_fuzz_settings
    @given(url=st.one_of(VALID_URL, REPO_URL))
    def test_host_rules_score_at_most_once(self, url: str) -> None:
        result = analyze_url(url)
        assert sum(1 for e in result.evidence if e.reason.startswith("Hostname matches")) <= 1
        assert sum(1 for e in result.evidence if e.reason.startswith("Hosted on")) <= 1


@pytest.mark.fuzz
class TestFuzzContentExtractor:
    @_fuzz_settings
    @given(url=st.one_of(VALID_URL, REPO_URL), raw_html=HTML_LIKE)
    @example("https://example.com/", "<html><body><main></main></body></html>")
    @example("https://github.com/o/r", '<script type="application/json">{"tree": 1}</script>')
    def test_extract_never_crashes(self, url: str, raw_html: str) -> None:
        result = extract_features(raw_html, analyze_url(url))
        assert isinstance(result, ContentAnalysis)
        # Exactly one branch record
        assert (result.page_features is None) != (result.repo_features is None)


@pytest.mark.fuzz
class TestFuzzVerdictParser:
    @_fuzz_settings
    @given(text=GENERAL_TEXT)
    @example('{"isDocumentation": "yes", "confidence": 0.9, "reasoning": ""}')
    @example('{"isDocumentation": true, "confidence": 1.5, "reasoning": ""}')
    def test_parse_returns_verdict_or_raises_arbiter_error(self, text: str) -> None:
        try:
            verdict = parse_verdict(text)
        except ArbiterError:
            return
        assert isinstance(verdict, ArbiterVerdict)
        assert 0.0 <= verdict.confidence <= 1.0
