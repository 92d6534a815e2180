# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Arbiter gateway — natural-language judgment for inconclusive evidence.

Packages the URL plus everything the local stages collected into a bounded
prompt, sends it to a chat-completion model, and validates the reply against
a strict verdict schema.  Transport errors, timeouts and schema mismatches all
surface as ArbiterError; the engine treats that as an abstention.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import Evidence
from .errors import ArbiterError, ConfigError

if TYPE_CHECKING:
    from .config import DetectorConfig
    from .content_features import PageFeatures, RepoFeatures
    from .url_patterns import RepositoryInfo, UrlCategory

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an AI specialized in determining if a URL points to technical documentation.

Documentation websites typically:
1. Focus on explaining how to use software, APIs, libraries, frameworks, or hardware
2. Contain tutorials, guides, references, or API documentation
3. Are organized to help users learn or find specific information
4. May include code examples, diagrams, and technical explanations

Non-documentation websites are typically:
1. Marketing pages, homepages, blogs, stores, or social media
2. Focus on selling products/services rather than explaining how to use them
3. Are news articles, personal websites, or company information pages

For code repositories, decide whether the repository is primarily meant to serve as documentation.

You must respond with ONLY a JSON object containing:
1. "isDocumentation": true/false
2. "confidence": number between 0 and 1
3. "reasoning": brief explanation (max 2 sentences)

If you cannot tell from the information provided, lean toward false with lower confidence."""

_PROMPT_CLOSING = (
    "\nBased ONLY on the information above, is this URL primarily technical documentation?\n"
    'Answer with a JSON object: {"isDocumentation": boolean, "confidence": number, "reasoning": string}'
)

_TRUNCATION_MARK = " …[truncated]"
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


# ---------------------------------------------------------------------------
# Verdict schema
# ---------------------------------------------------------------------------


class ArbiterVerdict(BaseModel):
    """Strict shape of the arbiter's reply."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    is_documentation: bool = Field(alias="isDocumentation", strict=True)
    confidence: float = Field(ge=0.0, le=1.0, allow_inf_nan=False)
    reasoning: str = Field(strict=True)

    @field_validator("confidence", mode="before")
    @classmethod
    def _numeric_confidence(cls, v: Any) -> Any:
        # Reject "0.9" strings and booleans that lax float parsing would accept
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("confidence must be a number")
        return v


def parse_verdict(text: str) -> ArbiterVerdict:
    """Validate a raw completion against :class:`ArbiterVerdict`."""
    cleaned = (text or "").strip()
    m = _FENCE_RE.match(cleaned)
    if m:
        cleaned = m.group(1).strip()
    if not cleaned:
        raise ArbiterError("Empty response from arbiter")
    try:
        return ArbiterVerdict.model_validate_json(cleaned)
    except ValidationError as e:
        raise ArbiterError(f"Arbiter response does not match verdict schema: {e.error_count()} error(s)") from e


# ---------------------------------------------------------------------------
# Client protocol + OpenAI implementation
# ---------------------------------------------------------------------------


class ArbiterClient(Protocol):
    """Transport to a chat-completion service returning raw text."""

    async def complete(self, *, system: str, user: str) -> str: ...


class OpenAIArbiterClient:
    """ArbiterClient backed by ``openai.AsyncOpenAI`` chat completions (JSON mode)."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o",
        max_tokens: int = 300,
        temperature: float = 0.1,
        timeout: float = 10.0,
    ) -> None:
        if not api_key:
            raise ConfigError("Arbiter API key is required (set OPENAI_API_KEY)")
        from openai import AsyncOpenAI

        # max_retries=0: a failed call is terminal, the engine degrades instead
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    @classmethod
    def from_config(cls, config: DetectorConfig) -> OpenAIArbiterClient:
        return cls(
            api_key=config.arbiter_api_key,
            model=config.arbiter_model,
            max_tokens=config.arbiter_max_tokens,
            temperature=config.arbiter_temperature,
            timeout=config.request_timeout,
        )

    async def complete(self, *, system: str, user: str) -> str:
        from openai import OpenAIError

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=self._temperature,
                max_completion_tokens=self._max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise ArbiterError(f"Arbiter request failed: {e}") from e
        content = response.choices[0].message.content if response.choices else ""
        return str(content or "").strip()

    async def aclose(self) -> None:
        await self._client.close()


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ArbiterRequest:
    """Everything the local stages know about a URL."""

    url: str
    category: UrlCategory
    evidence: tuple[Evidence, ...]
    local_total: int
    repo_info: RepositoryInfo | None = None
    page_features: PageFeatures | None = None
    repo_features: RepoFeatures | None = None


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - len(_TRUNCATION_MARK))] + _TRUNCATION_MARK


def _join(items: Sequence[str], limit: int) -> str:
    return _truncate(", ".join(items), limit) if items else "(none)"


class ArbiterGateway:
    """Builds the prompt, calls the client, validates the verdict."""

    def __init__(
        self,
        client: ArbiterClient,
        *,
        min_confidence: float = 0.8,
        max_sample_chars: int = 2000,
        max_prompt_chars: int = 8000,
    ) -> None:
        self._client = client
        self._min_confidence = min_confidence
        self._max_sample_chars = max_sample_chars
        self._max_prompt_chars = max_prompt_chars

    @property
    def min_confidence(self) -> float:
        return self._min_confidence

    def build_prompt(self, request: ArbiterRequest) -> str:
        """Render *request* as the user message, bounded to ``max_prompt_chars``."""
        sample_limit = self._max_sample_chars
        lines = [f"URL: {request.url}", f"Category: {request.category.value.replace('_', ' ')}", ""]

        info = request.repo_info
        if info is not None:
            lines += [
                "Repository Information:",
                f"- Platform: {info.platform.value}",
                f"- Owner: {info.owner}",
                f"- Repository Name: {info.repo_name}",
                f"- View: {info.kind.value}",
                f"- Is Wiki: {info.is_wiki}",
                f"- Is Pages Site: {info.is_pages_site}",
                "",
            ]

        repo = request.repo_features
        if repo is not None:
            lines += [
                "Directory Structure:",
                _truncate("\n".join(repo.structure) or "(not available)", sample_limit),
                "",
                "Statistics:",
                f"- Markdown Files Count: {repo.markdown_file_count}",
                f"- Documentation Directories: {_join(repo.doc_directories, 200)}",
                f"- Language Folders: {_join(repo.language_folders, 200)}",
                "",
                "README Content Sample:",
                _truncate(repo.readme_sample, sample_limit) or "(none)",
                "",
            ]

        page = request.page_features
        if page is not None:
            lines += [
                "Page Information:",
                f"- Title: {_truncate(page.title, 300)}",
                f"- Meta Description: {_truncate(page.meta_description, 500)}",
                f"- Main Heading: {_truncate(page.first_heading, 300)}",
                f"- Headings: {_join(page.headings, 800)}",
                "",
                "Page Features:",
                f"- Has Sidebar/Navigation: {page.has_sidebar}",
                f"- Sidebar Items: {_join(page.sidebar_items, 800)}",
                f"- Has Code Blocks: {page.has_code_blocks} ({page.code_block_count})",
                f"- Has Search Functionality: {page.has_search}",
                f"- Has Version Selector: {page.has_version_selector}",
                f"- Has Pagination: {page.has_pagination}",
                "",
                "Content Sample:",
                _truncate(page.content_sample, sample_limit) or "(none)",
                "",
            ]

        evidence_lines = [f"Heuristic Evidence (total score {request.local_total:+d}):"]
        evidence_lines += [f"- {e}" for e in request.evidence] or ["- (none)"]
        evidence_block = _truncate("\n".join(evidence_lines), self._max_prompt_chars // 4)

        # Evidence and the answer format always survive; the feature sections absorb the cut
        head_limit = self._max_prompt_chars - len(evidence_block) - len(_PROMPT_CLOSING) - 2
        head = _truncate("\n".join(lines), max(0, head_limit))
        return _truncate("\n".join((head, evidence_block, _PROMPT_CLOSING)), self._max_prompt_chars)

    async def judge(self, request: ArbiterRequest) -> ArbiterVerdict:
        """Ask the arbiter.  Raises ArbiterError on any transport or schema failure."""
        prompt = self.build_prompt(request)
        try:
            raw = await self._client.complete(system=SYSTEM_PROMPT, user=prompt)
        except ArbiterError:
            raise
        except Exception as e:
            raise ArbiterError(f"Arbiter client failed: {type(e).__name__}: {e}") from e
        verdict = parse_verdict(raw)
        logger.debug(
            "Arbiter verdict for %s: doc=%s confidence=%.2f",
            request.url,
            verdict.is_documentation,
            verdict.confidence,
        )
        return verdict

    def is_confident(self, verdict: ArbiterVerdict) -> bool:
        """False means the arbiter abstained (below the configured minimum)."""
        return verdict.confidence >= self._min_confidence
