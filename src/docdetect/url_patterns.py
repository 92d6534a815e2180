# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""URL pattern analysis — the cheap first layer of classification.

Runs in well under a millisecond and never touches the network.  Every rule
contributes at most one Evidence; hostname rules stop at the first matching
pattern so that near-duplicate patterns (``docs.`` / ``.docs.``) are not
double-counted.

Rules:
  1. Hostname doc-subdomain      +3  strong positive
  2. Hostname doc-hosting platform +4  strong positive
  3. Path doc keyword            +2
  4. Path doc file extension     +1
  5. Path commerce/account keyword −3  strong negative
  6. Code-hosting platform → repository sub-case evidence (wiki/pages strong)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from urllib.parse import SplitResult, unquote, urlsplit

from . import Evidence
from .errors import InvalidUrlError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class UrlCategory(StrEnum):
    """Which content-analysis branch applies to a URL."""

    REPOSITORY_LISTING = "repository_listing"
    DEDICATED_DOC_SITE = "dedicated_doc_site"


class Platform(StrEnum):
    GITHUB = "GitHub"
    GITLAB = "GitLab"
    BITBUCKET = "Bitbucket"


class RepoKind(StrEnum):
    """Refinement of a repository URL by the view it points at."""

    WIKI_PAGE = "wiki_page"
    PAGES_SITE = "pages_site"
    REPOSITORY_ROOT = "repository_root"
    FILE_BLOB = "file_blob"
    DIRECTORY = "directory"
    OTHER = "other"  # issues, pulls, releases, ...


@dataclass(frozen=True, slots=True)
class RepositoryInfo:
    """Repository coordinates derived purely from URL shape."""

    platform: Platform
    owner: str
    repo_name: str
    kind: RepoKind
    sub_path: str = ""  # path below owner/repo, "" at the root

    @property
    def is_wiki(self) -> bool:
        return self.kind is RepoKind.WIKI_PAGE

    @property
    def is_pages_site(self) -> bool:
        return self.kind is RepoKind.PAGES_SITE

    @property
    def is_readme_file(self) -> bool:
        return bool(_README_RE.match(_last_segment(self.sub_path)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "owner": self.owner,
            "repoName": self.repo_name,
            "kind": self.kind.value,
            "subPath": self.sub_path,
            "isWiki": self.is_wiki,
            "isPagesSite": self.is_pages_site,
            "isReadmeFile": self.is_readme_file,
        }


@dataclass(frozen=True, slots=True)
class UrlAnalysis:
    """Result of URL pattern analysis."""

    url: str
    category: UrlCategory
    evidence: tuple[Evidence, ...]
    repo_info: RepositoryInfo | None = None
    strong_positive: bool = False
    strong_negative: bool = False

    @property
    def total_score(self) -> int:
        return sum(e.score for e in self.evidence)

    @property
    def is_likely_doc(self) -> bool:
        return self.total_score > 0

    @property
    def is_strong_signal(self) -> bool:
        """Decisive enough to skip content.  With both flags set the total score decides."""
        return self.strong_positive or self.strong_negative


# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------

_DOC_HOST_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^docs?\."),  # docs.example.com
    re.compile(r"\.docs?\."),  # api.docs.example.com
    re.compile(r"^developers?\."),
    re.compile(r"^documentation\."),
    re.compile(r"^reference\."),
    re.compile(r"^api\."),
    re.compile(r"^learn\."),
    re.compile(r"^help\."),
    re.compile(r"^support\."),
    re.compile(r"^wiki\."),
    re.compile(r"^manual\."),
    re.compile(r"^guides?\."),
)

DOC_PLATFORMS: tuple[str, ...] = (
    "readthedocs.io",
    "readthedocs.org",
    "rtfd.io",
    "gitbook.io",
    "gitbook.com",
    "docusaurus.io",
    "mkdocs.org",
    "docsify.js.org",
    "docz.site",
    "vuepress.vuejs.org",
    "storybook.js.org",
    "swagger.io",
)

_DOC_PATH_KEYWORDS: frozenset[str] = frozenset(
    {
        "doc",
        "docs",
        "documentation",
        "reference",
        "guide",
        "guides",
        "tutorial",
        "tutorials",
        "manual",
        "handbook",
        "learn",
        "getting-started",
        "help",
        "api",
        "api-docs",
        "apidocs",
        "api-reference",
        "developer",
        "developers",
        "cookbook",
        "howto",
        "how-to",
    }
)

DOC_FILE_EXTENSIONS: frozenset[str] = frozenset({"md", "markdown", "mdx", "rst", "adoc", "asciidoc", "txt", "pdf"})

# Segment keywords anywhere in the path
_NON_DOC_SEGMENTS: tuple[str, ...] = (
    "shop",
    "store",
    "cart",
    "checkout",
    "buy",
    "pricing",
    "login",
    "signin",
    "sign-in",
    "signup",
    "sign-up",
    "register",
    "account",
)
# Single article: /blog/<slug> or /news/<slug> at the end of the path
_SINGLE_ARTICLE_RE = re.compile(r"/(blog|news)/[^/]+/?$", re.IGNORECASE)
# Terminal-only segments
_TERMINAL_NON_DOC_RE = re.compile(r"/(about|contact)/?$", re.IGNORECASE)

_REPO_NAME_DOC_RE = re.compile(
    r"(?:^|[-_.])(docs?|documentation|guides?|tutorials?|manual|reference)(?:[-_.]|$)",
    re.IGNORECASE,
)
_README_RE = re.compile(r"^readme(\.[a-z0-9]+)?$", re.IGNORECASE)

# Host code points a browser URL parser refuses (C0 controls and DEL checked separately)
_FORBIDDEN_HOST_CHARS = frozenset(" #%/<>?@[\\]^|")

# Scores
_SCORE_DOC_HOST = 3
_SCORE_DOC_PLATFORM = 4
_SCORE_DOC_PATH = 2
_SCORE_DOC_EXTENSION = 1
_SCORE_NON_DOC_PATH = -3
_SCORE_REPO_WIKI = 3
_SCORE_REPO_PAGES = 3
_SCORE_REPO_README = 1
_SCORE_REPO_DOC_BLOB = 1
_SCORE_REPO_ROOT = -1
_SCORE_REPO_NAME = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def validate_url(url: str) -> SplitResult:
    """Parse *url* as an absolute http(s) URL or raise InvalidUrlError."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError("URL must be a non-empty string")
    candidate = url.strip()
    if any(ch.isspace() for ch in candidate):
        raise InvalidUrlError(f"URL contains whitespace: {candidate!r}")
    try:
        parts = urlsplit(candidate)
        _ = parts.port  # raises ValueError on a non-numeric / out-of-range port
    except ValueError as e:
        raise InvalidUrlError(f"Malformed URL {candidate!r}: {e}") from e
    if parts.scheme.lower() not in ("http", "https"):
        raise InvalidUrlError(f"Unsupported URL scheme {parts.scheme!r} in {candidate!r}")
    if not parts.hostname:
        raise InvalidUrlError(f"URL has no host: {candidate!r}")
    if _has_forbidden_host_char(parts.hostname):
        raise InvalidUrlError(f"URL host contains forbidden characters: {candidate!r}")
    return parts


def _has_forbidden_host_char(hostname: str) -> bool:
    return any(ch in _FORBIDDEN_HOST_CHARS or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in hostname)


def _segments(path: str) -> list[str]:
    return [unquote(s) for s in path.split("/") if s]


def _last_segment(path: str) -> str:
    segs = _segments(path)
    return segs[-1] if segs else ""


def _extension(path: str) -> str:
    last = _last_segment(path)
    if "." not in last:
        return ""
    return last.rsplit(".", 1)[1].lower()


def _host_on(hostname: str, domain: str) -> bool:
    """True for *domain* itself or any subdomain of it."""
    return hostname == domain or hostname.endswith("." + domain)


# ---------------------------------------------------------------------------
# Repository platforms
# ---------------------------------------------------------------------------


def _repo_kind_from_rest(rest: list[str], *, wiki_markers: tuple[str, ...]) -> RepoKind:
    if not rest:
        return RepoKind.REPOSITORY_ROOT
    head = rest[0].lower()
    if head in wiki_markers:
        return RepoKind.WIKI_PAGE
    if head == "blob":
        return RepoKind.FILE_BLOB
    if head == "tree":
        return RepoKind.DIRECTORY
    return RepoKind.OTHER


def parse_repository(parts: SplitResult) -> RepositoryInfo | None:
    """Recognise GitHub / GitLab / Bitbucket URLs.  Returns None for anything else."""
    host = (parts.hostname or "").lower()
    segs = _segments(parts.path)

    # Generated-pages sites: <owner>.github.io/<repo>/..., <owner>.gitlab.io/<repo>/...
    for suffix, platform in ((".github.io", Platform.GITHUB), (".gitlab.io", Platform.GITLAB)):
        if host.endswith(suffix) and host != suffix.lstrip("."):
            owner = host[: -len(suffix)].split(".")[-1]
            repo = segs[0] if segs else ""
            rest = segs[1:] if segs else []
            return RepositoryInfo(
                platform=platform,
                owner=owner,
                repo_name=repo,
                kind=RepoKind.PAGES_SITE,
                sub_path="/" + "/".join(rest) if rest else "",
            )

    if host in ("github.com", "www.github.com"):
        platform = Platform.GITHUB
    elif host in ("gitlab.com", "www.gitlab.com"):
        platform = Platform.GITLAB
    elif host in ("bitbucket.org", "www.bitbucket.org"):
        platform = Platform.BITBUCKET
    else:
        return None

    if len(segs) < 2:
        return None  # profile page or site root, not a repository

    owner, repo = segs[0], segs[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    rest = segs[2:]

    if platform is Platform.GITHUB:
        kind = _repo_kind_from_rest(rest, wiki_markers=("wiki",))
    elif platform is Platform.GITLAB:
        if rest and rest[0] == "-":
            rest = rest[1:]
        kind = _repo_kind_from_rest(rest, wiki_markers=("wikis", "wiki"))
    else:
        if rest and rest[0].lower() == "src":
            # /src/<ref>/<path>: directories end with "/" or have no extension
            is_file = len(rest) > 2 and not parts.path.endswith("/") and "." in rest[-1]
            kind = RepoKind.FILE_BLOB if is_file else RepoKind.DIRECTORY
        else:
            kind = _repo_kind_from_rest(rest, wiki_markers=("wiki",))

    return RepositoryInfo(
        platform=platform,
        owner=owner,
        repo_name=repo,
        kind=kind,
        sub_path="/" + "/".join(segs[2:]) if len(segs) > 2 else "",
    )


def _repository_evidence(info: RepositoryInfo, path: str) -> tuple[list[Evidence], bool]:
    """Sub-case evidence for a repository URL.  Returns (evidence, strong_positive)."""
    evidence: list[Evidence] = []
    strong = False

    if info.is_wiki:
        evidence.append(Evidence(_SCORE_REPO_WIKI, f"{info.platform} wiki page (likely documentation)"))
        strong = True
    elif info.is_pages_site:
        evidence.append(Evidence(_SCORE_REPO_PAGES, f"{info.platform} Pages site (commonly used for documentation)"))
        strong = True
    elif info.is_readme_file:
        evidence.append(Evidence(_SCORE_REPO_README, f"{info.platform} README file (possible documentation)"))
    elif info.kind is RepoKind.FILE_BLOB and _extension(path) in DOC_FILE_EXTENSIONS:
        evidence.append(Evidence(_SCORE_REPO_DOC_BLOB, f"{info.platform} documentation file"))
    elif info.kind is RepoKind.REPOSITORY_ROOT:
        evidence.append(
            Evidence(
                _SCORE_REPO_ROOT,
                f"{info.platform} repository root (less likely to be dedicated documentation)",
            )
        )

    if info.repo_name and _REPO_NAME_DOC_RE.search(info.repo_name):
        evidence.append(Evidence(_SCORE_REPO_NAME, f"Repository name suggests documentation: {info.repo_name}"))

    return evidence, strong


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


def analyze_url(url: str | SplitResult) -> UrlAnalysis:
    """Run every URL rule against *url* and collect the evidence.

    Raises InvalidUrlError when *url* is a string that is not an absolute
    http(s) URL.
    """
    parts = url if isinstance(url, SplitResult) else validate_url(url)
    href = parts.geturl()
    hostname = (parts.hostname or "").lower()
    path = parts.path or "/"
    evidence: list[Evidence] = []
    strong_positive = False
    strong_negative = False

    # Rule 1: documentation subdomain, first match only
    for pattern in _DOC_HOST_PATTERNS:
        if pattern.search(hostname):
            evidence.append(Evidence(_SCORE_DOC_HOST, f"Hostname matches documentation pattern: {pattern.pattern}"))
            strong_positive = True
            break

    # Rule 2: documentation hosting platform, first match only
    for platform in DOC_PLATFORMS:
        if _host_on(hostname, platform):
            evidence.append(Evidence(_SCORE_DOC_PLATFORM, f"Hosted on documentation platform: {platform}"))
            strong_positive = True
            break

    repo_info = parse_repository(parts)
    # Owner/repo names are not path keywords; only look below them
    keyword_path = repo_info.sub_path if repo_info is not None else path

    # Rule 3: documentation path keywords
    matched = [
        seg
        for seg in dict.fromkeys(s.lower().split(".", 1)[0] for s in _segments(keyword_path))
        if seg in _DOC_PATH_KEYWORDS
    ]
    if matched:
        evidence.append(Evidence(_SCORE_DOC_PATH, f"Path contains documentation keyword(s): {', '.join(matched)}"))

    # Rule 4: documentation file extension
    ext = _extension(path)
    if ext in DOC_FILE_EXTENSIONS:
        evidence.append(Evidence(_SCORE_DOC_EXTENSION, f"Path ends with documentation file extension: .{ext}"))

    # Rule 5: commerce / marketing / account paths, first match only
    negative_reason = _non_doc_path_reason(keyword_path)
    if negative_reason:
        evidence.append(Evidence(_SCORE_NON_DOC_PATH, negative_reason))
        strong_negative = True

    # Rule 6: code-hosting platforms
    if repo_info is not None:
        repo_evidence, repo_strong = _repository_evidence(repo_info, path)
        evidence.extend(repo_evidence)
        strong_positive = strong_positive or repo_strong
        category = UrlCategory.REPOSITORY_LISTING
    else:
        category = UrlCategory.DEDICATED_DOC_SITE

    analysis = UrlAnalysis(
        url=href,
        category=category,
        evidence=tuple(evidence),
        repo_info=repo_info,
        strong_positive=strong_positive,
        strong_negative=strong_negative,
    )
    logger.debug(
        "URL analysis: url=%s category=%s score=%d strong_pos=%s strong_neg=%s",
        href,
        category.value,
        analysis.total_score,
        strong_positive,
        strong_negative,
    )
    return analysis


def _non_doc_path_reason(path: str) -> str:
    """Reason string for the first matching non-documentation path rule, or ""."""
    segs = {s.lower() for s in _segments(path)}
    for keyword in _NON_DOC_SEGMENTS:
        if keyword in segs:
            return f"Path matches non-documentation keyword: /{keyword}"
    m = _SINGLE_ARTICLE_RE.search(path)
    if m:
        return f"Path is a single {m.group(1).lower()} article"
    m = _TERMINAL_NON_DOC_RE.search(path)
    if m:
        return f"Path is an /{m.group(1).lower()} page"
    return ""
