# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Content feature extraction from fetched HTML.

Two branches, chosen by the URL category decided upstream:

  * repository listing — directory entries, markdown count, doc/language
    folders, README text (GitHub, GitLab, Bitbucket markup + GitHub's
    embedded React JSON payload)
  * dedicated doc site — title/meta/headings, sidebar, code blocks, search,
    version selector, main-content sample, "last updated", pagination,
    commerce phrases

Parsing uses lxml with a recovering parser; selectors are class/role/tag
tests compiled to XPath once at import time.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import lxml.html
from lxml import etree

from . import Evidence
from .url_patterns import RepoKind, UrlAnalysis, UrlCategory

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_CHARS = 2000
_MAX_HEADINGS = 10
_MAX_SIDEBAR_ITEMS = 15
_MAX_STRUCTURE_ENTRIES = 100

# ---------------------------------------------------------------------------
# Feature records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PageFeatures:
    """Structural features of a dedicated documentation-site page."""

    title: str = ""
    meta_description: str = ""
    first_heading: str = ""
    headings: tuple[str, ...] = ()
    has_sidebar: bool = False
    sidebar_items: tuple[str, ...] = ()
    code_block_count: int = 0
    has_search: bool = False
    has_version_selector: bool = False
    content_sample: str = ""
    has_last_updated: bool = False
    has_pagination: bool = False

    @property
    def has_code_blocks(self) -> bool:
        return self.code_block_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "metaDescription": self.meta_description,
            "firstHeading": self.first_heading,
            "headings": list(self.headings),
            "hasSidebar": self.has_sidebar,
            "sidebarItems": list(self.sidebar_items),
            "hasCodeBlocks": self.has_code_blocks,
            "codeBlockCount": self.code_block_count,
            "hasSearch": self.has_search,
            "hasVersionSelector": self.has_version_selector,
            "hasLastUpdated": self.has_last_updated,
            "hasPagination": self.has_pagination,
        }


@dataclass(frozen=True, slots=True)
class RepoFeatures:
    """Features of a repository listing page."""

    structure: tuple[str, ...] = ()  # "Dir: docs", "File: README.md"
    markdown_file_count: int = 0
    doc_directories: tuple[str, ...] = ()
    language_folders: tuple[str, ...] = ()
    readme_sample: str = ""

    @property
    def doc_directory_count(self) -> int:
        return len(self.doc_directories)

    def to_dict(self) -> dict[str, Any]:
        return {
            "structure": list(self.structure),
            "markdownFileCount": self.markdown_file_count,
            "docDirectories": list(self.doc_directories),
            "languageFolders": list(self.language_folders),
            "hasReadme": bool(self.readme_sample),
        }


@dataclass(frozen=True, slots=True)
class ContentAnalysis:
    """Evidence plus the feature record for exactly one branch."""

    evidence: tuple[Evidence, ...]
    page_features: PageFeatures | None = None
    repo_features: RepoFeatures | None = None

    @property
    def total_score(self) -> int:
        return sum(e.score for e in self.evidence)


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------


def _cls(name: str) -> str:
    """XPath predicate equivalent to the CSS class selector ``.name``."""
    return f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')"


def _any_cls(*names: str) -> str:
    return " or ".join(_cls(n) for n in names)


def _lower(expr: str) -> str:
    return f"translate({expr}, 'ABCDEFGHIJKLMNOPQRSTUVWXYZ', 'abcdefghijklmnopqrstuvwxyz')"


_SIDEBAR_XPATH = etree.XPath(
    f"//*[{_any_cls('sidebar', 'toc', 'nav-sidebar', 'navigation', 'docs-menu', 'doc-sidebar')}]"
    f" | //nav[{_cls('menu')}] | //aside"
)
_CODE_XPATH = etree.XPath(f"//pre/code | //*[{_any_cls('highlight', 'code-sample', 'code-example', 'hljs')}]")
_SEARCH_XPATH = etree.XPath(
    f"//input[{_lower('@type')}='search']"
    f" | //*[{_any_cls('search-box', 'search-input', 'search-form')}]"
    f" | //*[@placeholder and contains({_lower('@placeholder')}, 'search')]"
)
_VERSION_XPATH = etree.XPath(
    f"//*[{_cls('version-selector')}]"
    f" | //*[@aria-label and contains({_lower('@aria-label')}, 'version')]"
    f" | //select[contains({_lower('.')}, 'version')]"
)
_PAGINATION_XPATH = etree.XPath(f"//*[{_any_cls('pagination', 'pager')}] | //a[@rel='next' or @rel='prev']")
_HEADINGS_XPATH = etree.XPath("//h1 | //h2 | //h3")
_META_DESCRIPTION_XPATH = etree.XPath(f"//meta[{_lower('@name')}='description']/@content")

_CONTENT_CONTAINERS: tuple[etree.XPath, ...] = tuple(
    etree.XPath(expr)
    for expr in (
        "//main",
        "//article",
        f"//*[{_cls('content')}]",
        f"//*[{_cls('main-content')}]",
        f"//*[{_cls('documentation-content')}]",
        f"//*[{_cls('docs-content')}]",
        f"//*[{_cls('markdown-body')}]",
    )
)

_README_CONTAINERS: tuple[etree.XPath, ...] = tuple(
    etree.XPath(expr)
    for expr in (
        f"//*[{_cls('markdown-body')}]",
        "//*[@id='readme']",
        f"//*[{_cls('readme')}]",
        f"//*[{_cls('wiki-body')}]",
    )
)

# Listing rows, most specific first; the first selector yielding rows wins
_LISTING_ROWS: tuple[tuple[str, etree.XPath], ...] = (
    ("github-react", etree.XPath(f"//tr[{_cls('react-directory-row')}]")),
    ("github-legacy", etree.XPath(f"//*[{_cls('js-navigation-item')}]")),
    ("gitlab", etree.XPath(f"//tr[{_cls('tree-item')}]")),
    ("bitbucket", etree.XPath("//tr[@data-qa='repo-file-browser-row'] | //*[@data-testid='file-tree-row']")),
    ("generic", etree.XPath("//*[@role='row']")),
)
_ROW_ANCHORS: tuple[etree.XPath, ...] = (
    etree.XPath(".//*[@role='rowheader']//a[@href]"),
    etree.XPath(f".//a[@href and {_cls('Link--primary')}]"),
    etree.XPath(f".//a[@href and {_cls('tree-item-link')}]"),
    etree.XPath(".//a[@href]"),
)
_ROW_ICON_LABEL = etree.XPath(".//svg/@aria-label")

_STRIP_TAGS = ("script", "style", "noscript", "template")

_EMBEDDED_JSON_RE = re.compile(
    r'<script[^>]*type=["\']application/json["\'][^>]*>(.*?)</script>',
    re.DOTALL | re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

_DOC_KEYWORD_RE = re.compile(
    r"\b(documentation|docs?|guides?|tutorials?|reference|manual|api|help|learn)\b",
    re.IGNORECASE,
)
_README_DOC_KEYWORDS: tuple[str, ...] = ("documentation", "docs", "guide", "tutorial", "reference", "manual", "api")
_README_USAGE_RE = re.compile(
    r"how to|installation|getting started|usage|example|setup|configuration",
    re.IGNORECASE,
)
_SIDEBAR_SECTION_RE = re.compile(
    r"getting started|introduction|overview|guide|\bapi\b|reference|examples?|tutorial",
    re.IGNORECASE,
)
_LAST_UPDATED_RE = re.compile(r"last updated|updated on|published on|last modified", re.IGNORECASE)
# Whole-label match only: "Next page", "« Previous"; not "Next.js"
_PAGINATION_TEXT_RE = re.compile(r"^\W*(next|previous|prev)(\s+page)?\W*$", re.IGNORECASE)

NON_DOC_PHRASES: tuple[str, ...] = (
    # e-commerce
    "add to cart",
    "buy now",
    "add to basket",
    "shopping cart",
    "checkout",
    # marketing
    "subscribe now",
    "sign up today",
    "limited time offer",
    # social / blog
    "leave a comment",
    "share this post",
)

_DOC_DIR_RE = re.compile(r"^(docs?|documentation|wiki)$|^(guide|api|reference)", re.IGNORECASE)
_LANG_DIR_RE = re.compile(
    r"^(en|fr|es|de|it|pt|ru|zh|ja|ko|tr|ar|nl|pl|sv|uk|vi|id|cs|he|hi|fa)([-_][a-z]{2,4})?$",
    re.IGNORECASE,
)
_MARKDOWN_SUFFIXES: tuple[str, ...] = (".md", ".markdown", ".mdx")
_MARKDOWN_THRESHOLD = 3  # strictly more than this many files counts

# Scores
_SCORE_TITLE = 2
_SCORE_META = 1
_SCORE_HEADINGS = 1
_SCORE_SIDEBAR = 2
_SCORE_SIDEBAR_SECTIONS = 2
_SCORE_CODE = 2
_SCORE_SEARCH = 1
_SCORE_VERSION = 2
_SCORE_LAST_UPDATED = 1
_SCORE_PAGINATION = 1
_SCORE_NON_DOC_PHRASE = -2
_SCORE_MARKDOWN_FILES = 2
_SCORE_DOC_DIRS = 3
_SCORE_LANG_DIRS = 2
_SCORE_README_KEYWORDS = 1
_SCORE_README_USAGE = 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _normalize_ws(text: str) -> str:
    return " ".join(text.split())


def _text(el: Any) -> str:
    return _normalize_ws(el.text_content() or "") if el is not None else ""


def parse_html(raw_html: str) -> lxml.html.HtmlElement | None:
    """Parse *raw_html* leniently; scripts and styles are dropped.  None on empty input."""
    if not raw_html or not raw_html.strip():
        return None
    parser = lxml.html.HTMLParser(recover=True, encoding="utf-8")
    try:
        doc = lxml.html.document_fromstring(raw_html.encode("utf-8", errors="replace"), parser=parser)
    except (etree.LxmlError, ValueError):
        logger.debug("HTML parse failed", exc_info=True)
        return None
    for el in list(doc.iter(*_STRIP_TAGS)):
        el.drop_tree()
    return doc


def _first_text(doc: lxml.html.HtmlElement, containers: tuple[etree.XPath, ...]) -> str:
    for xp in containers:
        matches = xp(doc)
        if matches:
            text = _text(matches[0])
            if text:
                return text
    return ""


def _body_text(doc: lxml.html.HtmlElement) -> str:
    body = doc.find("body")
    return _text(body if body is not None else doc)


# ---------------------------------------------------------------------------
# Dedicated documentation site branch
# ---------------------------------------------------------------------------


def extract_page_features(
    doc: lxml.html.HtmlElement, *, max_sample_chars: int = DEFAULT_SAMPLE_CHARS
) -> tuple[PageFeatures, list[Evidence]]:
    """Extract PageFeatures and their evidence from a parsed page."""
    evidence: list[Evidence] = []

    title_el = doc.find(".//title")
    title = _text(title_el)
    meta = _META_DESCRIPTION_XPATH(doc)
    meta_description = _normalize_ws(str(meta[0])) if meta else ""
    heading_els = _HEADINGS_XPATH(doc)
    headings = tuple(t for t in (_text(h) for h in heading_els) if t)[:_MAX_HEADINGS]
    h1 = doc.find(".//h1")
    first_heading = _text(h1)

    if _DOC_KEYWORD_RE.search(title):
        evidence.append(Evidence(_SCORE_TITLE, "Page title contains documentation keyword"))
    if _DOC_KEYWORD_RE.search(meta_description):
        evidence.append(Evidence(_SCORE_META, "Meta description contains documentation keyword"))
    if any(_DOC_KEYWORD_RE.search(h) for h in headings):
        evidence.append(Evidence(_SCORE_HEADINGS, "Headings contain documentation keyword"))

    # Sidebar / navigation / TOC
    sidebars = _SIDEBAR_XPATH(doc)
    sidebar_items: list[str] = []
    for container in sidebars:
        for a in container.iter("a"):
            label = _text(a)
            if label and label not in sidebar_items:
                sidebar_items.append(label)
            if len(sidebar_items) >= _MAX_SIDEBAR_ITEMS:
                break
        if len(sidebar_items) >= _MAX_SIDEBAR_ITEMS:
            break
    if sidebars:
        evidence.append(Evidence(_SCORE_SIDEBAR, "Page has documentation-style sidebar/navigation"))
        if any(_SIDEBAR_SECTION_RE.search(item) for item in sidebar_items):
            evidence.append(Evidence(_SCORE_SIDEBAR_SECTIONS, "Sidebar contains typical documentation sections"))

    code_count = len(_CODE_XPATH(doc))
    if code_count:
        evidence.append(Evidence(_SCORE_CODE, f"Page contains code blocks/examples ({code_count})"))

    has_search = bool(_SEARCH_XPATH(doc))
    if has_search:
        evidence.append(Evidence(_SCORE_SEARCH, "Page has search functionality"))

    has_version = bool(_VERSION_XPATH(doc))
    if has_version:
        evidence.append(Evidence(_SCORE_VERSION, "Page has version selector"))

    main_text = _first_text(doc, _CONTENT_CONTAINERS) or _body_text(doc)
    content_sample = main_text[:max_sample_chars]

    has_last_updated = bool(_LAST_UPDATED_RE.search(main_text))
    if has_last_updated:
        evidence.append(Evidence(_SCORE_LAST_UPDATED, "Page shows last updated/modified date"))

    has_pagination = bool(_PAGINATION_XPATH(doc)) or any(
        _PAGINATION_TEXT_RE.match(_text(a)) for a in doc.iter("a")
    )
    if has_pagination:
        evidence.append(Evidence(_SCORE_PAGINATION, "Page has pagination or next/previous navigation"))

    sample_lower = content_sample.lower()
    for phrase in NON_DOC_PHRASES:
        if phrase in sample_lower:
            evidence.append(Evidence(_SCORE_NON_DOC_PHRASE, f'Page contains non-documentation element: "{phrase}"'))
            break

    features = PageFeatures(
        title=title,
        meta_description=meta_description,
        first_heading=first_heading,
        headings=headings,
        has_sidebar=bool(sidebars),
        sidebar_items=tuple(sidebar_items),
        code_block_count=code_count,
        has_search=has_search,
        has_version_selector=has_version,
        content_sample=content_sample,
        has_last_updated=has_last_updated,
        has_pagination=has_pagination,
    )
    return features, evidence


# ---------------------------------------------------------------------------
# Repository listing branch
# ---------------------------------------------------------------------------


def _find_tree_items(data: Any, max_depth: int = 8) -> list[dict] | None:
    """Locate ``{"tree": {"items": [...]}}`` inside GitHub's embedded React payload."""
    if max_depth <= 0:
        return None
    if isinstance(data, dict):
        tree = data.get("tree")
        if isinstance(tree, dict) and isinstance(tree.get("items"), list):
            return [i for i in tree["items"] if isinstance(i, dict)]
        for value in data.values():
            found = _find_tree_items(value, max_depth - 1)
            if found is not None:
                return found
    elif isinstance(data, list):
        for item in data:
            found = _find_tree_items(item, max_depth - 1)
            if found is not None:
                return found
    return None


def _embedded_entries(raw_html: str) -> list[tuple[bool, str]]:
    """(is_dir, name) entries from JSON payloads embedded in the page."""
    for m in _EMBEDDED_JSON_RE.finditer(raw_html):
        try:
            data = json.loads(m.group(1))
        except (json.JSONDecodeError, TypeError):
            continue
        items = _find_tree_items(data)
        if items:
            return [
                (str(i.get("contentType", "")).lower() == "directory", str(i["name"]))
                for i in items
                if i.get("name")
            ]
    return []


def _row_entry(row: lxml.html.HtmlElement) -> tuple[bool, str] | None:
    anchor = None
    for xp in _ROW_ANCHORS:
        found = xp(row)
        if found:
            anchor = found[0]
            break
    if anchor is None:
        return None
    name = _text(anchor) or _normalize_ws(anchor.get("title", ""))
    if not name or name == ".." or name.lower().startswith("go to parent"):
        return None

    labels = [str(lbl).lower() for lbl in _ROW_ICON_LABEL(row)]
    if any(lbl in ("directory", "folder") for lbl in labels):
        return True, name
    if any(lbl == "file" for lbl in labels):
        return False, name

    href = anchor.get("href", "")
    if "/tree/" in href:
        return True, name
    if "/blob/" in href:
        return False, name
    if "/src/" in href:
        return href.endswith("/"), name
    return False, name


def _listing_entries(doc: lxml.html.HtmlElement, raw_html: str) -> list[tuple[bool, str]]:
    for source, xp in _LISTING_ROWS:
        rows = xp(doc)
        if not rows:
            continue
        entries = [e for e in (_row_entry(r) for r in rows) if e is not None]
        if entries:
            logger.debug("Listing rows via %s selector: %d", source, len(entries))
            return list(dict.fromkeys(entries))
    return list(dict.fromkeys(_embedded_entries(raw_html)))


def extract_repo_features(
    doc: lxml.html.HtmlElement,
    raw_html: str,
    *,
    scan_listing: bool = True,
    max_sample_chars: int = DEFAULT_SAMPLE_CHARS,
) -> tuple[RepoFeatures, list[Evidence]]:
    """Extract RepoFeatures and their evidence from a repository page."""
    evidence: list[Evidence] = []
    entries = _listing_entries(doc, raw_html) if scan_listing else []

    structure: list[str] = []
    markdown_files = 0
    doc_dirs: list[str] = []
    lang_dirs: list[str] = []
    for is_dir, name in entries:
        if len(structure) < _MAX_STRUCTURE_ENTRIES:
            structure.append(f"{'Dir' if is_dir else 'File'}: {name}")
        if is_dir:
            if _DOC_DIR_RE.search(name):
                doc_dirs.append(name)
            if _LANG_DIR_RE.match(name):
                lang_dirs.append(name)
        elif name.lower().endswith(_MARKDOWN_SUFFIXES):
            markdown_files += 1

    if markdown_files > _MARKDOWN_THRESHOLD:
        evidence.append(
            Evidence(_SCORE_MARKDOWN_FILES, f"Repository contains multiple markdown files ({markdown_files})")
        )
    if doc_dirs:
        evidence.append(
            Evidence(_SCORE_DOC_DIRS, f"Repository contains documentation directories: {', '.join(doc_dirs)}")
        )
    if lang_dirs:
        evidence.append(
            Evidence(_SCORE_LANG_DIRS, f"Repository contains language folders: {', '.join(lang_dirs)}")
        )

    readme = _first_text(doc, _README_CONTAINERS)
    if readme:
        readme_lower = readme.lower()
        present = [kw for kw in _README_DOC_KEYWORDS if re.search(rf"\b{kw}\b", readme_lower)]
        if present:
            evidence.append(
                Evidence(_SCORE_README_KEYWORDS, f"README contains documentation keywords: {', '.join(present)}")
            )
        if _README_USAGE_RE.search(readme):
            evidence.append(Evidence(_SCORE_README_USAGE, "README contains usage instructions"))

    features = RepoFeatures(
        structure=tuple(structure),
        markdown_file_count=markdown_files,
        doc_directories=tuple(doc_dirs),
        language_folders=tuple(lang_dirs),
        readme_sample=readme[:max_sample_chars],
    )
    return features, evidence


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def extract_features(
    raw_html: str,
    url_analysis: UrlAnalysis,
    *,
    max_sample_chars: int = DEFAULT_SAMPLE_CHARS,
) -> ContentAnalysis:
    """Branch on the URL category and extract content evidence from *raw_html*.

    Unparseable or empty HTML yields no evidence and an empty feature record
    for the branch, never an exception.
    """
    doc = parse_html(raw_html)
    is_repo = url_analysis.category is UrlCategory.REPOSITORY_LISTING

    if doc is None:
        logger.debug("Empty or unparseable content for %s", url_analysis.url)
        if is_repo:
            return ContentAnalysis(evidence=(), repo_features=RepoFeatures())
        return ContentAnalysis(evidence=(), page_features=PageFeatures())

    if is_repo:
        info = url_analysis.repo_info
        scan_listing = info is None or info.kind is not RepoKind.FILE_BLOB
        repo_features, evidence = extract_repo_features(
            doc, raw_html, scan_listing=scan_listing, max_sample_chars=max_sample_chars
        )
        return ContentAnalysis(evidence=tuple(evidence), repo_features=repo_features)

    page_features, evidence = extract_page_features(doc, max_sample_chars=max_sample_chars)
    return ContentAnalysis(evidence=tuple(evidence), page_features=page_features)
