"""Site URL index: loads sitemap exports and ranks URLs for a query.

The ranking is a lightweight lexical heuristic over keywords derived from
each URL path. It is not semantic search; unusual phrasings will miss.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

PHRASE_MATCH_SCORE = 100
TOKEN_MATCH_SCORE = 10
CATEGORY_BONUS = 20
MIN_TOKEN_LENGTH = 3

PRODUCT_HINTS = ("product", "pricing", "buy")
BLOG_HINTS = ("blog", "article", "how to")


class UrlCategory(StrEnum):
    PAGE = "page"
    BLOG = "blog"
    PRODUCT = "product"
    GENERAL = "general"


@dataclass(frozen=True)
class UrlRecord:
    """A known site URL with the keyword text used for ranking."""

    url: str
    path: str
    category: UrlCategory
    keywords: str
    title: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["category"] = str(self.category)
        return data


@dataclass(frozen=True)
class ScoredUrlRecord(UrlRecord):
    """A UrlRecord paired with its relevance score for one query."""

    score: int = 0


def derive_keywords(path: str) -> str:
    """Turn a URL path into lower-case, space-separated keyword text."""
    return path.replace("/", " ").replace("-", " ").lower().strip()


def generate_title(path: str) -> str:
    """Build a readable title from a URL path, e.g. ``ssl-certificates/`` -> ``Ssl Certificates``."""
    words = path.replace("/", "").replace("-", " ").split(" ")
    title = " ".join(word[:1].upper() + word[1:] for word in words)
    return title or "Home"


def category_for_file(filename: str) -> UrlCategory:
    """Infer the URL category from a sitemap file name."""
    if "page" in filename:
        return UrlCategory.PAGE
    if "post" in filename:
        return UrlCategory.BLOG
    if "product" in filename:
        return UrlCategory.PRODUCT
    return UrlCategory.GENERAL


def make_record(url: str, category: UrlCategory, base_url: str) -> UrlRecord:
    path = url.replace(base_url, "", 1) if base_url else url
    return UrlRecord(
        url=url,
        path=path,
        category=category,
        keywords=derive_keywords(path),
        title=generate_title(path),
    )


def _extract_urls(content: str) -> list[str]:
    """Pull URLs out of an XML sitemap or a plain tab-separated export."""
    if "<loc>" in content:
        soup = BeautifulSoup(content, "html.parser")
        return [loc.get_text(strip=True) for loc in soup.find_all("loc") if loc.get_text(strip=True)]

    urls: list[str] = []
    for line in content.splitlines():
        if line.startswith("https://"):
            urls.append(line.split("\t")[0].strip())
    return urls


def parse_sitemap_content(content: str, filename: str, base_url: str) -> list[UrlRecord]:
    """Parse one sitemap document into UrlRecords."""
    category = category_for_file(filename)
    return [make_record(url, category, base_url) for url in _extract_urls(content)]


def load_sitemaps(directory: Path, files: Iterable[str], base_url: str) -> list[UrlRecord]:
    """Read every sitemap file in *files* from *directory*.

    Unreadable files are logged and skipped so a single missing export
    does not stop startup.
    """
    records: list[UrlRecord] = []
    for name in files:
        file_path = directory / name
        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Error reading sitemap %s: %s", file_path, exc)
            continue
        parsed = parse_sitemap_content(content, name, base_url)
        logger.debug("Parsed %d URLs from %s", len(parsed), name)
        records.extend(parsed)

    logger.info("Loaded %d URLs from sitemaps", len(records))
    return records


def score_record(record: UrlRecord, query: str, tokens: list[str]) -> int:
    """Score one record against a lower-cased query and its tokens."""
    score = 0
    if query in record.keywords:
        score += PHRASE_MATCH_SCORE

    for token in tokens:
        if token in record.keywords:
            score += TOKEN_MATCH_SCORE

    if record.category is UrlCategory.PRODUCT and any(h in query for h in PRODUCT_HINTS):
        score += CATEGORY_BONUS
    if record.category is UrlCategory.BLOG and any(h in query for h in BLOG_HINTS):
        score += CATEGORY_BONUS

    return score


class UrlIndex:
    """Immutable list of site URLs with a relevance search."""

    def __init__(self, records: Iterable[UrlRecord]) -> None:
        self._records: tuple[UrlRecord, ...] = tuple(records)

    @classmethod
    def from_sitemaps(cls, directory: Path, files: Iterable[str], base_url: str) -> UrlIndex:
        return cls(load_sitemaps(directory, files, base_url))

    def __len__(self) -> int:
        return len(self._records)

    def get_all_urls(self) -> tuple[UrlRecord, ...]:
        return self._records

    def search(self, query: str, limit: int = 5) -> list[ScoredUrlRecord]:
        """Return up to *limit* records ranked by descending score.

        Records scoring zero are dropped. The sort is stable, so ties
        keep their index order.
        """
        if limit <= 0:
            return []

        query_lower = query.lower()
        tokens = [t for t in query_lower.split() if len(t) >= MIN_TOKEN_LENGTH]

        scored = [
            ScoredUrlRecord(**vars(record), score=score)
            for record in self._records
            if (score := score_record(record, query_lower, tokens)) > 0
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:limit]
