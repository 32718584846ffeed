"""Page fetcher: downloads site pages and extracts their readable text."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_CHARS = 3000
DEFAULT_MAX_CONCURRENT = 3

# Removed before any text is read.
NOISE_SELECTOR = "script, style, nav, footer, header, aside, .cookie-notice, .advertisement"

# Tried in order; the first one yielding text wins.
CONTENT_SELECTORS = (
    "main",
    "article",
    ".entry-content",
    ".post-content",
    ".content",
    "#content",
    ".main-content",
)

_WHITESPACE_RE = re.compile(r"\s+")


class FetchError(Exception):
    """A page could not be downloaded or parsed."""

    def __init__(self, url: str, cause: BaseException | str) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to fetch content from {url}: {cause}")


@dataclass(frozen=True)
class PageContent:
    url: str
    title: str
    description: str
    content: str
    fetched_at: datetime

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["fetched_at"] = self.fetched_at.isoformat()
        return data


@dataclass(frozen=True)
class FetchFailure:
    """Stands in for a PageContent when one URL in a batch fails."""

    url: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _is_html(content_type: str) -> bool:
    """Check if a Content-Type header value indicates HTML.

    A missing header is given the benefit of the doubt.
    """
    ct = content_type.lower().split(";")[0].strip()
    return ct in ("", "text/html", "application/xhtml+xml")


def _clean(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_page(html: str, url: str, max_chars: int = DEFAULT_MAX_CHARS) -> PageContent:
    """Extract title, meta description and main text from an HTML document."""
    soup = BeautifulSoup(html, "html.parser")

    for element in soup.select(NOISE_SELECTOR):
        element.decompose()

    title_tag = soup.find("title")
    title = title_tag.get_text() if title_tag else ""
    if not title.strip():
        h1 = soup.find("h1")
        title = h1.get_text() if h1 else ""

    meta = soup.find("meta", attrs={"name": "description"})
    description = meta.get("content", "") if meta else ""

    content = ""
    for selector in CONTENT_SELECTORS:
        matches = soup.select(selector)
        if not matches:
            continue
        content = _clean(" ".join(m.get_text(" ") for m in matches))
        if content:
            break

    if not content:
        root = soup.body or soup
        content = _clean(root.get_text(" "))

    return PageContent(
        url=url,
        title=_clean(title),
        description=str(description).strip(),
        content=content[:max_chars],
        fetched_at=datetime.now(UTC),
    )


class ContentFetcher:
    """Fetches pages and keeps every successful result for the process lifetime.

    Cached pages are never refreshed. With ``max_cache_entries`` set above
    zero the oldest entry is evicted once the cache is full.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_chars: int = DEFAULT_MAX_CHARS,
        max_cache_entries: int = 0,
        user_agent: str = BROWSER_USER_AGENT,
    ) -> None:
        self.timeout = timeout
        self.max_chars = max_chars
        self.max_cache_entries = max_cache_entries
        self.user_agent = user_agent
        self._cache: dict[str, PageContent] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cached(self, url: str) -> PageContent | None:
        return self._cache.get(url)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Page cache cleared")

    def _store(self, page: PageContent) -> None:
        if self.max_cache_entries > 0 and page.url not in self._cache:
            while len(self._cache) >= self.max_cache_entries:
                evicted = next(iter(self._cache))
                del self._cache[evicted]
                logger.debug("Evicted %s from page cache", evicted)
        self._cache[page.url] = page

    async def fetch_one(self, url: str) -> PageContent:
        """Return the page for *url*, from cache when possible.

        Raises:
            FetchError: on any network, status or parse failure. Failures
                are not cached.
        """
        cached = self._cache.get(url)
        if cached is not None:
            logger.info("Cache hit for %s", url)
            return cached

        logger.info("Fetching %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                max_redirects=5,
            ) as client:
                resp = await client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(url, f"timed out after {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, exc) from exc

        if not resp.is_success:
            raise FetchError(url, f"HTTP {resp.status_code}")

        content_type = resp.headers.get("content-type", "")
        if not _is_html(content_type):
            raise FetchError(url, f"not an HTML page (Content-Type: {content_type})")

        try:
            page = await asyncio.to_thread(extract_page, resp.text, url, self.max_chars)
        except Exception as exc:
            raise FetchError(url, exc) from exc

        self._store(page)
        return page

    async def _fetch_or_failure(self, url: str) -> PageContent | FetchFailure:
        try:
            return await self.fetch_one(url)
        except FetchError as exc:
            logger.warning("%s", exc)
            return FetchFailure(url=url, error=str(exc))

    async def fetch_many(
        self,
        urls: list[str],
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    ) -> list[PageContent | FetchFailure]:
        """Fetch *urls* in batches of *max_concurrent*.

        Each batch runs concurrently and completes before the next starts.
        The result has the same length and order as *urls*.
        """
        batch_size = max(1, max_concurrent)
        results: list[PageContent | FetchFailure] = []
        for start in range(0, len(urls), batch_size):
            batch = urls[start : start + batch_size]
            results.extend(await asyncio.gather(*(self._fetch_or_failure(u) for u in batch)))
        return results
