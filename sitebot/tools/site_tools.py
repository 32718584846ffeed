"""Website tools: URL search over the sitemap index and page content fetch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import Field

from sitebot.tools.base import BaseTool, ToolParams, ToolResult

if TYPE_CHECKING:
    from sitebot.scraper import ContentFetcher
    from sitebot.sitemap import UrlIndex

logger = logging.getLogger(__name__)

MAX_FETCH_URLS = 3
DEFAULT_SEARCH_LIMIT = 5


class SearchWebsiteUrlsParams(ToolParams):
    query: str = Field(
        description=(
            "The search query to find relevant URLs "
            '(e.g., "wordpress hosting", "SSL certificate", "domain transfer")'
        ),
    )
    limit: int = Field(
        default=DEFAULT_SEARCH_LIMIT,
        description="Maximum number of URLs to return (default: 5)",
    )


class FetchWebpageContentParams(ToolParams):
    urls: list[str] = Field(
        description="Array of URLs to fetch content from",
        min_length=1,
    )


class SearchWebsiteUrlsTool(BaseTool):
    name = "search_website_urls"
    params_model = SearchWebsiteUrlsParams

    def __init__(self, index: UrlIndex, site_name: str = "the company") -> None:
        self.index = index
        self.description = (
            f"Search the {site_name} website sitemap to find relevant URLs based on a query. "
            "Use this to find pages, blog posts, or products related to the user's question."
        )

    async def execute(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> ToolResult:
        limit = limit or DEFAULT_SEARCH_LIMIT
        results = self.index.search(query, limit)
        logger.info("Found %d relevant URLs for %r", len(results), query)
        return ToolResult(
            data={
                "results": [r.to_dict() for r in results],
                "count": len(results),
                "query": query,
            }
        )


class FetchWebpageContentTool(BaseTool):
    name = "fetch_webpage_content"
    params_model = FetchWebpageContentParams

    def __init__(
        self,
        fetcher: ContentFetcher,
        site_name: str = "the company",
        max_urls: int = MAX_FETCH_URLS,
        max_concurrent: int = 3,
    ) -> None:
        self.fetcher = fetcher
        self.max_urls = max_urls
        self.max_concurrent = max_concurrent
        self.description = (
            f"Fetch the full content of webpages from the {site_name} website. "
            "Use this after finding relevant URLs to get detailed information "
            "to answer the user's question."
        )

    async def execute(self, urls: list[str]) -> ToolResult:
        limited = urls[: self.max_urls]
        if len(urls) > self.max_urls:
            logger.info("Limiting from %d to %d URLs", len(urls), self.max_urls)

        pages = await self.fetcher.fetch_many(limited, max_concurrent=self.max_concurrent)
        logger.info("Fetched %d webpages", len(pages))
        return ToolResult(data={"pages": [p.to_dict() for p in pages], "count": len(pages)})
