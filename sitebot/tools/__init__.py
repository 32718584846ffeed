"""Tool framework: builds the registry of website tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sitebot.tools.registry import (
    ToolArgumentsError,
    ToolError,
    ToolRegistry,
    UnknownToolError,
)
from sitebot.tools.site_tools import FetchWebpageContentTool, SearchWebsiteUrlsTool

if TYPE_CHECKING:
    from sitebot.scraper import ContentFetcher
    from sitebot.sitemap import UrlIndex


def create_registry(
    index: UrlIndex,
    fetcher: ContentFetcher,
    *,
    site_name: str = "the company",
    max_fetch_urls: int = 3,
    max_concurrent: int = 3,
) -> ToolRegistry:
    """Register the URL search and page fetch tools against live components."""
    registry = ToolRegistry()
    registry.register(SearchWebsiteUrlsTool(index, site_name=site_name))
    registry.register(
        FetchWebpageContentTool(
            fetcher,
            site_name=site_name,
            max_urls=max_fetch_urls,
            max_concurrent=max_concurrent,
        )
    )
    return registry


__all__ = [
    "ToolArgumentsError",
    "ToolError",
    "ToolRegistry",
    "UnknownToolError",
    "create_registry",
]
