"""Shared test fixtures."""

from __future__ import annotations

import copy
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from sitebot.scraper import FetchFailure
from sitebot.sitemap import UrlCategory, UrlIndex, UrlRecord, make_record

BASE_URL = "https://www.vsf.technology/"


def record(path: str, category: UrlCategory = UrlCategory.PAGE) -> UrlRecord:
    return make_record(BASE_URL + path, category, BASE_URL)


@pytest.fixture
def records() -> list[UrlRecord]:
    return [
        record("wordpress-hosting/"),
        record("blog/wordpress-tips/", UrlCategory.BLOG),
        record("ssl-certificates/"),
        record("vps-hosting/", UrlCategory.PRODUCT),
        record("domain-transfer/"),
        record("blog/how-to-transfer-a-domain/", UrlCategory.BLOG),
    ]


@pytest.fixture
def index(records: list[UrlRecord]) -> UrlIndex:
    return UrlIndex(records)


def answer(content: str) -> dict[str, Any]:
    """An assistant message with a plain answer."""
    return {"role": "assistant", "content": content}


def tool_request(*calls: tuple[str, str, dict[str, Any] | str]) -> dict[str, Any]:
    """An assistant message requesting ``(id, name, arguments)`` tool calls."""
    return {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {
                "id": call_id,
                "type": "function",
                "function": {
                    "name": name,
                    "arguments": args if isinstance(args, str) else json.dumps(args),
                },
            }
            for call_id, name, args in calls
        ],
    }


class RecordingClient:
    """Stands in for OpenRouterClient, replaying scripted replies.

    Each call's messages are deep-copied so later mutation by the
    orchestrator does not rewrite what was sent.
    """

    def __init__(self, replies: list[Any]) -> None:
        self.sent: list[list[dict[str, Any]]] = []
        self.tools: list[list[dict[str, Any]] | None] = []
        self._replies = list(replies)
        self.call_model = AsyncMock(side_effect=self._reply)

    async def _reply(self, messages, tools=None):
        self.sent.append(copy.deepcopy(messages))
        self.tools.append(tools)
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return copy.deepcopy(reply)


@pytest.fixture
def fetcher() -> MagicMock:
    """A ContentFetcher double whose fetch_many echoes the URLs back."""
    mock = MagicMock()
    mock.fetch_many = AsyncMock(
        side_effect=lambda urls, max_concurrent=3: [
            FetchFailure(url=u, error="not fetched in tests") for u in urls
        ]
    )
    return mock
