"""Tests for the OpenRouter chat-completions client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sitebot.config import Settings
from sitebot.llm.client import (
    ModelCallError,
    OpenRouterClient,
    RemoteProtocolError,
    TransportError,
    tool_calls_of,
)
from sitebot.llm.retry import RetryPolicy

TOOLS = [{"type": "function", "function": {"name": "search_website_urls", "parameters": {}}}]
MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_httpx_client(mock_client_cls: MagicMock, *responses) -> AsyncMock:
    """Wire up an AsyncClient mock whose post() yields *responses* in order."""
    mock_client = AsyncMock()
    mock_client.post.side_effect = list(responses)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def _completion(message: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        json={"id": "gen-1", "choices": [{"index": 0, "message": message}]},
        request=httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions"),
    )


def _raw(status_code: int, text: str) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        text=text,
        request=httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions"),
    )


def _client(sleep: AsyncMock | None = None, **kwargs) -> OpenRouterClient:
    return OpenRouterClient("test-key", "test/model", sleep=sleep or AsyncMock(), **kwargs)


# ---------------------------------------------------------------------------
# Request shape
# ---------------------------------------------------------------------------


async def test_call_model_sends_expected_payload() -> None:
    reply = {"role": "assistant", "content": "Hello!"}
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, _completion(reply))
        message = await _client().call_model(MESSAGES, TOOLS)

    assert message == reply
    args, kwargs = mock_client.post.call_args
    assert args[0] == "https://openrouter.ai/api/v1/chat/completions"
    payload = kwargs["json"]
    assert payload == {
        "model": "test/model",
        "messages": MESSAGES,
        "tools": TOOLS,
        "tool_choice": "auto",
        "temperature": 0.7,
        "max_tokens": 4000,
    }
    assert kwargs["headers"]["Authorization"] == "Bearer test-key"
    assert mock_cls.call_args.kwargs["timeout"] == 60.0


async def test_call_model_returns_tool_calls() -> None:
    reply = {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "search_website_urls", "arguments": '{"query": "ssl"}'},
            }
        ],
    }
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _completion(reply))
        message = await _client().call_model(MESSAGES, TOOLS)

    assert tool_calls_of(message)[0]["id"] == "call_1"


async def test_missing_api_key_fails_without_request() -> None:
    client = OpenRouterClient("", "test/model", sleep=AsyncMock())
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        with pytest.raises(ModelCallError, match="not configured"):
            await client.call_model(MESSAGES, TOOLS)
    mock_cls.assert_not_called()


def test_from_settings() -> None:
    s = Settings(
        openrouter_api_key="k",
        model="m",
        llm_max_attempts=4,
        site_name="Acme",
    )
    client = OpenRouterClient.from_settings(s)
    assert client.api_key == "k"
    assert client.model == "m"
    assert client.retry_policy == RetryPolicy(max_attempts=4, base_delay=1.0, max_delay=5.0)
    assert client.app_title == "Acme Chatbot"


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


async def test_timeouts_retry_three_times_with_backoff() -> None:
    sleep = AsyncMock()
    timeouts = [httpx.ReadTimeout("slow")] * 3
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, *timeouts)
        with pytest.raises(TransportError, match="timed out"):
            await _client(sleep).call_model(MESSAGES, TOOLS)

    assert mock_client.post.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


async def test_recovers_after_connection_error() -> None:
    sleep = AsyncMock()
    reply = {"role": "assistant", "content": "Recovered"}
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(
            mock_cls, httpx.ConnectError("refused"), _completion(reply)
        )
        message = await _client(sleep).call_model(MESSAGES, TOOLS)

    assert message["content"] == "Recovered"
    assert mock_client.post.await_count == 2
    sleep.assert_awaited_once_with(1.0)


async def test_non_success_status_is_retried() -> None:
    sleep = AsyncMock()
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(
            mock_cls,
            _raw(429, "rate limited"),
            _raw(500, "oops"),
            _raw(502, "bad gateway"),
        )
        with pytest.raises(RemoteProtocolError, match="502"):
            await _client(sleep).call_model(MESSAGES, TOOLS)

    assert mock_client.post.await_count == 3


async def test_malformed_body_is_protocol_error() -> None:
    bad = [
        _raw(200, "not json"),
        httpx.Response(200, json={"choices": []}, request=httpx.Request("POST", "https://x")),
        httpx.Response(200, json={"error": "x"}, request=httpx.Request("POST", "https://x")),
    ]
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, *bad)
        with pytest.raises(RemoteProtocolError, match="Invalid response format"):
            await _client().call_model(MESSAGES, TOOLS)


async def test_malformed_tool_call_is_protocol_error() -> None:
    reply = {"role": "assistant", "tool_calls": [{"function": {"name": "x"}}]}
    policy = RetryPolicy(max_attempts=1)
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _completion(reply))
        with pytest.raises(RemoteProtocolError, match="Malformed tool call"):
            await _client(retry_policy=policy).call_model(MESSAGES, TOOLS)


async def test_message_without_content_or_tool_calls_is_retried() -> None:
    sleep = AsyncMock()
    replies = [
        _completion({"role": "assistant"}),
        _completion({"role": "assistant", "content": None, "tool_calls": []}),
        _completion({"role": "assistant", "content": "Finally"}),
    ]
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        mock_client = _mock_httpx_client(mock_cls, *replies)
        message = await _client(sleep).call_model(MESSAGES, TOOLS)

    assert message["content"] == "Finally"
    assert mock_client.post.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


async def test_message_without_answer_exhausts_retries() -> None:
    with patch("sitebot.llm.client.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, *[_completion({"role": "assistant", "content": None})] * 3)
        with pytest.raises(RemoteProtocolError, match="neither content nor tool_calls"):
            await _client().call_model(MESSAGES, TOOLS)


def test_tool_calls_of_plain_answer() -> None:
    assert tool_calls_of({"role": "assistant", "content": "x"}) == []
    assert tool_calls_of({"role": "assistant", "content": "x", "tool_calls": None}) == []
