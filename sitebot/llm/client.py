"""Async OpenRouter chat-completions client with function calling and retries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from sitebot.llm.retry import RetryPolicy, retry_with_backoff

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sitebot.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class ModelCallError(Exception):
    """The remote model could not produce a usable response."""


class TransportError(ModelCallError):
    """Timeout or connection failure talking to the model API."""


class RemoteProtocolError(ModelCallError):
    """The model API answered with a bad status or an unusable body."""


def _check_message(data: Any) -> dict[str, Any]:
    """Return ``choices[0].message`` from a response body or raise."""
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise RemoteProtocolError("Invalid response format from API") from exc
    if not isinstance(message, dict):
        raise RemoteProtocolError("Invalid response format from API")

    tool_calls = message.get("tool_calls")
    if tool_calls is not None:
        if not isinstance(tool_calls, list):
            raise RemoteProtocolError("tool_calls is not a list")
        for call in tool_calls:
            if (
                not isinstance(call, dict)
                or not call.get("id")
                or not isinstance(call.get("function"), dict)
                or not call["function"].get("name")
            ):
                raise RemoteProtocolError(f"Malformed tool call in response: {call!r}")

    # A reply must carry an answer or at least one tool call.
    if not tool_calls and not isinstance(message.get("content"), str):
        raise RemoteProtocolError("Response message has neither content nor tool_calls")
    return message


def tool_calls_of(message: dict[str, Any]) -> list[dict[str, Any]]:
    """Tool calls requested by an assistant message (empty for a plain answer)."""
    return message.get("tool_calls") or []


class OpenRouterClient:
    """Calls an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        retry_policy: RetryPolicy | None = None,
        referer: str = "http://localhost:3000",
        app_title: str = "Website Chatbot",
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry_policy = retry_policy or RetryPolicy()
        self.referer = referer
        self.app_title = app_title
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenRouterClient:
        return cls(
            api_key=settings.openrouter_api_key,
            model=settings.model,
            base_url=settings.openrouter_base_url,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            retry_policy=RetryPolicy(
                max_attempts=settings.llm_max_attempts,
                base_delay=settings.llm_retry_base_delay,
                max_delay=settings.llm_retry_max_delay,
            ),
            referer=settings.http_referer,
            app_title=f"{settings.site_name} Chatbot",
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_payload(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    async def _post_once(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.referer,
            "X-Title": self.app_title,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.completions_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request timed out after {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request failed: {exc}") from exc

        if resp.status_code != 200:
            raise RemoteProtocolError(
                f"API returned status {resp.status_code}: {resp.text[:500]}"
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteProtocolError("Response body is not valid JSON") from exc

        return _check_message(data)

    async def call_model(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Send the conversation and return the assistant message.

        Transport and protocol failures are retried per ``retry_policy``.

        Raises:
            ModelCallError: no API key is configured, or every attempt failed.
        """
        if not self.api_key:
            raise ModelCallError("OPENROUTER_API_KEY is not configured.")

        payload = self.build_payload(messages, tools or [])
        kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        message = await retry_with_backoff(
            lambda: self._post_once(payload),
            self.retry_policy,
            retry_on=(TransportError, RemoteProtocolError),
            label=f"Model call ({self.model})",
            **kwargs,
        )
        logger.info(
            "Model call succeeded (%s)",
            f"{len(tool_calls_of(message))} tool call(s)" if tool_calls_of(message) else "answer",
        )
        return message
