"""Conversation orchestrator: runs the tool-calling loop for each user turn.

One turn moves through ``AWAITING_MODEL -> (TOOL_DISPATCH -> AWAITING_MODEL)*``
and ends in ``DONE`` with the model's answer, ``ABORTED`` when the iteration
ceiling is hit, or ``FAILED`` when the model cannot be reached. Only ``DONE``
turns are written to the session history; the caller always gets a string.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sitebot.chat.session import DEFAULT_SESSION_ID, SessionStore
from sitebot.llm.client import ModelCallError, tool_calls_of
from sitebot.llm.prompt import build_system_prompt
from sitebot.tools.base import ToolResult
from sitebot.tools.registry import ToolError

if TYPE_CHECKING:
    from sitebot.llm.client import OpenRouterClient
    from sitebot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10

TROUBLE_MESSAGE = (
    "I apologize, but I'm having trouble processing your request right now. "
    "Please try again in a moment."
)
TOO_LONG_MESSAGE = (
    "I apologize, but I'm taking too long to process your request. "
    "Please try asking in a different way."
)


class TurnState(StrEnum):
    AWAITING_MODEL = "awaiting_model"
    TOOL_DISPATCH = "tool_dispatch"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


def _assistant_entry(message: dict[str, Any]) -> dict[str, Any]:
    """Keep only the fields the API expects back from an assistant message."""
    entry: dict[str, Any] = {"role": "assistant", "content": message.get("content")}
    calls = tool_calls_of(message)
    if calls:
        entry["tool_calls"] = calls
    return entry


class ChatOrchestrator:
    """Answers user messages by letting the model call the website tools."""

    def __init__(
        self,
        client: OpenRouterClient,
        registry: ToolRegistry,
        *,
        sessions: SessionStore | None = None,
        site_name: str = "the company",
        system_prompt: str | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self.client = client
        self.registry = registry
        self.sessions = sessions if sessions is not None else SessionStore()
        self.system_prompt = build_system_prompt(site_name, system_prompt)
        self.max_iterations = max_iterations

    def build_messages(
        self,
        user_message: str,
        session_id: str = DEFAULT_SESSION_ID,
        system_prompt: str | None = None,
    ) -> list[dict[str, Any]]:
        """System prompt, the session's stored window, then the new user message."""
        history = self.sessions.get(session_id).to_api_messages()
        return [
            {"role": "system", "content": system_prompt or self.system_prompt},
            *history,
            {"role": "user", "content": user_message},
        ]

    async def chat(
        self,
        user_message: str,
        session_id: str = DEFAULT_SESSION_ID,
        system_prompt: str | None = None,
    ) -> str:
        """Run one conversation turn and return the answer text.

        Never raises: model failures and unexpected errors become a fixed
        apology, and neither they nor an aborted turn touch the history.
        """
        session = self.sessions.get(session_id)
        async with session.lock:
            messages = self.build_messages(user_message, session_id, system_prompt)
            try:
                answer = await self._run_turn(messages)
            except ModelCallError as exc:
                logger.error("Turn %s in session %s: %s", TurnState.FAILED, session_id, exc)
                return TROUBLE_MESSAGE
            except Exception:
                logger.exception("Unexpected error in chat turn (session %s)", session_id)
                return TROUBLE_MESSAGE

            if answer is None:
                return TOO_LONG_MESSAGE

            session.add_exchange(user_message, answer)
            return answer

    def reset_conversation(self, session_id: str = DEFAULT_SESSION_ID) -> None:
        """Forget the session's history. The URL index and page cache are untouched."""
        cleared = self.sessions.reset(session_id)
        logger.info("Conversation history cleared (session %s, %d messages)", session_id, cleared)

    async def _run_turn(self, messages: list[dict[str, Any]]) -> str | None:
        """Drive the model until it answers. Returns None when the ceiling is hit.

        Mutates *messages* with the assistant tool requests and tool results.
        """
        tool_schemas = self.registry.get_schemas()

        for iteration in range(1, self.max_iterations + 1):
            logger.info("Iteration %d/%d: %s", iteration, self.max_iterations, TurnState.AWAITING_MODEL)
            reply = await self.client.call_model(messages, tool_schemas)
            calls = tool_calls_of(reply)

            if not calls:
                logger.info("Turn %s after %d iteration(s)", TurnState.DONE, iteration)
                return reply["content"]

            logger.info(
                "%s: %d tool call(s): %s",
                TurnState.TOOL_DISPATCH,
                len(calls),
                ", ".join(c["function"]["name"] for c in calls),
            )
            messages.append(_assistant_entry(reply))
            for call in calls:
                messages.append(await self._dispatch(call))

        logger.warning("Turn %s: hit max iterations (%d)", TurnState.ABORTED, self.max_iterations)
        return None

    async def _dispatch(self, call: dict[str, Any]) -> dict[str, Any]:
        """Run one tool call and build the ``tool`` message answering it."""
        function = call["function"]
        name = function["name"]
        try:
            result = await self.registry.execute(name, function.get("arguments"))
        except ToolError as exc:
            logger.warning("Tool call rejected: %s", exc)
            result = ToolResult(error=str(exc))

        return {
            "role": "tool",
            "tool_call_id": call["id"],
            "name": name,
            "content": result.to_content(),
        }
