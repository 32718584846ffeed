"""Conversation layer: sessions and the tool-calling orchestrator."""

from sitebot.chat.orchestrator import (
    TOO_LONG_MESSAGE,
    TROUBLE_MESSAGE,
    ChatOrchestrator,
    TurnState,
)
from sitebot.chat.session import DEFAULT_SESSION_ID, Session, SessionStore

__all__ = [
    "DEFAULT_SESSION_ID",
    "TOO_LONG_MESSAGE",
    "TROUBLE_MESSAGE",
    "ChatOrchestrator",
    "Session",
    "SessionStore",
    "TurnState",
]
