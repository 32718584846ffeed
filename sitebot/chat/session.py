"""In-memory conversation sessions with a sliding window."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"
DEFAULT_WINDOW_SIZE = 10
DEFAULT_IDLE_TIMEOUT = 3600.0


@dataclass
class Message:
    """A single conversation turn."""

    role: str  # "user" or "assistant"
    content: str


@dataclass
class Session:
    """Conversation history for one caller."""

    messages: list[Message] = field(default_factory=list)
    window_size: int = DEFAULT_WINDOW_SIZE
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    last_active: float = 0.0

    def add_exchange(self, user_text: str, assistant_text: str) -> None:
        """Record a completed turn as one user and one assistant message."""
        self.messages.append(Message(role="user", content=user_text))
        self.messages.append(Message(role="assistant", content=assistant_text))
        self.trim()

    def trim(self) -> None:
        if len(self.messages) > self.window_size:
            self.messages = self.messages[-self.window_size :]

    def clear(self) -> int:
        """Clear all messages. Returns the count of cleared messages."""
        count = len(self.messages)
        self.messages.clear()
        return count

    def to_api_messages(self) -> list[dict[str, str]]:
        """Format messages for the chat completions API."""
        return [{"role": m.role, "content": m.content} for m in self.messages]


class SessionStore:
    """Sessions keyed by a caller-supplied id.

    Sessions untouched for ``idle_timeout`` seconds are dropped the next time
    any session is looked up. A session whose lock is held is never dropped.
    ``idle_timeout`` of 0 keeps sessions forever.
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_size = window_size
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def get(self, session_id: str = DEFAULT_SESSION_ID) -> Session:
        """Get or create the session for *session_id*."""
        now = self._clock()
        self._evict_idle(now)

        session = self._sessions.get(session_id)
        if session is None:
            session = Session(window_size=self.window_size)
            self._sessions[session_id] = session
        session.last_active = now
        return session

    def reset(self, session_id: str = DEFAULT_SESSION_ID) -> int:
        """Clear one session's history. Returns the count of cleared messages."""
        session = self._sessions.get(session_id)
        if session is None:
            return 0
        return session.clear()

    def _evict_idle(self, now: float) -> None:
        if self.idle_timeout <= 0:
            return
        expired = [
            sid
            for sid, s in self._sessions.items()
            if now - s.last_active > self.idle_timeout and not s.lock.locked()
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Dropped %d idle session(s)", len(expired))

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
