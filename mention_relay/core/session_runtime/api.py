"""Public API for the mention runtime.

This module is the stable boundary between:
- transport/adapters (XMPP)
- the concrete runtime implementation (runtime.py, session.py)

Code outside the runtime should depend on these types/protocols, not on
runtime internals.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class InboundMention:
    prompt: str
    channel_id: str
    user_id: str
    username: str
    message_id: str | None = None
    # Thread/room the message was sent in, when the transport has one.
    thread_id: str | None = None
    image_urls: tuple[str, ...] = field(default_factory=tuple)


class ReplyPort(Protocol):
    """Outbound surface for one mention.

    The progress handle is whatever `send_progress` returns; callers treat it
    as opaque and pass it back to `edit_progress` / `delete_progress`.
    """

    async def send_progress(self, text: str, *, cancel_token: str | None = None) -> object: ...

    async def edit_progress(self, handle: object, text: str) -> None: ...

    async def delete_progress(self, handle: object) -> None: ...

    async def reply(self, text: str) -> None: ...

    async def send_typing(self) -> None: ...


class SessionState(enum.Enum):
    INIT = "init"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    CLEANED_UP = "cleaned_up"


TERMINAL_STATES = frozenset(
    {SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED}
)


@dataclass(frozen=True)
class RunResult:
    text: str
    session_id: str | None = None
    cost_usd: float = 0.0
    turns: int = 0
    tool_count: int = 0
    duration_s: float = 0.0


class RunCancelled:
    """Type of the `CANCELLED` sentinel returned by a cancelled run."""

    _instance: RunCancelled | None = None

    def __new__(cls) -> RunCancelled:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CANCELLED"

    def __bool__(self) -> bool:
        return False


CANCELLED = RunCancelled()
