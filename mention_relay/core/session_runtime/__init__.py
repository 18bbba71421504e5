"""Mention runtime (core orchestration).

This package turns one inbound mention into one agent run with:
- a live, debounced progress message
- per-request cancellation via an opaque token
- exactly-once cleanup of every per-mention resource

Transport (XMPP) and runners are injected via ports.
"""

from mention_relay.core.session_runtime.api import (
    CANCELLED,
    InboundMention,
    ReplyPort,
    RunResult,
    SessionState,
)
from mention_relay.core.session_runtime.continuity import InMemoryContinuityStore
from mention_relay.core.session_runtime.runtime import MentionRuntime
from mention_relay.core.session_runtime.session import ProgressSession

__all__ = [
    "CANCELLED",
    "InMemoryContinuityStore",
    "InboundMention",
    "MentionRuntime",
    "ProgressSession",
    "ReplyPort",
    "RunResult",
    "SessionState",
]
