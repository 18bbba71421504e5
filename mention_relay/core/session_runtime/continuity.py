"""In-memory conversation continuity (lost on restart)."""

from __future__ import annotations


class InMemoryContinuityStore:
    def __init__(self):
        self._session_ids: dict[str, str] = {}

    def get(self, channel_id: str) -> str | None:
        return self._session_ids.get(channel_id)

    def set(self, channel_id: str, session_id: str) -> None:
        if channel_id and session_id:
            self._session_ids[channel_id] = session_id

    def clear(self, channel_id: str) -> bool:
        return self._session_ids.pop(channel_id, None) is not None
