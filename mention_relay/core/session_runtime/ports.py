"""Ports for the mention runtime.

These interfaces keep the runtime independent of transport (XMPP), storage
and runner implementations.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from mention_relay.attachments import Attachment
from mention_relay.runners import Runner


class RunnerFactoryPort(Protocol):
    def create(self, *, working_dir: str, session_name: str) -> Runner: ...


class ContinuityStorePort(Protocol):
    """Channel -> agent session id, so follow-up mentions resume context."""

    def get(self, channel_id: str) -> str | None: ...

    def set(self, channel_id: str, session_id: str) -> None: ...

    def clear(self, channel_id: str) -> bool: ...


class AttachmentFetcherPort(Protocol):
    async def download_images(self, channel_id: str, urls: Iterable[str]) -> list[Attachment]: ...
