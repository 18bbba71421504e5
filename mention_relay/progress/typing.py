"""Typing indicator keepalive.

Chat clients clear "composing" after a short time. This helper refreshes
typing while a request is in flight. Failures to send are ignored.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

log = logging.getLogger(__name__)

TYPING_INTERVAL_S = 8.0


class TypingIndicator:
    def __init__(self, *, send_typing: Callable[[], Awaitable[None]]):
        self._send_typing = send_typing
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def send_once(self) -> None:
        try:
            await self._send_typing()
        except asyncio.CancelledError:
            raise
        except Exception:
            log.debug("Typing indicator failed", exc_info=True)

    async def _loop(self, *, interval_s: float) -> None:
        try:
            while True:
                await self.send_once()
                await asyncio.sleep(interval_s)
        except asyncio.CancelledError:
            return

    def start(self, *, interval_s: float = TYPING_INTERVAL_S) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(interval_s=interval_s))

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task and not task.done():
            task.cancel()
