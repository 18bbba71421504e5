"""Cancel token registry.

One registry is built at process startup and handed to both the chat
transport (which receives cancel actions) and the runtime (which registers
one token per in-flight request). Entries live from `register` until the
owning session unregisters them; a trigger does not remove its entry.

Triggers arrive from the transport while the session may be tearing down,
so `unregister` is idempotent and `trigger` on an unknown token is a no-op.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable

log = logging.getLogger(__name__)


class CancelRegistry:
    def __init__(self):
        self._callbacks: dict[str, Callable[[], None]] = {}

    def __contains__(self, token: object) -> bool:
        return token in self._callbacks

    def __len__(self) -> int:
        return len(self._callbacks)

    def new_token(self) -> str:
        while True:
            token = secrets.token_hex(6)
            if token not in self._callbacks:
                return token

    def register(self, token: str, callback: Callable[[], None]) -> None:
        self._callbacks[token] = callback

    def trigger(self, token: str) -> bool:
        """Invoke the callback for `token`. Returns False if none is registered."""
        callback = self._callbacks.get(token)
        if callback is None:
            log.debug("Cancel trigger for unknown token %s", token)
            return False
        try:
            callback()
        except Exception:
            log.exception("Cancel callback failed for token %s", token)
        return True

    def unregister(self, token: str) -> None:
        self._callbacks.pop(token, None)
