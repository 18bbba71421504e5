#!/usr/bin/env python3
"""
Shared utilities for the XMPP relay.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path

from slixmpp.clientxmpp import ClientXMPP
from slixmpp.xmlstream import ET


RELAY_META_NS = "urn:mention-relay:message-meta"
CORRECT_NS = "urn:xmpp:message-correct:0"
RETRACT_NS = "urn:xmpp:message-retract:1"
FALLBACK_NS = "urn:xmpp:fallback:0"
SID_NS = "urn:xmpp:sid:0"


def build_message_meta(
    meta_type: str,
    *,
    meta_attrs: dict[str, str] | None = None,
) -> ET.Element:
    """Build a relay message meta extension element.

    Clients that ignore unknown XML extensions still see the plain body.
    """

    meta = ET.Element(f"{{{RELAY_META_NS}}}meta")
    meta.set("type", meta_type)

    if meta_attrs:
        for k, v in meta_attrs.items():
            if not k or v is None or k == "type":
                continue
            meta.set(str(k), str(v))

    return meta


def build_correction(message_id: str) -> ET.Element:
    """XEP-0308 last message correction marker."""
    replace = ET.Element(f"{{{CORRECT_NS}}}replace")
    replace.set("id", message_id)
    return replace


def build_origin_id(message_id: str) -> ET.Element:
    """XEP-0359 origin id, echoed back in the room reflection."""
    origin = ET.Element(f"{{{SID_NS}}}origin-id")
    origin.set("id", message_id)
    return origin


def build_retraction(message_id: str) -> list[ET.Element]:
    """XEP-0424 retraction plus the XEP-0428 fallback marker."""
    retract = ET.Element(f"{{{RETRACT_NS}}}retract")
    retract.set("id", message_id)
    fallback = ET.Element(f"{{{FALLBACK_NS}}}fallback")
    fallback.set("for", RETRACT_NS)
    return [retract, fallback]


# =============================================================================
# Environment Loading
# =============================================================================


def load_env(env_path: Path | None = None) -> None:
    """Load .env file into os.environ. Handles quoted values and spaces."""
    if env_path is None:
        env_path = Path.cwd() / ".env"

    if not env_path.exists():
        return

    for line in env_path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, val = line.split("=", 1)
            val = val.strip().strip('"').strip("'")
            os.environ[key.strip()] = val


# =============================================================================
# Base XMPP Bot
# =============================================================================


class BaseXMPPBot(ClientXMPP):
    """
    Base class for XMPP bots with common setup.

    Provides:
    - Standard plugin registration (xep_0199, xep_0085, xep_0308)
    - Common connect method
    - send_message_stanza / send_typing helpers
    - guard / spawn_guarded error boundary
    """

    def __init__(self, jid: str, password: str):
        super().__init__(jid, password)
        self._connected_event = asyncio.Event()
        self.log = logging.getLogger("xmpp")

        self.register_plugin("xep_0199")  # Ping
        self.register_plugin("xep_0085")  # Chat State Notifications
        self.register_plugin("xep_0308")  # Last Message Correction

    def connect_to_server(self, server: str, port: int = 5222):
        """Connect with standard settings (unencrypted, no TLS)."""
        self["feature_mechanisms"].unencrypted_plain = True  # type: ignore[attr-defined]
        self.enable_starttls = False
        self.enable_direct_tls = False
        self.enable_plaintext = True
        # slixmpp.ClientXMPP.connect expects a single address tuple.
        self.connect((server, port))  # type: ignore[arg-type]

    def set_connected(self, connected: bool) -> None:
        if connected:
            self._connected_event.set()
        else:
            self._connected_event.clear()

    def is_connected(self) -> bool:
        return self._connected_event.is_set()

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def send_message_stanza(
        self,
        to: str,
        text: str | None,
        *,
        mtype: str = "chat",
        extensions: list[ET.Element] | None = None,
        chat_state: str | None = "active",
        origin_id: bool = False,
    ) -> str:
        """Send one message and return its stanza id."""
        msg = self.make_message(mto=to, mbody=text, mtype=mtype)
        message_id = uuid.uuid4().hex
        msg["id"] = message_id
        if chat_state and mtype == "chat":
            msg["chat_state"] = chat_state
        for ext in extensions or []:
            msg.xml.append(ext)
        if origin_id:
            msg.xml.append(build_origin_id(message_id))
        msg.send()
        return message_id

    def send_typing(self, to: str, mtype: str = "chat"):
        """Send composing (typing) indicator."""
        msg = self.make_message(mto=to, mtype=mtype)
        msg["chat_state"] = "composing"
        msg.send()

    async def guard(
        self,
        coro,
        *,
        context: str | None = None,
    ):
        """Run a coroutine with a single error boundary.

        Internal code raises normally; the boundary logs and swallows so one
        bad stanza never takes the bot down.
        """

        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            if context:
                self.log.exception("Unhandled error (%s)", context)
            else:
                self.log.exception("Unhandled error")
            return None

    def spawn_guarded(
        self,
        coro,
        *,
        context: str | None = None,
    ) -> asyncio.Task:
        """Create a task whose exceptions are logged, not lost."""

        return asyncio.create_task(self.guard(coro, context=context))
