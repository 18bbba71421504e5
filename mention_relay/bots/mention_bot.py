"""Mention bot - one XMPP client that answers mentions in rooms and chats."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, cast

from mention_relay.bots.inbound import (
    detect_mention,
    extract_attachment_urls,
    extract_relay_meta,
    extract_room_stanza_id,
    is_reset_command,
    parse_cancel_command,
    strip_urls_from_body,
)
from mention_relay.config import RelayConfig
from mention_relay.core.session_runtime import InboundMention, MentionRuntime
from mention_relay.utils import (
    CORRECT_NS,
    RELAY_META_NS,
    SID_NS,
    BaseXMPPBot,
    build_correction,
    build_message_meta,
    build_retraction,
)

DELAY_NS = "urn:xmpp:delay"
EMPTY_MENTION_HINT = "Mention me with a question (images welcome)."
RETRACTED_FALLBACK = "[progress message removed]"


def split_message(text: str, max_len: int) -> list[str]:
    """Split text into chunks respecting paragraph boundaries."""
    parts = []
    current = ""
    for para in text.split("\n\n"):
        if len(current) + len(para) + 2 <= max_len:
            current = f"{current}\n\n{para}" if current else para
        else:
            if current:
                parts.append(current)
            if len(para) > max_len:
                # Split long paragraphs by line
                current = ""
                for line in para.split("\n"):
                    if len(current) + len(line) + 1 <= max_len:
                        current = f"{current}\n{line}" if current else line
                    else:
                        if current:
                            parts.append(current)
                        while len(line) > max_len:
                            parts.append(line[:max_len])
                            line = line[max_len:]
                        current = line
            else:
                current = para
    if current:
        parts.append(current)
    return parts


class RoomStanzaIds:
    """Origin id -> room-assigned stanza id, learned from MUC reflections.

    XEP-0424 retractions in a room must name the id the room assigned.
    Bounded; the oldest entries go first.
    """

    def __init__(self, max_entries: int = 512):
        self.max_entries = max_entries
        self._ids: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._ids)

    def record(self, origin_id: str, stanza_id: str) -> None:
        self._ids.pop(origin_id, None)
        self._ids[origin_id] = stanza_id
        while len(self._ids) > self.max_entries:
            self._ids.pop(next(iter(self._ids)))

    def resolve(self, origin_id: str) -> str:
        """Room stanza id for a sent message, or the origin id if unseen."""
        return self._ids.pop(origin_id, origin_id)


class XmppReplyChannel:
    """ReplyPort for one conversation (a room or a direct chat).

    Progress handles are stanza ids; edits are XEP-0308 corrections of the
    original id and deletes are XEP-0424 retractions. In rooms the retraction
    names the room-assigned stanza id when its reflection has been seen.
    """

    def __init__(
        self,
        bot: BaseXMPPBot,
        to: str,
        *,
        mtype: str,
        max_len: int,
        stanza_ids: RoomStanzaIds | None = None,
    ):
        self.bot = bot
        self.to = to
        self.mtype = mtype
        self.max_len = max_len
        self.stanza_ids = stanza_ids
        self._cancel_token: str | None = None

    def _progress_body(self, text: str) -> str:
        if not self._cancel_token:
            return text
        return f"{text}\n\n/cancel {self._cancel_token}"

    def _progress_meta(self):
        attrs = {"cancel_token": self._cancel_token} if self._cancel_token else None
        return build_message_meta("progress", meta_attrs=attrs)

    async def send_progress(self, text: str, *, cancel_token: str | None = None) -> str:
        if cancel_token:
            self._cancel_token = cancel_token
        return self.bot.send_message_stanza(
            self.to,
            self._progress_body(text),
            mtype=self.mtype,
            extensions=[self._progress_meta()],
            chat_state="composing",
            origin_id=self.mtype == "groupchat",
        )

    async def edit_progress(self, handle: object, text: str) -> None:
        self.bot.send_message_stanza(
            self.to,
            self._progress_body(text),
            mtype=self.mtype,
            extensions=[build_correction(str(handle)), self._progress_meta()],
            chat_state="composing",
        )

    async def delete_progress(self, handle: object) -> None:
        target = str(handle)
        if self.stanza_ids is not None:
            target = self.stanza_ids.resolve(target)
        self.bot.send_message_stanza(
            self.to,
            RETRACTED_FALLBACK,
            mtype=self.mtype,
            extensions=build_retraction(target),
            chat_state=None,
        )

    async def reply(self, text: str) -> None:
        # Trim only terminal newlines so clients do not render padded space.
        text = text.rstrip("\r\n")
        if len(text) <= self.max_len:
            self.bot.send_message_stanza(self.to, text, mtype=self.mtype)
            return

        parts = split_message(text, self.max_len)
        total = len(parts)
        for i, part in enumerate(parts, 1):
            header = f"[{i}/{total}]\n" if i > 1 else ""
            footer = f"\n[{i}/{total}]" if i < total else ""
            self.bot.send_message_stanza(
                self.to,
                header + part + footer,
                mtype=self.mtype,
                chat_state="active" if i == total else "composing",
            )

    async def send_typing(self) -> None:
        self.bot.send_typing(self.to, mtype=self.mtype)


class MentionBot(BaseXMPPBot):
    """XMPP bot that relays mentions to the agent runtime."""

    def __init__(self, config: RelayConfig, runtime: MentionRuntime):
        super().__init__(config.jid, config.password)
        self.config = config
        self.runtime = runtime
        self.nick = config.nick
        self.log = logging.getLogger(f"mention.{config.jid}")
        self.shutting_down = False
        self.startup_error: str | None = None

        self._tasks: set[asyncio.Task] = set()
        self._reconnect_task: asyncio.Task | None = None
        self._reconnect_attempt: int = 0
        self.stanza_ids = RoomStanzaIds()

        self.register_plugin("xep_0045")

        self.add_event_handler("session_start", self.on_start)
        self.add_event_handler("message", self.on_message)
        self.add_event_handler("disconnected", self.on_disconnected)

    # -------------------------------------------------------------------------
    # XMPP lifecycle
    # -------------------------------------------------------------------------

    async def on_start(self, event):
        await self.guard(self._on_start(event), context="mention.on_start")

    async def _on_start(self, event):
        self.send_presence()
        try:
            await asyncio.wait_for(self.get_roster(), timeout=15)
        except asyncio.TimeoutError:
            self.startup_error = "XMPP startup timed out (roster)"
            self.log.error("Startup timed out during roster fetch")
            self.disconnect()
            return

        muc = cast(Any, self["xep_0045"])
        for room in self.config.rooms:
            try:
                await muc.join_muc(room, self.nick)  # type: ignore[attr-defined]
                self.log.info("Joined %s as %s", room, self.nick)
            except Exception:
                self.log.exception("Failed to join room: %s", room)

        self.log.info("Connected")
        self.set_connected(True)
        self._reconnect_attempt = 0

    def on_disconnected(self, event):
        self.set_connected(False)
        if self.shutting_down:
            self.log.info("Disconnected during shutdown; not reconnecting")
            return
        if self._reconnect_task and not self._reconnect_task.done():
            self.log.debug("Reconnect already in progress; skipping duplicate")
            return
        self._reconnect_task = asyncio.ensure_future(self._reconnect())

    async def _reconnect(self):
        _MAX_ATTEMPTS = 10
        _BASE_DELAY = 5
        _MAX_DELAY = 60
        while self._reconnect_attempt < _MAX_ATTEMPTS:
            if self.shutting_down:
                return
            self._reconnect_attempt += 1
            delay = min(_BASE_DELAY * (2 ** (self._reconnect_attempt - 1)), _MAX_DELAY)
            self.log.warning(
                "Reconnecting (attempt %d/%d) in %ds...",
                self._reconnect_attempt, _MAX_ATTEMPTS, delay,
            )
            await asyncio.sleep(delay)
            if self.shutting_down:
                return
            try:
                self.connect_to_server(self.config.server, self.config.port)
            except Exception:
                self.log.warning("Reconnect connect() failed", exc_info=True)
                continue
            # Transport is up; _on_start resets the attempt counter.
            return
        self.log.error("Giving up reconnect after %d attempts", _MAX_ATTEMPTS)

    async def shutdown(self) -> None:
        self.shutting_down = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.disconnect()

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # -------------------------------------------------------------------------
    # Message handling
    # -------------------------------------------------------------------------

    async def on_message(self, msg):
        await self.guard(self._handle_message(msg), context="mention.on_message")

    @staticmethod
    def _is_delayed(msg) -> bool:
        return msg.xml.find(f"{{{DELAY_NS}}}delay") is not None

    def _record_reflection(self, msg, room: str) -> None:
        """Remember the room-assigned id of our own progress messages."""
        meta_type, _ = extract_relay_meta(msg, meta_ns=RELAY_META_NS)
        if meta_type != "progress" or msg.xml.find(f"{{{CORRECT_NS}}}replace") is not None:
            return
        origin_id, stanza_id = extract_room_stanza_id(msg, room=room, sid_ns=SID_NS)
        if origin_id and stanza_id:
            self.stanza_ids.record(origin_id, stanza_id)

    async def _handle_message(self, msg):
        msg_type = msg["type"]
        if msg_type not in ("chat", "normal", "groupchat"):
            return
        if self.shutting_down:
            return

        if msg_type == "groupchat":
            room = str(msg["from"].bare)
            sender_nick = str(msg["from"].resource or "")
            # Room history replays on join.
            if not sender_nick or self._is_delayed(msg):
                return
            if sender_nick == self.nick:
                self._record_reflection(msg, room)
                return
            channel_id = room
            user_id = f"{room}/{sender_nick}"
            username = sender_nick
            reply = XmppReplyChannel(
                self,
                room,
                mtype="groupchat",
                max_len=self.config.message_max_len,
                stanza_ids=self.stanza_ids,
            )
        else:
            sender = str(msg["from"].bare)
            if sender == str(self.boundjid.bare):
                return
            channel_id = sender
            user_id = sender
            username = str(msg["from"].user or sender)
            reply = XmppReplyChannel(
                self, sender, mtype="chat", max_len=self.config.message_max_len
            )

        meta_type, meta_attrs = extract_relay_meta(msg, meta_ns=RELAY_META_NS)
        if meta_type == "cancel":
            await self._cancel(meta_attrs.get("token"), channel_id, reply)
            return

        body = (msg["body"] or "").strip()
        if msg_type == "groupchat":
            mentioned, prompt = detect_mention(body, self.nick)
        else:
            mentioned, prompt = True, body

        # Commands work addressed or bare.
        for candidate in (prompt, body):
            is_cancel, token = parse_cancel_command(candidate)
            if is_cancel:
                await self._cancel(token, channel_id, reply)
                return
            if is_reset_command(candidate) and (mentioned or msg_type != "groupchat"):
                self.runtime.reset_channel(channel_id)
                await reply.reply("Started a fresh conversation.")
                return

        if not mentioned:
            return

        urls = extract_attachment_urls(msg, prompt)
        if urls:
            prompt = strip_urls_from_body(prompt, urls)
        if not prompt and not urls:
            await reply.reply(EMPTY_MENTION_HINT)
            return

        mention = InboundMention(
            prompt=prompt,
            channel_id=channel_id,
            user_id=user_id,
            username=username,
            message_id=msg["id"] or None,
            thread_id=msg["thread"] or None,
            image_urls=tuple(urls),
        )
        self.log.info("Mention from %s: %s...", username, prompt[:50])
        self._track(
            self.spawn_guarded(
                self.runtime.handle(mention, reply), context=f"mention.{channel_id}"
            )
        )

    async def _cancel(self, token: str | None, channel_id: str, reply: XmppReplyChannel) -> None:
        if token:
            cancelled = self.runtime.registry.trigger(token)
        else:
            cancelled = self.runtime.cancel_channel(channel_id) > 0
        await reply.reply("Cancelling..." if cancelled else "Nothing to cancel.")
