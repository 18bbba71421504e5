"""Inbound message parsing helpers for MentionBot."""

from __future__ import annotations

import logging
import re

log = logging.getLogger(__name__)


_URL_RE = re.compile(r"https?://[^\s<>\]\)\}]+", re.IGNORECASE)
_IMAGE_EXT_RE = re.compile(r"\.(png|jpe?g|gif|webp)(\?.*)?$", re.IGNORECASE)
_CANCEL_RE = re.compile(r"^/cancel(?:\s+(\S+))?\s*$", re.IGNORECASE)


def extract_relay_meta(msg, *, meta_ns: str) -> tuple[str | None, dict[str, str]]:
    """Extract the relay message meta extension (best-effort)."""
    for child in getattr(msg, "xml", []) or []:
        if getattr(child, "tag", None) != f"{{{meta_ns}}}meta":
            continue
        attrs = dict(getattr(child, "attrib", {}) or {})
        return attrs.get("type"), attrs
    return None, {}


def extract_room_stanza_id(msg, *, room: str, sid_ns: str) -> tuple[str | None, str | None]:
    """Return (origin id, room-assigned stanza id) of a MUC reflection.

    The origin id falls back to the stanza's `id` attribute; the stanza id
    only counts when the room itself assigned it (`by` is the room JID).
    """
    xml = getattr(msg, "xml", None)
    if xml is None:
        return None, None

    origin = xml.find(f"{{{sid_ns}}}origin-id")
    origin_id = origin.get("id") if origin is not None else None
    origin_id = origin_id or xml.get("id") or None

    stanza_id = None
    for child in xml.findall(f"{{{sid_ns}}}stanza-id"):
        if child.get("by") == room and child.get("id"):
            stanza_id = child.get("id")
            break
    return origin_id, stanza_id


def extract_attachment_urls(msg, body: str) -> list[str]:
    """Collect image URLs from OOB-style elements and the message body."""
    urls: list[str] = []

    # jabber:x:oob and similar: scan all descendants for <url> elements.
    try:
        for el in getattr(msg, "xml", []) or []:
            for child in list(el.iter()):
                tag = getattr(child, "tag", "")
                if tag.endswith("}url") or tag == "url":
                    text = (getattr(child, "text", None) or "").strip()
                    if text.startswith("http"):
                        urls.append(text)
    except Exception:
        log.debug("Failed to extract attachment URLs from stanza", exc_info=True)

    for m in _URL_RE.finditer(body or ""):
        url = m.group(0).rstrip(".,;:!?")
        if _IMAGE_EXT_RE.search(url):
            urls.append(url)

    seen: set[str] = set()
    out: list[str] = []
    for u in urls:
        if u in seen:
            continue
        seen.add(u)
        out.append(u)
    return out


def strip_urls_from_body(body: str, urls: list[str]) -> str:
    """Remove attachment URLs, keeping the prompt's line structure."""
    if not body:
        return body

    def _gap(match: re.Match) -> str:
        # One space survives only when the URL had blanks on both sides.
        return " " if match.group(1) and match.group(2) else ""

    out = body
    for u in urls:
        out = re.sub(rf"([ \t]*){re.escape(u)}([ \t]*)", _gap, out)
    return out.strip()


def detect_mention(body: str, nick: str) -> tuple[bool, str]:
    """Return (mentioned, prompt) for a group chat body.

    Accepts a leading `nick:` / `nick,` address or an inline `@nick`; the
    mention itself is removed from the prompt.
    """
    body = (body or "").strip()
    if not nick or not body:
        return False, body

    lead = re.match(rf"^@?{re.escape(nick)}\s*[:,]\s*", body, re.IGNORECASE)
    if lead:
        return True, body[lead.end():].strip()

    inline = re.compile(rf"(?<![\w@])@{re.escape(nick)}\b", re.IGNORECASE)
    if inline.search(body):
        return True, " ".join(inline.sub("", body).split())

    return False, body


def parse_cancel_command(body: str) -> tuple[bool, str | None]:
    """Return (is_cancel, token) for `/cancel [token]`."""
    m = _CANCEL_RE.match((body or "").strip())
    if not m:
        return False, None
    return True, m.group(1)


def is_reset_command(body: str) -> bool:
    return (body or "").strip().lower() in ("/reset", "/new")
