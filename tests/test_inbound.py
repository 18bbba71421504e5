from xml.etree import ElementTree as ET

from mention_relay.bots.inbound import (
    detect_mention,
    extract_attachment_urls,
    extract_relay_meta,
    extract_room_stanza_id,
    is_reset_command,
    parse_cancel_command,
    strip_urls_from_body,
)
from mention_relay.utils import RELAY_META_NS, SID_NS, build_message_meta, build_origin_id


class _Msg:
    def __init__(self, *children: ET.Element):
        self.xml = ET.Element("{jabber:client}message")
        for child in children:
            self.xml.append(child)


def test_leading_address_is_a_mention() -> None:
    assert detect_mention("relay: what broke?", "relay") == (True, "what broke?")
    assert detect_mention("Relay, summarize", "relay") == (True, "summarize")
    assert detect_mention("@relay: hi", "relay") == (True, "hi")


def test_inline_at_mention_is_stripped() -> None:
    assert detect_mention("hey @relay can you look", "relay") == (True, "hey can you look")


def test_plain_chatter_is_not_a_mention() -> None:
    assert detect_mention("the relay is down", "relay") == (False, "the relay is down")
    assert detect_mention("mail me at bob@relay", "relay")[0] is False
    assert detect_mention("@relayer ping", "relay")[0] is False


def test_cancel_command_parsing() -> None:
    assert parse_cancel_command("/cancel abc123") == (True, "abc123")
    assert parse_cancel_command("/cancel") == (True, None)
    assert parse_cancel_command("/cancellation policy") == (False, None)
    assert parse_cancel_command("please /cancel") == (False, None)


def test_reset_command() -> None:
    assert is_reset_command(" /reset ")
    assert is_reset_command("/new")
    assert not is_reset_command("/reset everything")


def test_meta_extraction() -> None:
    msg = _Msg(build_message_meta("cancel", meta_attrs={"token": "t1"}))
    meta_type, attrs = extract_relay_meta(msg, meta_ns=RELAY_META_NS)
    assert meta_type == "cancel"
    assert attrs["token"] == "t1"

    assert extract_relay_meta(_Msg(), meta_ns=RELAY_META_NS) == (None, {})


def test_attachment_urls_from_oob_and_body() -> None:
    oob = ET.Element("{jabber:x:oob}x")
    url = ET.SubElement(oob, "{jabber:x:oob}url")
    url.text = "https://files.example/upload/cat.png"
    body = (
        "look https://files.example/upload/cat.png and https://img.example/dog.jpg, "
        "docs at https://example.com/readme"
    )

    urls = extract_attachment_urls(_Msg(oob), body)

    assert urls == ["https://files.example/upload/cat.png", "https://img.example/dog.jpg"]
    assert strip_urls_from_body(body, urls) == "look and, docs at https://example.com/readme"


def test_stripping_urls_keeps_prompt_lines() -> None:
    url = "https://img.example/graph.png"
    body = f"why does this spike?\n{url}\n\n  - started on monday\n  - only in prod see {url}"

    assert strip_urls_from_body(body, [url]) == (
        "why does this spike?\n\n\n  - started on monday\n  - only in prod see"
    )


def test_room_stanza_id_comes_from_the_room_only() -> None:
    foreign = ET.Element(f"{{{SID_NS}}}stanza-id", {"id": "spoofed", "by": "bot@example"})
    assigned = ET.Element(f"{{{SID_NS}}}stanza-id", {"id": "room-sid-7", "by": "room@conf.example"})
    msg = _Msg(build_origin_id("origin-1"), foreign, assigned)

    assert extract_room_stanza_id(msg, room="room@conf.example", sid_ns=SID_NS) == (
        "origin-1",
        "room-sid-7",
    )


def test_room_stanza_id_falls_back_to_message_id() -> None:
    msg = _Msg()
    msg.xml.set("id", "plain-id")

    assert extract_room_stanza_id(msg, room="room@conf.example", sid_ns=SID_NS) == ("plain-id", None)
