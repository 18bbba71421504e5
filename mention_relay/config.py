"""Relay configuration (call load_env() before reading)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from mention_relay.core.session_runtime.session import PLACEHOLDER_TEXT
from mention_relay.progress.debounce import MIN_COMMIT_INTERVAL_S
from mention_relay.progress.typing import TYPING_INTERVAL_S


class ConfigError(ValueError):
    """Required configuration is missing or malformed."""


@dataclass(frozen=True)
class RelayConfig:
    server: str
    port: int
    domain: str
    jid: str
    password: str
    nick: str
    rooms: tuple[str, ...]
    work_dir: str
    edit_interval_s: float
    typing_interval_s: float
    placeholder: str | None
    message_max_len: int
    # Per-channel runner logs; unset disables them.
    output_dir: Path | None = None


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def get_relay_config() -> RelayConfig:
    jid = (os.getenv("RELAY_JID") or "").strip()
    password = os.getenv("RELAY_PASSWORD") or ""
    if not jid or not password:
        raise ConfigError("RELAY_JID and RELAY_PASSWORD must be set")

    server = os.getenv("XMPP_SERVER", "localhost")
    domain = os.getenv("XMPP_DOMAIN", server)
    if "@" not in jid:
        jid = f"{jid}@{domain}"
    nick = (os.getenv("RELAY_NICK") or "").strip() or jid.split("@", 1)[0]

    # Empty string disables the placeholder; unset uses the default.
    placeholder = os.getenv("RELAY_PLACEHOLDER", PLACEHOLDER_TEXT)

    output_dir = (os.getenv("RELAY_OUTPUT_DIR") or "").strip()
    max_len = max(500, min(_int_env("RELAY_XMPP_MESSAGE_MAX_LEN", 3500), 100000))

    return RelayConfig(
        server=server,
        port=_int_env("XMPP_PORT", 5222),
        domain=domain,
        jid=jid,
        password=password,
        nick=nick,
        rooms=_split_csv(os.getenv("RELAY_ROOMS", "")),
        work_dir=os.getenv("RELAY_WORK_DIR") or os.getcwd(),
        edit_interval_s=max(0.0, _float_env("RELAY_EDIT_INTERVAL_S", MIN_COMMIT_INTERVAL_S)),
        typing_interval_s=max(1.0, _float_env("RELAY_TYPING_INTERVAL_S", TYPING_INTERVAL_S)),
        placeholder=placeholder or None,
        message_max_len=max_len,
        output_dir=Path(output_dir) if output_dir else None,
    )
