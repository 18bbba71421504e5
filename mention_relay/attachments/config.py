from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AttachmentsConfig:
    base_dir: Path
    max_bytes: int
    fetch_timeout_s: float


def _default_base_dir() -> Path:
    # Images land inside the agent's working directory so its file tools can
    # open them by path.
    work_dir = os.getenv("RELAY_WORK_DIR") or os.getcwd()
    default = Path(work_dir) / ".relay-attachments"
    return Path(os.getenv("RELAY_ATTACHMENTS_DIR", str(default)))


def get_attachments_config() -> AttachmentsConfig:
    try:
        max_bytes = int(os.getenv("RELAY_ATTACHMENT_MAX_BYTES", str(10 * 1024 * 1024)))
    except ValueError:
        max_bytes = 10 * 1024 * 1024
    try:
        timeout_s = float(os.getenv("RELAY_ATTACHMENT_FETCH_TIMEOUT_S", "20"))
    except ValueError:
        timeout_s = 20.0

    return AttachmentsConfig(
        base_dir=_default_base_dir(),
        max_bytes=max_bytes,
        fetch_timeout_s=timeout_s,
    )
