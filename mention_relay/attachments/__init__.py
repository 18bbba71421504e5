from __future__ import annotations

from .config import AttachmentsConfig, get_attachments_config
from .store import Attachment, AttachmentStore

__all__ = [
    "Attachment",
    "AttachmentStore",
    "AttachmentsConfig",
    "get_attachments_config",
]
