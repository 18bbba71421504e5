"""Prompt building for mentions.

The agent gets chat metadata up front so its tools can look up the
surrounding conversation, followed by any saved image paths and the user's
text.
"""

from __future__ import annotations

from mention_relay.attachments import Attachment
from mention_relay.core.session_runtime.api import InboundMention

IMAGE_ONLY_PROMPT = "(Images are attached. Please look at them.)"


def build_prompt(mention: InboundMention, attachments: list[Attachment] | None = None) -> str:
    parts: list[str] = ["<chat-context>", f"Channel ID: {mention.channel_id}"]
    if mention.thread_id:
        parts.append(f"Thread ID: {mention.thread_id}")
    parts.append(f"User: {mention.username} (ID: {mention.user_id})")
    if mention.message_id:
        parts.append(f"Message ID: {mention.message_id}")
    parts.extend(["</chat-context>", ""])

    if attachments:
        parts.append("<attached-images>")
        parts.append(
            f"The user attached {len(attachments)} image(s). "
            "They are saved at the paths below; open them with your file tools:"
        )
        parts.extend(f"- {a.local_path}" for a in attachments)
        parts.extend(["</attached-images>", ""])

    parts.append(mention.prompt.strip() or IMAGE_ONLY_PROMPT)
    return "\n".join(parts)
