from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

import aiohttp

from .config import AttachmentsConfig, get_attachments_config

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    id: str
    kind: str  # e.g. "image"
    mime: str
    filename: str
    local_path: str
    size_bytes: int
    sha256: str
    original_url: str | None = None


_IMAGE_EXT_BY_MIME: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def _safe_slug(text: str) -> str:
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9._-]+", "-", text)
    text = re.sub(r"-+", "-", text).strip("-")
    return text or "file"


def _guess_ext(mime: str, url: str | None = None) -> str:
    if mime in _IMAGE_EXT_BY_MIME:
        return _IMAGE_EXT_BY_MIME[mime]
    if url:
        path = urlparse(url).path
        _, ext = os.path.splitext(path)
        if ext and re.match(r"^\.[a-zA-Z0-9]{1,6}$", ext):
            return ext.lower()
    return ".png"


def _is_disallowed_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return True
    if parsed.scheme not in {"http", "https"}:
        return True
    host = (parsed.hostname or "").strip().lower()
    if not host:
        return True
    if host in {"localhost", "127.0.0.1", "::1"}:
        return True
    # Best-effort guardrails against obvious private IP literals.
    if re.match(r"^10\.", host):
        return True
    if re.match(r"^192\.168\.", host):
        return True
    if re.match(r"^172\.(1[6-9]|2\d|3[0-1])\.", host):
        return True
    if host.startswith("169.254."):
        return True
    return False


class AttachmentStore:
    """Downloads image attachments into a per-channel directory."""

    def __init__(self, config: AttachmentsConfig | None = None):
        self.config = config or get_attachments_config()
        self.base_dir = self.config.base_dir

    def channel_dir(self, channel_id: str) -> Path:
        d = self.base_dir / _safe_slug(channel_id)
        d.mkdir(parents=True, exist_ok=True)
        return d

    async def download_images(self, channel_id: str, urls: Iterable[str]) -> list[Attachment]:
        """Fetch every allowed image URL; failures are skipped."""
        out: list[Attachment] = []
        urls = [u.strip() for u in urls if u and u.strip()]
        if not urls:
            return out

        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.config.fetch_timeout_s)
        ) as session:
            for idx, url in enumerate(urls, 1):
                if _is_disallowed_url(url):
                    log.info("Skipping disallowed attachment URL: %s", url)
                    continue
                try:
                    attachment = await self._fetch_one(session, channel_id, url, idx)
                except (aiohttp.ClientError, asyncio.TimeoutError, OSError):
                    log.warning("Failed to download image: %s", url, exc_info=True)
                    continue
                if attachment is not None:
                    out.append(attachment)

        log.info("Saved %d of %d image(s) for %s", len(out), len(urls), channel_id)
        return out

    async def _fetch_one(
        self,
        session: aiohttp.ClientSession,
        channel_id: str,
        url: str,
        idx: int,
    ) -> Attachment | None:
        async with session.get(url, headers={"Accept": "image/*"}) as resp:
            if resp.status >= 400:
                return None
            mime = (
                (resp.headers.get("Content-Type") or "image/png")
                .split(";", 1)[0]
                .strip()
                .lower()
            )
            if not mime.startswith("image/"):
                return None

            data = bytearray()
            async for chunk in resp.content.iter_chunked(64 * 1024):
                data.extend(chunk)
                if len(data) > self.config.max_bytes:
                    log.info("Attachment exceeds %d bytes: %s", self.config.max_bytes, url)
                    return None
            if not data:
                return None

        ts = int(time.time() * 1000)
        filename = f"image-{ts}-{idx}{_guess_ext(mime, url=url)}"
        path = self.channel_dir(channel_id) / filename
        path.write_bytes(bytes(data))

        return Attachment(
            id=f"att_{uuid.uuid4().hex[:12]}",
            kind="image",
            mime=mime,
            filename=filename,
            local_path=str(path),
            size_bytes=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
            original_url=url,
        )
