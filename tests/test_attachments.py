import pytest

from mention_relay.attachments import AttachmentsConfig, AttachmentStore
from mention_relay.attachments.store import _guess_ext, _is_disallowed_url


def _store(tmp_path) -> AttachmentStore:
    return AttachmentStore(
        AttachmentsConfig(base_dir=tmp_path / "att", max_bytes=1024, fetch_timeout_s=1.0)
    )


def test_private_and_non_http_urls_are_disallowed() -> None:
    assert _is_disallowed_url("http://localhost/a.png")
    assert _is_disallowed_url("http://192.168.1.4/a.png")
    assert _is_disallowed_url("http://172.20.0.1/a.png")
    assert _is_disallowed_url("ftp://files.example/a.png")
    assert not _is_disallowed_url("https://files.example/a.png")


def test_extension_guessing() -> None:
    assert _guess_ext("image/jpeg") == ".jpg"
    assert _guess_ext("image/x-icon", url="https://x.example/fav.ICO") == ".ico"
    assert _guess_ext("image/unknown") == ".png"


def test_channel_dir_is_slugged(tmp_path) -> None:
    path = _store(tmp_path).channel_dir("Dev Room@conf.example")
    assert path == tmp_path / "att" / "dev-room-conf.example"
    assert path.is_dir()


@pytest.mark.asyncio
async def test_disallowed_urls_are_skipped_without_fetching(tmp_path) -> None:
    store = _store(tmp_path)
    assert await store.download_images("room", ["http://127.0.0.1/a.png", "  "]) == []
