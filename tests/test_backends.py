import hashlib
import os
import shutil
from pathlib import Path

import pytest

from clipintake.backends import ArchiveBackend, UploadBackend, build_backend
from clipintake.config import parse_config
from clipintake.errors import BackendError, ConfigError
from clipintake.model import MediaEntry


def make_entry(src_dir: Path, rel: str, data: bytes) -> MediaEntry:
    p = src_dir / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(data)
    return MediaEntry(p.name, hashlib.md5(data).hexdigest(), relpath=rel)


def test_archive_copy_keeps_layout(tmp_path):
    src = tmp_path / "card"
    e = make_entry(src, "DCIM/100GOPRO/GX01.mp4", b"0" * 4096)
    backend = ArchiveBackend(tmp_path / "archive", mode="copy")

    backend.process(src, e)

    dst = tmp_path / "archive" / "DCIM" / "100GOPRO" / "GX01.mp4"
    assert dst.read_bytes() == b"0" * 4096
    assert (src / e.relpath).exists()
    assert backend.status == "archived"


def test_archive_name_collision_gets_suffix(tmp_path):
    src = tmp_path / "card"
    e = make_entry(src, "clip.mov", b"new")
    archive = tmp_path / "archive"
    archive.mkdir()
    (archive / "clip.mov").write_bytes(b"older clip, different content")

    ArchiveBackend(archive).process(src, e)

    assert (archive / "clip (1).mov").read_bytes() == b"new"
    assert (archive / "clip.mov").read_bytes() == b"older clip, different content"


def test_archive_move_removes_source(tmp_path):
    src = tmp_path / "card"
    e = make_entry(src, "clip.mkv", b"m")
    ArchiveBackend(tmp_path / "archive", mode="move").process(src, e)
    assert not (src / "clip.mkv").exists()
    assert (tmp_path / "archive" / "clip.mkv").read_bytes() == b"m"


def test_archive_without_mkdirs_fails(tmp_path):
    src = tmp_path / "card"
    e = make_entry(src, "sub/clip.mkv", b"m")
    with pytest.raises(BackendError):
        ArchiveBackend(tmp_path / "archive", mkdirs=False).process(src, e)


def test_missing_source_is_backend_error(tmp_path):
    e = MediaEntry("gone.mp4", "00", relpath="gone.mp4")
    with pytest.raises(BackendError):
        ArchiveBackend(tmp_path / "archive").process(tmp_path, e)


def test_archive_rejects_unknown_mode(tmp_path):
    with pytest.raises(ConfigError):
        ArchiveBackend(tmp_path, mode="link")


def test_upload_is_content_addressed_and_verified(tmp_path):
    src = tmp_path / "card"
    e = make_entry(src, "DCIM/clip.MP4", b"payload")
    outbox = tmp_path / "outbox"

    backend = UploadBackend(outbox)
    backend.process(src, e)

    assert (outbox / f"{e.content_hash}.mp4").read_bytes() == b"payload"
    assert not list(outbox.glob("*.part"))
    assert (src / "DCIM" / "clip.MP4").exists()
    assert backend.status == "uploaded"


def test_upload_deletes_source_when_asked(tmp_path):
    src = tmp_path / "card"
    e = make_entry(src, "clip.mp4", b"payload")
    UploadBackend(tmp_path / "outbox", delete_after_upload=True).process(src, e)
    assert not (src / "clip.mp4").exists()


def test_upload_hash_mismatch_fails_and_keeps_source(tmp_path):
    src = tmp_path / "card"
    e = make_entry(src, "clip.mp4", b"payload")
    (src / "clip.mp4").write_bytes(b"changed since scan")
    outbox = tmp_path / "outbox"

    with pytest.raises(BackendError):
        UploadBackend(outbox, delete_after_upload=True).process(src, e)

    assert (src / "clip.mp4").exists()
    assert list(outbox.iterdir()) == []


def test_build_backend_selects_kind(tmp_path):
    cfg = parse_config({"backend": {"kind": "upload", "outbox": str(tmp_path / "o")}})
    b = build_backend(cfg)
    assert isinstance(b, UploadBackend)
    assert b.outbox == (tmp_path / "o").resolve()

    cfg = parse_config({"backend": {"archive_root": str(tmp_path / "a"), "mode": "move"}})
    b = build_backend(cfg)
    assert isinstance(b, ArchiveBackend)
    assert b.mode == "move"


def test_archive_failed_copy_leaves_nothing_behind(tmp_path, monkeypatch):
    src = tmp_path / "card"
    e = make_entry(src, "clip.mp4", b"0" * 4096)
    archive = tmp_path / "archive"
    backend = ArchiveBackend(archive)

    def broken_copystat(*a, **kw):
        raise OSError("card pulled")

    monkeypatch.setattr(shutil, "copystat", broken_copystat)
    with pytest.raises(OSError):
        backend.process(src, e)
    assert list(archive.iterdir()) == []

    monkeypatch.undo()
    backend.process(src, e)
    assert [p.name for p in archive.iterdir()] == ["clip.mp4"]


def test_archive_move_fallback_rolls_back_when_source_stays(tmp_path, monkeypatch):
    src = tmp_path / "card"
    e = make_entry(src, "clip.mov", b"m")
    archive = tmp_path / "archive"

    def cross_device(*a, **kw):
        raise OSError("cross-device link")

    def read_only_card(*a, **kw):
        raise PermissionError("read-only file system")

    monkeypatch.setattr(os, "rename", cross_device)
    monkeypatch.setattr(os, "remove", read_only_card)

    with pytest.raises(OSError):
        ArchiveBackend(archive, mode="move").process(src, e)

    assert (src / "clip.mov").exists()
    assert list(archive.iterdir()) == []
