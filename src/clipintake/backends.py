from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path
from typing import Optional

from .errors import BackendError, ConfigError
from .model import STATUS_ARCHIVED, STATUS_UPLOADED, IntakeConfig, MediaEntry

CHUNK_SIZE = 1024 * 1024


class Backend:
    """Processes one confirmed-new entry.

    `process` returns on success and raises BackendError (or OSError) on
    failure. `status` is what the entry becomes once committed.
    """

    status: str = ""

    def process(self, source_dir: Path, entry: MediaEntry) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__


def source_path(source_dir: Path, entry: MediaEntry) -> Path:
    src = source_dir / (entry.relpath or entry.filename)
    if not src.is_file():
        raise BackendError(f"source file missing: {src}")
    return src


def _copy_chunked(src: Path, dst: Path, *, algorithm: Optional[str] = None) -> Optional[str]:
    """Copy `src` to `dst` in chunks; return the hex digest of what was written
    when `algorithm` is given."""
    h = hashlib.new(algorithm) if algorithm else None
    with src.open("rb") as inf, dst.open("wb") as outf:
        for chunk in iter(lambda: inf.read(CHUNK_SIZE), b""):
            outf.write(chunk)
            if h is not None:
                h.update(chunk)
    shutil.copystat(src, dst)
    return h.hexdigest() if h is not None else None


def _dedup_path(dst: Path) -> Path:
    if not dst.exists():
        return dst

    stem = dst.stem
    suffix = dst.suffix
    parent = dst.parent

    i = 1
    while True:
        cand = parent / f"{stem} ({i}){suffix}"
        if not cand.exists():
            return cand
        i += 1


class ArchiveBackend(Backend):
    """Copies or moves new files into a local archive tree, keeping the
    layout they had on the card."""

    status = STATUS_ARCHIVED

    def __init__(self, archive_root: Path, *, mode: str = "copy", mkdirs: bool = True) -> None:
        if mode not in {"copy", "move"}:
            raise ConfigError(f"archive mode must be 'copy' or 'move', got: {mode!r}")
        self.archive_root = archive_root
        self.mode = mode
        self.mkdirs = mkdirs

    def describe(self) -> str:
        return f"archive ({self.mode}) -> {self.archive_root}"

    def destination(self, entry: MediaEntry) -> Path:
        return _dedup_path(self.archive_root / (entry.relpath or entry.filename))

    def process(self, source_dir: Path, entry: MediaEntry) -> None:
        src = source_path(source_dir, entry)
        dst = self.destination(entry)
        if self.mkdirs:
            dst.parent.mkdir(parents=True, exist_ok=True)
        elif not dst.parent.is_dir():
            raise BackendError(f"archive folder missing: {dst.parent}")

        if self.mode == "move":
            try:
                os.rename(src, dst)
                return
            except OSError:
                # cross-device; copy then remove src
                pass

        tmp = dst.with_suffix(dst.suffix + ".part")
        try:
            _copy_chunked(src, tmp)
            tmp.replace(dst)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

        if self.mode == "move":
            try:
                os.remove(src)
            except OSError:
                # leave the card untouched; the next run offers the file again
                dst.unlink(missing_ok=True)
                raise


class UploadBackend(Backend):
    """Simulated remote upload.

    The file is streamed into a content-addressed outbox (`<hash><suffix>`),
    the written bytes are checked against the entry's hash, and the source is
    deleted afterwards when `delete_after_upload` is set.
    """

    status = STATUS_UPLOADED

    def __init__(
        self,
        outbox: Path,
        *,
        delete_after_upload: bool = False,
        algorithm: str = "md5",
    ) -> None:
        self.outbox = outbox
        self.delete_after_upload = delete_after_upload
        self.algorithm = algorithm

    def describe(self) -> str:
        action = "upload+delete" if self.delete_after_upload else "upload"
        return f"{action} -> {self.outbox}"

    def process(self, source_dir: Path, entry: MediaEntry) -> None:
        src = source_path(source_dir, entry)
        self.outbox.mkdir(parents=True, exist_ok=True)
        dst = self.outbox / f"{entry.content_hash}{src.suffix.lower()}"

        tmp = dst.with_suffix(dst.suffix + ".part")
        try:
            written = _copy_chunked(src, tmp, algorithm=self.algorithm)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        if written != entry.content_hash:
            tmp.unlink(missing_ok=True)
            raise BackendError(
                f"upload verification failed for {entry.filename}: "
                f"expected {entry.content_hash}, got {written}"
            )
        tmp.replace(dst)

        if self.delete_after_upload:
            try:
                src.unlink()
            except OSError as e:
                raise BackendError(f"uploaded but could not delete {src}: {e}") from e


def build_backend(cfg: IntakeConfig) -> Backend:
    b = cfg.backend
    if b.kind == "archive":
        return ArchiveBackend(b.archive_root, mode=b.mode, mkdirs=b.mkdirs)
    if b.kind == "upload":
        return UploadBackend(
            b.outbox,
            delete_after_upload=b.delete_after_upload,
            algorithm=cfg.scan.hash_algorithm,
        )
    raise ConfigError(f"unknown backend kind: {b.kind!r}")
