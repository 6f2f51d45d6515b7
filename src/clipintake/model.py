from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from .utils import utc_now_iso

STATUS_PENDING = "pending"
STATUS_UPLOADED = "uploaded"
STATUS_ARCHIVED = "archived"
KNOWN_STATUSES = {STATUS_PENDING, STATUS_UPLOADED, STATUS_ARCHIVED}

DEFAULT_VIDEO_EXTENSIONS: Tuple[str, ...] = (".mp4", ".mov", ".avi", ".mkv")
DEFAULT_MOUNT_ROOTS: Tuple[str, ...] = ("/media", "/mnt", "/run/media", "/Volumes")


# ----------------------------
# Config
# ----------------------------


@dataclass(frozen=True)
class PathsConfig:
    manifest: Path
    source: Optional[Path]  # None => detect removable volume


@dataclass(frozen=True)
class ScanConfig:
    extensions: Tuple[str, ...] = DEFAULT_VIDEO_EXTENSIONS
    on_error: str = "abort"  # "abort" | "skip"
    hash_algorithm: str = "md5"
    # Content already emitted earlier in the same scan is not emitted again.
    dedupe_within_scan: bool = True


@dataclass(frozen=True)
class BackendConfig:
    kind: str  # "archive" | "upload"
    archive_root: Path
    mode: str  # "copy" | "move"
    mkdirs: bool
    outbox: Path
    delete_after_upload: bool


@dataclass(frozen=True)
class VolumeConfig:
    mount_roots: Tuple[str, ...] = DEFAULT_MOUNT_ROOTS


@dataclass(frozen=True)
class IntakeConfig:
    paths: PathsConfig
    scan: ScanConfig
    backend: BackendConfig
    volume: VolumeConfig = field(default_factory=VolumeConfig)


# ----------------------------
# Manifest
# ----------------------------


@dataclass(frozen=True)
class MediaEntry:
    filename: str
    content_hash: str
    status: str = STATUS_PENDING
    processed_at: Optional[str] = None
    # Location relative to the scanned root; never persisted.
    relpath: Optional[str] = field(default=None, compare=False)

    def mark_processed(self, status: str, *, at: Optional[str] = None) -> "MediaEntry":
        """Return a copy promoted to a terminal `status` and timestamped."""
        if self.status != STATUS_PENDING:
            raise ValueError(f"entry {self.filename} already processed ({self.status})")
        if status == STATUS_PENDING:
            raise ValueError("terminal status required")
        return replace(self, status=status, processed_at=at or utc_now_iso())

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "filename": self.filename,
            "hash": self.content_hash,
            "upload_status": self.status,
        }
        if self.status != STATUS_PENDING and self.processed_at:
            d["upload_timestamp"] = self.processed_at
        return d


@dataclass
class Manifest:
    entries: List[MediaEntry] = field(default_factory=list)
    _index: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._index = {e.content_hash for e in self.entries}

    def add(self, entry: MediaEntry) -> None:
        self.entries.append(entry)
        self._index.add(entry.content_hash)

    def hashes(self) -> Set[str]:
        return set(self._index)

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._index

    def __iter__(self) -> Iterator[MediaEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {"videos": [e.to_dict() for e in self.entries]}
