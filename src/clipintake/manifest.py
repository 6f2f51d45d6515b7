from __future__ import annotations

import hashlib
import json
import string
from pathlib import Path
from typing import Any, Dict, List

from .errors import ManifestError
from .model import KNOWN_STATUSES, STATUS_PENDING, Manifest, MediaEntry


class ManifestStore:
    """JSON snapshot of every media entry already known to the tool.

    Every save rewrites the whole file through a temporary sibling, so the
    file on disk is always a complete snapshot. One process at a time.

    Stored hashes must have the shape of `hash_algorithm`'s hex digest;
    a manifest written with another algorithm is refused rather than
    treating every known file as new.
    """

    def __init__(self, path: Path, *, hash_algorithm: str = "md5") -> None:
        self.path = path
        self.hash_algorithm = hash_algorithm
        self.hash_length = hashlib.new(hash_algorithm).digest_size * 2

    def load(self) -> Manifest:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.save(Manifest())
            return Manifest()

        try:
            raw = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ManifestError(f"Manifest is not valid UTF-8: {self.path}") from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Manifest is not valid JSON: {self.path}: {e}") from e

        manifest = decode_manifest(data, source=str(self.path))
        for i, entry in enumerate(manifest):
            if len(entry.content_hash) != self.hash_length:
                raise ManifestError(
                    f"{self.path}: videos[{i}] hash is not a {self.hash_algorithm} digest "
                    f"({entry.content_hash}); was the manifest written with another "
                    "scan.hash_algorithm?"
                )
        return manifest

    def save(self, manifest: Manifest) -> Path:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(
                json.dumps(manifest.to_dict(), indent=2) + "\n", encoding="utf-8"
            )
            tmp.replace(self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        return self.path


def _decode_entry(i: int, item: Any, source: str) -> MediaEntry:
    if not isinstance(item, dict):
        raise ManifestError(f"{source}: videos[{i}] must be an object")

    fields: Dict[str, str] = {}
    for key in ("filename", "hash", "upload_status"):
        v = item.get(key)
        if not isinstance(v, str) or not v:
            raise ManifestError(f"{source}: videos[{i}].{key} must be a non-empty string")
        fields[key] = v

    status = fields["upload_status"]
    if status not in KNOWN_STATUSES:
        raise ManifestError(f"{source}: videos[{i}] has unknown upload_status {status!r}")

    if not all(c in string.hexdigits for c in fields["hash"]):
        raise ManifestError(f"{source}: videos[{i}].hash is not a hex digest")

    ts = item.get("upload_timestamp")
    if ts is not None and not isinstance(ts, str):
        raise ManifestError(f"{source}: videos[{i}].upload_timestamp must be a string")
    if status == STATUS_PENDING or ts == "":
        ts = None

    return MediaEntry(
        filename=fields["filename"],
        content_hash=fields["hash"].lower(),
        status=status,
        processed_at=ts,
    )


def decode_manifest(data: Any, *, source: str = "<manifest>") -> Manifest:
    """Validate a decoded JSON document and build a Manifest from it."""
    if not isinstance(data, dict):
        raise ManifestError(f"Manifest must be a JSON object: {source}")

    videos = data.get("videos")
    # The original tool wrote `null` for an empty list.
    if videos is None:
        videos = []
    if not isinstance(videos, list):
        raise ManifestError(f"{source}: 'videos' must be a list")

    entries: List[MediaEntry] = []
    seen = set()
    for i, item in enumerate(videos):
        entry = _decode_entry(i, item, source)
        if entry.content_hash in seen:
            raise ManifestError(
                f"{source}: duplicate hash {entry.content_hash} at videos[{i}]"
            )
        seen.add(entry.content_hash)
        entries.append(entry)

    return Manifest(entries=entries)
