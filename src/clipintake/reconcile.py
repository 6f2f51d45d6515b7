from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional, Set

from .errors import ManifestError
from .fingerprint import fingerprint
from .model import STATUS_PENDING, Manifest, MediaEntry, ScanConfig
from .scan import SkipCallback, scan_files


def known_hashes(manifest: Manifest) -> Set[str]:
    return manifest.hashes()


def find_new(
    manifest: Manifest,
    root: Path,
    scan_cfg: Optional[ScanConfig] = None,
    *,
    on_skip: Optional[SkipCallback] = None,
) -> Iterator[MediaEntry]:
    """Yield a pending entry for every file under `root` whose content the
    manifest does not know yet, in walk order.

    Identity is the content hash alone: a renamed or relocated copy of a known
    file is skipped, and two different files sharing a name are both new.
    The known-hash set is taken once up front; it does not see commits made
    while this generator is being consumed.
    """
    cfg = scan_cfg or ScanConfig()
    known = known_hashes(manifest)
    seen_this_scan: Set[str] = set()

    paths = scan_files(
        root, extensions=cfg.extensions, on_error=cfg.on_error, on_skip=on_skip
    )
    for p in paths:
        try:
            digest = fingerprint(p, algorithm=cfg.hash_algorithm)
        except OSError as e:
            if cfg.on_error == "abort":
                raise
            if on_skip is not None:
                on_skip(p, e)
            continue

        if digest in known:
            continue
        if cfg.dedupe_within_scan:
            if digest in seen_this_scan:
                continue
            seen_this_scan.add(digest)

        yield MediaEntry(
            filename=p.name,
            content_hash=digest,
            status=STATUS_PENDING,
            processed_at=None,
            relpath=p.relative_to(root).as_posix(),
        )


def commit(manifest: Manifest, entry: MediaEntry) -> Manifest:
    """Append a processed entry to `manifest` in place and return it."""
    if entry.status == STATUS_PENDING:
        raise ManifestError(f"refusing to commit pending entry: {entry.filename}")
    if entry.content_hash in manifest:
        raise ManifestError(
            f"hash {entry.content_hash} already in manifest ({entry.filename})"
        )
    manifest.add(entry)
    return manifest
