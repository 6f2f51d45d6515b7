from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .backends import Backend
from .errors import BackendError, ScanError
from .manifest import ManifestStore
from .model import IntakeConfig, MediaEntry
from .progress import ProgressSink
from .reconcile import commit, find_new
from .scan import SkipCallback


@dataclass
class IntakeResult:
    processed: int = 0
    failed: int = 0
    detected: int = 0
    interrupted: bool = False
    details: List[Dict[str, Any]] = field(default_factory=list)


def _detail(entry: MediaEntry, action: str, **extra: Any) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "filename": entry.filename,
        "relpath": entry.relpath,
        "hash": entry.content_hash,
        "action": action,
    }
    d.update(extra)
    return d


def run_intake(
    cfg: IntakeConfig,
    store: ManifestStore,
    backend: Backend,
    source_dir: Path,
    *,
    progress: Optional[ProgressSink] = None,
    dry_run: bool = False,
    on_skip: Optional[SkipCallback] = None,
) -> IntakeResult:
    """One batch: detect new files under `source_dir`, hand each to `backend`,
    commit the successes and save the manifest.

    A failing item is recorded and left out of the manifest, so the next run
    offers it again. Manifest and scan errors propagate before anything is
    saved. Ctrl-C stops after the current item and still saves what was
    committed.
    """
    sink = progress or ProgressSink()
    manifest = store.load()
    try:
        new_entries = list(find_new(manifest, source_dir, cfg.scan, on_skip=on_skip))
    except OSError as e:
        raise ScanError(f"scan of {source_dir} aborted: {e}") from e

    result = IntakeResult(detected=len(new_entries))
    if dry_run:
        result.details = [_detail(e, "detected") for e in new_entries]
        return result

    committed = set()
    sink.start(len(new_entries))
    try:
        for entry in new_entries:
            # only reachable with dedupe_within_scan off
            if entry.content_hash in committed:
                result.details.append(_detail(entry, "duplicate"))
                sink.advance(entry, True)
                continue
            try:
                backend.process(source_dir, entry)
            except (BackendError, OSError) as e:
                result.failed += 1
                result.details.append(
                    _detail(entry, "failed", reason=f"{type(e).__name__}: {e}")
                )
                sink.advance(entry, False)
                continue

            done = entry.mark_processed(backend.status)
            commit(manifest, done)
            committed.add(done.content_hash)
            result.processed += 1
            result.details.append(_detail(done, "processed", status=done.status))
            sink.advance(done, True)
    except KeyboardInterrupt:
        result.interrupted = True
    finally:
        sink.finish()

    store.save(manifest)
    return result
