from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from .classify import is_eligible
from .errors import ScanError
from .model import DEFAULT_VIDEO_EXTENSIONS

SkipCallback = Callable[[Path, OSError], None]


def check_root(root: Path) -> None:
    if not root.exists():
        raise ScanError(f"source directory does not exist: {root}")
    if not root.is_dir():
        raise ScanError(f"source is not a directory: {root}")


def scan_files(
    root: Path,
    *,
    extensions: Iterable[str] = DEFAULT_VIDEO_EXTENSIONS,
    on_error: str = "abort",
    on_skip: Optional[SkipCallback] = None,
) -> Iterator[Path]:
    """Yield eligible files under `root`, depth-first, sorted by name per level.

    With on_error="abort" an unreadable directory raises its OSError and ends
    the walk. With "skip" the subtree is passed to `on_skip` and left out.
    """
    if on_error not in {"abort", "skip"}:
        raise ValueError(f"unknown scan error policy: {on_error!r}")
    check_root(root)
    exts = tuple(extensions)
    return _walk(root, exts, on_error, on_skip)


def _walk(
    directory: Path,
    exts: tuple,
    on_error: str,
    on_skip: Optional[SkipCallback],
) -> Iterator[Path]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        if on_error == "abort":
            raise
        if on_skip is not None:
            on_skip(directory, e)
        return

    for entry in entries:
        p = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(p, exts, on_error, on_skip)
        elif is_eligible(entry.name, exts):
            yield p
