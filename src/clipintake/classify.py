from __future__ import annotations

from pathlib import PurePath
from typing import Iterable

from .model import DEFAULT_VIDEO_EXTENSIONS
from .utils import normalize_ext


def is_eligible(filename: str, extensions: Iterable[str] = DEFAULT_VIDEO_EXTENSIONS) -> bool:
    """True iff `filename` carries one of `extensions` (case-insensitive).

    Only the name is looked at; file contents are never sniffed.
    """
    suffix = PurePath(filename).suffix.lower()
    if not suffix:
        return False
    return suffix in {normalize_ext(e) for e in extensions}
