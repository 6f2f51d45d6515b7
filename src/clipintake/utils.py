from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def as_path(s: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(s))
    return Path(expanded).resolve()


def normalize_ext(ext: str) -> str:
    # ".MP4", "mp4", " mp4 " -> ".mp4"
    e = ext.strip().lower()
    if not e:
        return ""
    return e if e.startswith(".") else f".{e}"
