from __future__ import annotations

import hashlib
from pathlib import Path

DEFAULT_CHUNK_SIZE = 1024 * 1024


def fingerprint(
    path: Path, *, algorithm: str = "md5", chunk_size: int = DEFAULT_CHUNK_SIZE
) -> str:
    """Digest the full byte content of `path` as lowercase hex.

    Raises OSError if the file cannot be opened or a read fails part way
    (e.g. the card was pulled).
    """
    h = hashlib.new(algorithm)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()
