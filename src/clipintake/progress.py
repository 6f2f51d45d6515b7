from __future__ import annotations

import sys
from typing import Optional, TextIO

from .model import MediaEntry


class ProgressSink:
    """Receives progress events from an intake run. Does nothing by default."""

    def start(self, total: int) -> None:
        pass

    def advance(self, entry: MediaEntry, ok: bool) -> None:
        pass

    def finish(self) -> None:
        pass


class ConsoleProgress(ProgressSink):
    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout
        self.total = 0
        self.current = 0

    def _print(self, msg: str) -> None:
        print(f"[clipintake] {msg}", file=self.stream, flush=True)

    def start(self, total: int) -> None:
        self.total = total
        self.current = 0
        self._print(f"progress: 0/{total}")

    def advance(self, entry: MediaEntry, ok: bool) -> None:
        self.current += 1
        pct = self.current * 100 / self.total if self.total else 100.0
        mark = "ok" if ok else "FAILED"
        self._print(
            f"progress: {self.current}/{self.total} ({pct:.0f}%) {entry.filename} {mark}"
        )

    def finish(self) -> None:
        self._print(f"progress: done ({self.current}/{self.total})")
