from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .errors import VolumeError
from .model import DEFAULT_MOUNT_ROOTS

PROC_MOUNTS = Path("/proc/mounts")
DRIVE_REMOVABLE = 2


def _decode_mount_field(s: str) -> str:
    # /proc/mounts escapes space, tab, newline and backslash as octal
    for code, ch in (("\\040", " "), ("\\011", "\t"), ("\\012", "\n"), ("\\134", "\\")):
        s = s.replace(code, ch)
    return s


def _under(mountpoint: str, roots: Iterable[str]) -> bool:
    for r in roots:
        r = r.rstrip("/")
        if mountpoint == r or mountpoint.startswith(r + "/"):
            return True
    return False


def linux_mounts(mounts_file: Path = PROC_MOUNTS) -> List[str]:
    out: List[str] = []
    for line in mounts_file.read_text(encoding="utf-8").splitlines():
        parts = line.split()
        if len(parts) >= 2:
            out.append(_decode_mount_field(parts[1]))
    return out


def _macos_volumes(volumes_dir: Path = Path("/Volumes")) -> List[str]:
    if not volumes_dir.is_dir():
        return []
    out = []
    for p in sorted(volumes_dir.iterdir()):
        # the boot volume shows up as a symlink to /
        if p.is_symlink() or not p.is_dir():
            continue
        out.append(str(p))
    return out


def _windows_removable_drives() -> List[str]:  # pragma: no cover - windows only
    import ctypes
    import string

    kernel32 = ctypes.windll.kernel32
    bitmask = kernel32.GetLogicalDrives()
    drives = []
    for i, letter in enumerate(string.ascii_uppercase):
        if bitmask & (1 << i):
            root = f"{letter}:\\"
            if kernel32.GetDriveTypeW(root) == DRIVE_REMOVABLE:
                drives.append(root)
    return drives


def detect_volume(
    mount_roots: Sequence[str] = DEFAULT_MOUNT_ROOTS,
    *,
    platform: Optional[str] = None,
    mounts_file: Path = PROC_MOUNTS,
) -> Path:
    """Return the first removable volume's mount point.

    Raises VolumeError when nothing is mounted where removable media lands.
    """
    plat = platform or sys.platform

    if plat.startswith("win"):
        candidates = _windows_removable_drives()
    elif plat == "darwin":
        candidates = _macos_volumes()
    else:
        try:
            mounts = linux_mounts(mounts_file)
        except OSError as e:
            raise VolumeError(f"error detecting devices: {e}") from e
        candidates = [
            m for m in mounts if _under(m, mount_roots) and os.path.isdir(m)
        ]

    if not candidates:
        raise VolumeError("no removable device detected")
    return Path(candidates[0])
