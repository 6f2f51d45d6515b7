from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError
from .model import (
    DEFAULT_MOUNT_ROOTS,
    DEFAULT_VIDEO_EXTENSIONS,
    BackendConfig,
    IntakeConfig,
    PathsConfig,
    ScanConfig,
    VolumeConfig,
)
from .utils import as_path, normalize_ext

try:
    import tomllib  # py311+
except ModuleNotFoundError as exc:  # pragma: no cover
    raise SystemExit("Python 3.11+ required (missing tomllib).") from exc

DEFAULT_MANIFEST_NAME = "video_mapping.json"
BACKEND_KINDS = {"archive", "upload"}
SCAN_ERROR_POLICIES = {"abort", "skip"}


def load_toml(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_bytes()
    except FileNotFoundError as e:
        raise ConfigError(
            f"Config file not found: {path}\n"
            "Create it by copying config.example.toml to config.toml and editing paths."
        ) from e
    try:
        return tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise ConfigError(f"Config is not valid UTF-8: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"TOML parse error in {path}: {e}") from e


def load_config(path: Path, *, required: bool) -> IntakeConfig:
    """Load and parse `path`; a missing optional file yields the defaults."""
    if not required and not path.exists():
        return parse_config({})
    return parse_config(load_toml(path))


def _get(root: Dict[str, Any], path: str) -> Any:
    cur: Any = root
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur.get(part)
    return cur


def _optional(root: Dict[str, Any], path: str, typ: type, default: Any) -> Any:
    v = _get(root, path)
    if v is None:
        return default
    # bool is an int subclass; keep them apart
    if typ is not bool and isinstance(v, bool):
        raise ConfigError(f"Expected {typ.__name__} for '{path}', got: bool")
    if not isinstance(v, typ):
        raise ConfigError(
            f"Expected {typ.__name__} for '{path}', got: {type(v).__name__}"
        )
    return v


def _optional_list_str(root: Dict[str, Any], path: str, default: List[str]) -> List[str]:
    v = _get(root, path)
    if v is None:
        return list(default)
    if isinstance(v, list) and all(isinstance(x, str) for x in v):
        return v
    raise ConfigError(f"Expected list of strings for '{path}', got: {v!r}")


def _choice(root: Dict[str, Any], path: str, choices: set, default: str) -> str:
    v = _optional(root, path, str, default).lower()
    if v not in choices:
        allowed = ", ".join(repr(c) for c in sorted(choices))
        raise ConfigError(f"{path} must be one of {allowed}, got: {v!r}")
    return v


def _optional_path(root: Dict[str, Any], path: str) -> Optional[Path]:
    v = _optional(root, path, str, "")
    return as_path(v) if v.strip() else None


def parse_config(root: Dict[str, Any]) -> IntakeConfig:
    for table in ("paths", "scan", "backend", "volume"):
        if table in root and not isinstance(root[table], dict):
            raise ConfigError(f"[{table}] must be a table")

    # ---- paths
    paths_cfg = PathsConfig(
        manifest=as_path(_optional(root, "paths.manifest", str, DEFAULT_MANIFEST_NAME)),
        source=_optional_path(root, "paths.source"),
    )

    # ---- scan
    exts = [
        normalize_ext(e)
        for e in _optional_list_str(root, "scan.extensions", list(DEFAULT_VIDEO_EXTENSIONS))
    ]
    exts = [e for e in exts if e]
    if not exts:
        raise ConfigError("scan.extensions must name at least one extension")

    algorithm = _optional(root, "scan.hash_algorithm", str, "md5").lower()
    try:
        digest_size = hashlib.new(algorithm).digest_size
    except ValueError as e:
        raise ConfigError(f"scan.hash_algorithm is not supported: {algorithm!r}") from e
    # shake_* and friends have no fixed length
    if digest_size <= 0:
        raise ConfigError(f"scan.hash_algorithm must have a fixed digest size: {algorithm!r}")

    scan_cfg = ScanConfig(
        extensions=tuple(dict.fromkeys(exts)),
        on_error=_choice(root, "scan.on_error", SCAN_ERROR_POLICIES, "abort"),
        hash_algorithm=algorithm,
        dedupe_within_scan=_optional(root, "scan.dedupe_within_scan", bool, True),
    )

    # ---- backend
    backend_cfg = BackendConfig(
        kind=_choice(root, "backend.kind", BACKEND_KINDS, "archive"),
        archive_root=as_path(_optional(root, "backend.archive_root", str, "archive")),
        mode=_choice(root, "backend.mode", {"copy", "move"}, "copy"),
        mkdirs=_optional(root, "backend.mkdirs", bool, True),
        outbox=as_path(_optional(root, "backend.outbox", str, "outbox")),
        delete_after_upload=_optional(root, "backend.delete_after_upload", bool, False),
    )

    # ---- volume
    volume_cfg = VolumeConfig(
        mount_roots=tuple(
            _optional_list_str(root, "volume.mount_roots", list(DEFAULT_MOUNT_ROOTS))
        ),
    )

    return IntakeConfig(
        paths=paths_cfg, scan=scan_cfg, backend=backend_cfg, volume=volume_cfg
    )
