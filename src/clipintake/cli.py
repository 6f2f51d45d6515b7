from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .backends import build_backend
from .config import load_config
from .errors import ConfigError, ManifestError, ScanError, VolumeError
from .intake import run_intake
from .manifest import ManifestStore
from .model import IntakeConfig
from .progress import ConsoleProgress
from .utils import as_path
from .volume import detect_volume


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="clipintake",
        description="Find videos on a removable card that are not in the manifest yet, and archive or upload them.",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to config TOML (default: ./config.toml if present).",
    )
    p.add_argument(
        "--json",
        dest="manifest",
        default=None,
        help="Path to the JSON manifest (default: video_mapping.json).",
    )
    p.add_argument(
        "--dir",
        default=None,
        help="Video directory to scan (overrides device detection).",
    )
    p.add_argument(
        "--backend",
        choices=["archive", "upload"],
        default=None,
        help="Where new videos go (overrides backend.kind).",
    )
    p.add_argument("--archive-dir", default=None, help="Archive root for the archive backend.")
    p.add_argument("--outbox", default=None, help="Outbox folder for the upload backend.")
    p.add_argument(
        "--delete-after-upload",
        action="store_true",
        help="Delete each source file once its upload is verified.",
    )
    p.add_argument(
        "--skip-unreadable",
        action="store_true",
        help="Skip unreadable folders/files instead of aborting the scan.",
    )
    p.add_argument("--progress", action="store_true", help="Print progress per file.")
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list new videos; do not process them or touch the manifest.",
    )
    p.add_argument(
        "--print-config",
        action="store_true",
        help="Print parsed config summary and exit (debug).",
    )
    p.add_argument(
        "--write-report",
        default=None,
        help="Optional path to write a JSON report of this run.",
    )
    return p


def apply_overrides(cfg: IntakeConfig, args: argparse.Namespace) -> IntakeConfig:
    paths = cfg.paths
    if args.manifest:
        paths = replace(paths, manifest=as_path(args.manifest))
    if args.dir:
        paths = replace(paths, source=as_path(args.dir))

    backend = cfg.backend
    if args.backend:
        backend = replace(backend, kind=args.backend)
    if args.archive_dir:
        backend = replace(backend, archive_root=as_path(args.archive_dir))
    if args.outbox:
        backend = replace(backend, outbox=as_path(args.outbox))
    if args.delete_after_upload:
        backend = replace(backend, delete_after_upload=True)

    scan = cfg.scan
    if args.skip_unreadable:
        scan = replace(scan, on_error="skip")

    return replace(cfg, paths=paths, backend=backend, scan=scan)


def print_config_summary(cfg: IntakeConfig) -> None:
    print("clipintake config summary")
    print("-------------------------")
    print(f"manifest      : {cfg.paths.manifest}")
    print(f"source        : {cfg.paths.source or '(detect removable volume)'}")
    print(f"extensions    : {' '.join(cfg.scan.extensions)}")
    print(f"on_error      : {cfg.scan.on_error}")
    print(f"hash          : {cfg.scan.hash_algorithm}")
    print(f"dedupe in-scan: {cfg.scan.dedupe_within_scan}")
    print(f"backend       : {cfg.backend.kind}")
    if cfg.backend.kind == "archive":
        print(f"archive_root  : {cfg.backend.archive_root}")
        print(f"mode          : {cfg.backend.mode}")
    else:
        print(f"outbox        : {cfg.backend.outbox}")
        print(f"delete after  : {cfg.backend.delete_after_upload}")


def _warn_skip(path: Path, exc: OSError) -> None:
    print(f"[clipintake] skipped unreadable {path}: {exc}", file=sys.stderr, flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    cfg_path = as_path(args.config or "config.toml")
    try:
        cfg = load_config(cfg_path, required=args.config is not None)
        cfg = apply_overrides(cfg, args)
    except ConfigError as e:
        print(f"[clipintake] config error: {e}", file=sys.stderr)
        return 2

    if args.print_config:
        print_config_summary(cfg)
        return 0

    source = cfg.paths.source
    if source is None:
        try:
            source = detect_volume(cfg.volume.mount_roots)
        except VolumeError as e:
            print(f"[clipintake] error detecting device: {e}", file=sys.stderr)
            return 3
    print(f"[clipintake] using video directory: {source}")

    try:
        backend = build_backend(cfg)
    except ConfigError as e:
        print(f"[clipintake] config error: {e}", file=sys.stderr)
        return 2

    store = ManifestStore(cfg.paths.manifest, hash_algorithm=cfg.scan.hash_algorithm)
    try:
        result = run_intake(
            cfg,
            store,
            backend,
            source,
            progress=ConsoleProgress() if args.progress else None,
            dry_run=bool(args.dry_run),
            on_skip=_warn_skip,
        )
    except ManifestError as e:
        print(f"[clipintake] manifest error: {e}", file=sys.stderr)
        return 4
    except ScanError as e:
        print(f"[clipintake] scan error: {e}", file=sys.stderr)
        return 5
    except OSError as e:
        print(f"[clipintake] manifest i/o error: {e}", file=sys.stderr)
        return 4

    if args.dry_run:
        print("[clipintake] DRY RUN (nothing processed, manifest untouched)")
        for d in result.details:
            print(f"[clipintake] detected video: {d['relpath']}")
    else:
        print(f"[clipintake] backend: {backend.describe()}")
        for d in result.details:
            if d["action"] == "failed":
                print(
                    f"[clipintake] failed: {d['relpath']}: {d['reason']}",
                    file=sys.stderr,
                )

    print(
        "[clipintake] summary: "
        f"new={result.detected} processed={result.processed} failed={result.failed}"
        f" -> {store.path}"
    )

    if args.write_report:
        rp = as_path(str(args.write_report))
        rp.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "source": str(source),
            "backend": cfg.backend.kind,
            "dry_run": bool(args.dry_run),
            "detected": result.detected,
            "processed": result.processed,
            "failed": result.failed,
            "interrupted": result.interrupted,
            "details": result.details,
        }
        rp.write_text(
            json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        print(f"[clipintake] wrote report: {rp}")

    if result.interrupted:
        print("[clipintake] interrupted; committed entries were saved", file=sys.stderr)
        return 130
    return 6 if result.failed else 0
