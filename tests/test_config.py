import tomllib
from pathlib import Path

import pytest

from clipintake.config import load_config, load_toml, parse_config
from clipintake.errors import ConfigError


def test_defaults_when_empty():
    cfg = parse_config({})
    assert cfg.paths.manifest.name == "video_mapping.json"
    assert cfg.paths.source is None
    assert cfg.scan.extensions == (".mp4", ".mov", ".avi", ".mkv")
    assert cfg.scan.on_error == "abort"
    assert cfg.scan.hash_algorithm == "md5"
    assert cfg.scan.dedupe_within_scan is True
    assert cfg.backend.kind == "archive"
    assert cfg.backend.mode == "copy"
    assert cfg.volume.mount_roots[0] == "/media"


def test_full_config_parsed(tmp_path):
    cfg_text = f"""
[paths]
manifest = "{tmp_path / 'm.json'}"
source = "{tmp_path / 'card'}"

[scan]
extensions = ["MP4", ".mts", "mp4"]
on_error = "SKIP"
hash_algorithm = "sha256"
dedupe_within_scan = false

[backend]
kind = "upload"
outbox = "{tmp_path / 'out'}"
delete_after_upload = true

[volume]
mount_roots = ["/media/me"]
"""
    cfg = parse_config(tomllib.loads(cfg_text))
    assert cfg.paths.manifest == (tmp_path / "m.json").resolve()
    assert cfg.paths.source == (tmp_path / "card").resolve()
    assert cfg.scan.extensions == (".mp4", ".mts")
    assert cfg.scan.on_error == "skip"
    assert cfg.scan.hash_algorithm == "sha256"
    assert cfg.scan.dedupe_within_scan is False
    assert cfg.backend.kind == "upload"
    assert cfg.backend.delete_after_upload is True
    assert cfg.volume.mount_roots == ("/media/me",)


@pytest.mark.parametrize(
    "root",
    [
        {"backend": {"kind": "ftp"}},
        {"backend": {"mode": "link"}},
        {"backend": {"mkdirs": "yes"}},
        {"scan": {"on_error": "retry"}},
        {"scan": {"extensions": []}},
        {"scan": {"extensions": "mp4"}},
        {"scan": {"hash_algorithm": "nope"}},
        {"scan": {"hash_algorithm": "shake_128"}},
        {"scan": {"dedupe_within_scan": 1}},
        {"paths": "x"},
        {"paths": {"manifest": 3}},
    ],
)
def test_bad_values_raise(root):
    with pytest.raises(ConfigError):
        parse_config(root)


def test_load_toml_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_toml(tmp_path / "config.toml")


def test_load_toml_parse_error(tmp_path):
    p = tmp_path / "config.toml"
    p.write_text("[paths\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_toml(p)


def test_optional_config_falls_back_to_defaults(tmp_path):
    cfg = load_config(tmp_path / "config.toml", required=False)
    assert cfg.backend.kind == "archive"
    with pytest.raises(ConfigError):
        load_config(tmp_path / "config.toml", required=True)


def test_example_config_parses():
    base = Path(__file__).resolve().parents[1]
    cfg = parse_config(load_toml(base / "config.example.toml"))
    assert cfg.paths.source is None
    assert cfg.backend.kind == "archive"
