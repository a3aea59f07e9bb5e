# tests/test_config_loader.py
from pathlib import Path

import pytest

from config.config_loader import ConfigLoader, default_config
from connectors.schema import NginxPaths


def test_defaults_when_no_file(tmp_path):
    cfg = ConfigLoader(base_dir=tmp_path).load()
    assert cfg == default_config()
    assert cfg["probe"]["cache_ttl_seconds"] == 5


def test_default_config_is_a_copy():
    cfg = default_config()
    cfg["paths"]["access_log"] = "/tmp/x"
    assert default_config()["paths"]["access_log"] == "/var/log/nginx/access.log"


def test_file_is_deep_merged_over_defaults(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(
        "paths:\n"
        "  access_log: /srv/logs/access.log\n"
        "probe:\n"
        "  use_docker: false\n"
    )
    cfg = ConfigLoader(base_dir=tmp_path).load(str(path))

    assert cfg["paths"]["access_log"] == "/srv/logs/access.log"
    assert cfg["paths"]["error_log"] == "/var/log/nginx/error.log"
    assert cfg["probe"]["use_docker"] is False
    assert cfg["probe"]["cache_ttl_seconds"] == 5

    paths = NginxPaths.from_config(cfg)
    assert paths.access_log == "/srv/logs/access.log"
    assert paths.sites_available == "/etc/nginx/sites-available"


def test_base_dir_file_is_picked_up(tmp_path):
    (tmp_path / "ngxdash.yaml").write_text("history:\n  capacity: 10\n")
    assert ConfigLoader(base_dir=tmp_path).load()["history"]["capacity"] == 10


def test_empty_file_means_defaults(tmp_path):
    (tmp_path / "ngxdash.yaml").write_text("")
    assert ConfigLoader(base_dir=tmp_path).load() == default_config()


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigLoader(base_dir=tmp_path).load(str(tmp_path / "nope.yaml"))


def test_shipped_config_parses():
    shipped = Path(__file__).resolve().parents[1] / "config"
    cfg = ConfigLoader(base_dir=shipped).load()
    assert set(default_config()) <= set(cfg)
