# config/config_loader.py

import copy
from pathlib import Path

import yaml

DEFAULT_CONFIG_NAME = "ngxdash.yaml"

DEFAULTS = {
    "paths": {
        "sites_available": "/etc/nginx/sites-available",
        "sites_enabled": "/etc/nginx/sites-enabled",
        "conf_d": "/etc/nginx/conf.d",
        "nginx_conf": "/etc/nginx/nginx.conf",
        "access_log": "/var/log/nginx/access.log",
        "error_log": "/var/log/nginx/error.log",
    },
    "probe": {
        "cache_ttl_seconds": 5,
        "use_docker": True,
    },
    "docker": {
        "base_url": "",
    },
    "logs": {
        "tail_lines": 100,
        "stats_lines": 1000,
    },
    "history": {
        "capacity": 50,
    },
    "logging": {
        "level": "INFO",
        "dir": "logs",
        "file": "ngxdash.log",
    },
}


def default_config() -> dict:
    return copy.deepcopy(DEFAULTS)


class ConfigLoader:
    def __init__(self, base_dir="config"):
        self.base_dir = Path(base_dir)

    def _load_yaml(self, path: Path):
        if not Path(path).exists():
            raise FileNotFoundError(f"YAML not found: {path}")
        return yaml.safe_load(Path(path).read_text()) or {}

    def load(self, path: str = None) -> dict:
        """
        1) If path is given -> that file (must exist).
        2) Otherwise -> <base_dir>/ngxdash.yaml if present.
        3) Otherwise -> built-in defaults.

        Files are deep-merged over the defaults.
        """
        if path:
            return self._deep_merge(default_config(), self._load_yaml(Path(path)))

        default_path = self.base_dir / DEFAULT_CONFIG_NAME
        if default_path.exists():
            return self._deep_merge(default_config(), self._load_yaml(default_path))

        return default_config()

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """
        Deep merge two dictionaries, with override taking precedence.
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
