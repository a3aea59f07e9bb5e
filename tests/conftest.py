# tests/conftest.py
from datetime import datetime, timezone

import pytest

from connectors.schema import NginxPaths

NOW = datetime(2024, 11, 5, 12, 0, 0, tzinfo=timezone.utc)


class FakeHost:
    """exec_cmd / read_file answered from dicts; unknown commands fail."""

    def __init__(self, commands=None, files=None):
        self.commands = dict(commands or {})
        self.files = dict(files or {})
        self.calls = []

    def exec_cmd(self, cmd):
        self.calls.append(cmd)
        res = self.commands.get(cmd)
        if res is None:
            return {"ok": False, "stdout": "", "stderr": f"unexpected command: {cmd}"}
        if isinstance(res, dict):
            return res
        return {"ok": True, "stdout": res, "stderr": ""}

    def read_file(self, path):
        if path not in self.files:
            return {"ok": False, "stdout": "", "stderr": f"No such file: {path}"}
        return {"ok": True, "stdout": self.files[path], "stderr": ""}


class FakeDocker:
    """
    exec results are looked up by argv tuple (or the raw string for sh -c
    commands); unknown commands fail with exit status 1.
    """

    def __init__(self, execs=None, logs=None, attrs=None, available=True):
        self.execs = dict(execs or {})
        self.logs = dict(logs or {})        # (stdout, stderr) -> text or result dict
        self.attrs = attrs
        self.available = available
        self.exec_calls = []
        self.copied = {}

    def exec_in_container(self, container_id, cmd):
        key = tuple(cmd) if isinstance(cmd, (list, tuple)) else cmd
        self.exec_calls.append(key)
        res = self.execs.get(key)
        if res is None:
            return {"ok": False, "stdout": "", "stderr": "exit status 1"}
        if isinstance(res, dict):
            return res
        return {"ok": True, "stdout": res, "stderr": ""}

    def get_container_logs(self, container_id, tail=100, stdout=True, stderr=False):
        res = self.logs.get((stdout, stderr))
        if res is None:
            return {"ok": True, "stdout": "", "stderr": ""}
        if isinstance(res, dict):
            return res
        return {"ok": True, "stdout": res, "stderr": ""}

    def inspect(self, container_id):
        if self.attrs is None:
            return {"ok": False, "attrs": {}, "stderr": "no such container"}
        return {"ok": True, "attrs": self.attrs, "stderr": ""}

    def copy_into_container(self, container_id, path, content, mode=0o644):
        self.copied[path] = content
        return {"ok": True, "stdout": "", "stderr": ""}


class FakeClock:
    def __init__(self, start=1000.0):
        self.t = start

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


def fail(stdout="", stderr="exit status 1"):
    return {"ok": False, "stdout": stdout, "stderr": stderr}


@pytest.fixture
def now():
    return lambda: NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def nginx_paths(tmp_path):
    """sites-available / sites-enabled / logs under tmp_path."""
    available = tmp_path / "sites-available"
    enabled = tmp_path / "sites-enabled"
    logs = tmp_path / "log"
    for d in (available, enabled, logs):
        d.mkdir()
    return NginxPaths(
        sites_available=str(available),
        sites_enabled=str(enabled),
        conf_d=str(tmp_path / "conf.d"),
        nginx_conf=str(tmp_path / "nginx.conf"),
        access_log=str(logs / "access.log"),
        error_log=str(logs / "error.log"),
    )
