# tests/test_service.py
import os
from dataclasses import asdict

import pytest

from conftest import NOW, FakeDocker, FakeHost, fail
from config.config_loader import default_config
from connectors.environment import EnvironmentCache
from connectors.errors import ActionError, UnsupportedAction
from connectors.nginx.site_config import SiteConfig
from orchestrator.nginx_service import CONTAINER, NATIVE, NginxService

CID = "0123456789ab"
NGINX_T = "server {\n    listen 8080;\n    server_name api.example.com;\n}\n"


class Detector:
    def __init__(self, result):
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.result


def _config(paths, **probe):
    cfg = default_config()
    cfg["paths"] = asdict(paths)
    cfg["probe"].update(probe)
    return cfg


def _service(paths, clock, docker=None, container_id=None, host=None, **probe):
    detector = Detector(container_id)
    svc = NginxService(
        _config(paths, **probe),
        local=host or FakeHost(commands={"nginx -t": "ok", "systemctl reload nginx": ""}),
        docker=docker,
        cache=EnvironmentCache(detector, ttl=5.0, clock=clock),
        now=lambda: NOW,
    )
    return svc, detector


def _native_site(paths, name="a.com"):
    with open(os.path.join(paths.sites_available, name), "w") as f:
        f.write("server {\n    listen 80;\n    server_name a.com;\n}\n")


def test_docker_disabled_is_native(nginx_paths, clock):
    _native_site(nginx_paths)
    svc, detector = _service(nginx_paths, clock, use_docker=False)

    assert svc.mode() == NATIVE
    assert [s.name for s in svc.list_sites()] == ["a.com"]
    assert detector.calls == 0


def test_docker_unavailable_is_native(nginx_paths, clock):
    svc, detector = _service(nginx_paths, clock, docker=FakeDocker(available=False), container_id=CID)
    assert svc.mode() == NATIVE
    assert detector.calls == 0


def test_no_container_found_is_native(nginx_paths, clock):
    svc, detector = _service(nginx_paths, clock, docker=FakeDocker(), container_id=None)
    assert svc.mode() == NATIVE
    assert detector.calls == 1


def test_container_mode_uses_container_sources(nginx_paths, clock):
    _native_site(nginx_paths)
    docker = FakeDocker(execs={("nginx", "-T"): NGINX_T})
    svc, detector = _service(nginx_paths, clock, docker=docker, container_id=CID)

    assert svc.mode() == CONTAINER
    assert [s.name for s in svc.list_sites()] == ["api.example.com"]
    assert svc.listening_ports() == ["8080"]
    assert detector.calls == 1


def test_container_inventory_failure_falls_back_to_native(nginx_paths, clock):
    _native_site(nginx_paths)
    docker = FakeDocker(execs={("nginx", "-T"): fail()})
    svc, _ = _service(nginx_paths, clock, docker=docker, container_id=CID)

    assert [s.name for s in svc.list_sites()] == ["a.com"]


def test_container_actions_are_routed_to_container(nginx_paths, clock):
    svc, _ = _service(nginx_paths, clock, docker=FakeDocker(), container_id=CID)
    with pytest.raises(UnsupportedAction):
        svc.enable_site("a.com")


def test_container_logs_never_touch_native_files(nginx_paths, clock):
    line = '1.1.1.1 - - [05/Nov/2024:11:59:50 +0000] "GET /c HTTP/1.1" 200 5 "-" "-"'
    docker = FakeDocker(logs={(True, False): line + "\n"})
    svc, _ = _service(nginx_paths, clock, docker=docker, container_id=CID)

    assert [e.path for e in svc.get_access_logs(10)] == ["/c"]
    rate, total = svc.calculate_request_rate()
    assert total == 1
    assert rate == pytest.approx(1 / 60.0)


def test_invalidate_environment_forces_probe(nginx_paths, clock):
    svc, detector = _service(nginx_paths, clock, docker=FakeDocker(), container_id=CID)
    svc.mode()
    svc.mode()
    assert detector.calls == 1
    svc.invalidate_environment()
    svc.mode()
    assert detector.calls == 2


def test_create_site_from_validates(nginx_paths, clock):
    svc, _ = _service(nginx_paths, clock, use_docker=False)
    with pytest.raises(ActionError, match="Server name is required"):
        svc.create_site_from(SiteConfig(server_name=""))


def test_create_site_from_native(nginx_paths, clock):
    svc, _ = _service(nginx_paths, clock, use_docker=False)

    filename = svc.create_site_from(SiteConfig(server_name="new.example.com", port="8081"))

    assert filename == "new_example_com"
    assert svc.site_config_path() == nginx_paths.sites_available
    sites = svc.list_sites()
    assert [(s.name, s.enabled, s.port) for s in sites] == [("new_example_com", True, "8081")]
