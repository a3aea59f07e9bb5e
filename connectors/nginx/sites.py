# connectors/nginx/sites.py
"""
Site inventory.

Two sources with the same surface:

  NativeSiteSource     sites-available / sites-enabled on this filesystem
  ContainerSiteSource  `nginx -T` inside the container running nginx

Both produce fresh lists of Site records on every call.
"""

import logging
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List

from connectors.errors import ConfigParseError, SourceUnavailable
from connectors.nginx.config_parser import (
    decode_listen,
    extract_directive,
    listen_ports,
    parse_server_blocks,
    parse_site_config,
)
from connectors.schema import NginxPaths, Site

logger = logging.getLogger("ngxdash.sites")

DEFAULT_SITE = "default"
DEFAULT_PORTS = ["80", "443"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_uptime(elapsed: timedelta) -> str:
    """Most coarse unit first: "2d 5h", "3h", "< 1h"."""
    if elapsed.total_seconds() < 0:
        elapsed = timedelta(0)
    hours_total = elapsed.total_seconds() / 3600
    days = int(hours_total / 24)
    hours = int(hours_total) % 24
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h"
    return "< 1h"


class SiteSource:
    """Capability shared by the native and container inventories."""

    def list_sites(self) -> List[Site]:
        raise NotImplementedError()

    def listening_ports(self) -> List[str]:
        raise NotImplementedError()

    def server_names(self) -> Dict[str, List[str]]:
        raise NotImplementedError()


# ------------------------------------------------------------
# Native
# ------------------------------------------------------------
class NativeSiteSource(SiteSource):

    def __init__(self, paths: NginxPaths = None, now: Callable[[], datetime] = _utcnow):
        self.paths = paths or NginxPaths()
        self.now = now

    def _site_files(self) -> List[str]:
        try:
            entries = sorted(os.listdir(self.paths.sites_available))
        except OSError as e:
            raise SourceUnavailable(f"failed to read {self.paths.sites_available}: {e}")
        return [
            name for name in entries
            if os.path.isfile(os.path.join(self.paths.sites_available, name))
        ]

    def _read(self, name: str) -> str:
        with open(os.path.join(self.paths.sites_available, name), "r") as f:
            return f.read()

    def _enabled_path(self, name: str) -> str:
        return os.path.join(self.paths.sites_enabled, name)

    def site_uptime(self, name: str) -> str:
        """Time since the enabling symlink was created."""
        try:
            st = os.lstat(self._enabled_path(name))
        except OSError:
            return "N/A"
        enabled_at = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        return format_uptime(self.now() - enabled_at)

    def list_sites(self) -> List[Site]:
        sites = []
        for name in self._site_files():
            if name == DEFAULT_SITE:
                continue

            enabled = os.path.lexists(self._enabled_path(name))
            try:
                facts = parse_site_config(self._read(name))
            except (OSError, UnicodeDecodeError, ConfigParseError) as e:
                logger.warning("site %s could not be parsed: %s", name, e)
                sites.append(Site(name=name, enabled=enabled, port="unknown", ssl=False, uptime="N/A"))
                continue

            sites.append(Site(
                name=name,
                enabled=enabled,
                port=facts.port,
                ssl=facts.ssl,
                uptime=self.site_uptime(name) if enabled else "Disabled",
            ))

        logger.debug("native inventory: %d sites", len(sites))
        return sites

    def _config_texts(self):
        paths = [self.paths.nginx_conf]
        try:
            paths += [os.path.join(self.paths.sites_available, n) for n in self._site_files()]
        except SourceUnavailable:
            pass
        for path in paths:
            try:
                with open(path, "r", errors="ignore") as f:
                    yield path, f.read()
            except OSError as e:
                logger.debug("skip %s: %s", path, e)

    def listening_ports(self) -> List[str]:
        ports: List[str] = []
        for _, text in self._config_texts():
            for port in listen_ports(text):
                if port not in ports:
                    ports.append(port)
        return ports or list(DEFAULT_PORTS)

    def server_names(self) -> Dict[str, List[str]]:
        names = {}
        for name in self._site_files():
            try:
                facts = parse_site_config(self._read(name))
            except (OSError, UnicodeDecodeError, ConfigParseError):
                continue
            if facts.server_names:
                names[name] = facts.server_names
        return names


# ------------------------------------------------------------
# Container
# ------------------------------------------------------------
_STARTED_AT_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})")


class ContainerSiteSource(SiteSource):

    def __init__(self, docker, container_id: str, now: Callable[[], datetime] = _utcnow):
        self.docker = docker
        self.container_id = container_id
        self.now = now

    def running_config(self) -> str:
        """Fully resolved configuration as dumped by `nginx -T`."""
        res = self.docker.exec_in_container(self.container_id, ["nginx", "-T"])
        if not res.get("ok"):
            raise SourceUnavailable(
                f"failed to get nginx config from container {self.container_id}: "
                f"{res.get('stderr') or res.get('stdout', '').strip()}"
            )
        return res.get("stdout", "")

    def container_uptime(self) -> str:
        res = self.docker.inspect(self.container_id)
        state = (res.get("attrs") or {}).get("State", {}) or {}
        if not res.get("ok") or state.get("Status") != "running":
            return "Running"
        m = _STARTED_AT_RE.match(state.get("StartedAt") or "")
        if not m:
            return "Running"
        started = datetime.strptime(m.group(1), "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
        return format_uptime(self.now() - started)

    def list_sites(self) -> List[Site]:
        uptime = self.container_uptime()
        sites = []
        for i, block in enumerate(parse_server_blocks(self.running_config()), start=1):
            name = extract_directive(block, "server_name") or f"server-{i}"
            port, ssl = "80", False
            listen = extract_directive(block, "listen")
            if listen:
                block_port, ssl = decode_listen(listen)
                port = block_port or port
            sites.append(Site(name=name, enabled=True, port=port, ssl=ssl, uptime=uptime))

        if not sites:
            sites.append(Site(name=DEFAULT_SITE, enabled=True, port="80", ssl=False, uptime=uptime))

        logger.debug("container inventory (%s): %d sites", self.container_id, len(sites))
        return sites

    def listening_ports(self) -> List[str]:
        res = self.docker.inspect(self.container_id)
        bindings = ((res.get("attrs") or {}).get("NetworkSettings") or {}).get("Ports") or {}

        ports: List[str] = []
        for container_port, host_bindings in bindings.items():
            # "80/tcp" -> [{"HostIp": "0.0.0.0", "HostPort": "8083"}]
            for port in [container_port.split("/")[0]] + [
                b.get("HostPort", "") for b in (host_bindings or [])
            ]:
                if port and port not in ports:
                    ports.append(port)
        if ports:
            return ports

        try:
            return listen_ports(self.running_config())
        except SourceUnavailable as e:
            logger.debug("no ports from container %s: %s", self.container_id, e)
            return []

    def server_names(self) -> Dict[str, List[str]]:
        names = {}
        for i, block in enumerate(parse_server_blocks(self.running_config()), start=1):
            server_name = extract_directive(block, "server_name")
            if server_name:
                names[f"server-{i}"] = server_name.split()
        return names
