# orchestrator/nginx_service.py
"""
NginxService - the single entry point the dashboard talks to.

Each public call resolves the environment once (native or container, through
the shared EnvironmentCache) and runs every read and action of that call
against the backend it picked. Native and container sources are never mixed
inside one call; the only exception is list_sites, which falls back to the
native inventory when the container inventory is unavailable.

Calls block on subprocess / Docker I/O. Run them off the UI thread.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from config.config_loader import default_config
from connectors.environment import DEFAULT_CACHE_TTL, EnvironmentCache, detect_container
from connectors.errors import ActionError, SourceUnavailable
from connectors.host_connectors.docker_host_connector import DockerHostConnector
from connectors.host_connectors.local_host_connector import LocalHostConnector
from connectors.nginx.actions import ContainerActions, NativeActions, SiteActions
from connectors.nginx.logs import (
    STATS_LINES,
    AccessLogReader,
    ContainerLogSource,
    NativeLogSource,
)
from connectors.nginx.metrics import MetricsSampler
from connectors.nginx.site_config import SiteConfig
from connectors.nginx.sites import ContainerSiteSource, NativeSiteSource, SiteSource
from connectors.schema import (
    LogEntry,
    LogStats,
    Metrics,
    NginxPaths,
    NginxStats,
    Site,
    SystemMetrics,
)

logger = logging.getLogger("ngxdash.service")

NATIVE = "native"
CONTAINER = "container"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Backend:
    mode: str
    container_id: Optional[str]
    sites: SiteSource
    logs: AccessLogReader
    actions: SiteActions
    metrics: MetricsSampler


class NginxService:
    """
    Args:
        config: dict as returned by ConfigLoader.load() (defaults if None)
        local: LocalHostConnector (created if None)
        docker: DockerHostConnector (created lazily if None and enabled)
        cache: EnvironmentCache (created around detect_container if None)
    """

    def __init__(self, config=None, local=None, docker=None, cache=None,
                 now: Callable[[], datetime] = _utcnow):
        self.config = config or default_config()
        self.paths = NginxPaths.from_config(self.config)
        self.local = local or LocalHostConnector()
        self.now = now

        probe_cfg = self.config.get("probe", {}) or {}
        self.use_docker = bool(probe_cfg.get("use_docker", True))
        self._docker = docker
        self.cache = cache or EnvironmentCache(
            lambda: detect_container(self.local),
            ttl=float(probe_cfg.get("cache_ttl_seconds", DEFAULT_CACHE_TTL)),
        )
        self.stats_lines = int((self.config.get("logs", {}) or {}).get("stats_lines", STATS_LINES))

    # ----------------------------------------------------------------------
    # Backend resolution
    # ----------------------------------------------------------------------
    @property
    def docker(self) -> Optional[DockerHostConnector]:
        if self._docker is None and self.use_docker:
            self._docker = DockerHostConnector(host_info={"docker": self.config.get("docker", {})})
        return self._docker

    def _native_backend(self) -> Backend:
        sites = NativeSiteSource(self.paths, now=self.now)
        logs = AccessLogReader(NativeLogSource(self.paths), now=self.now, stats_lines=self.stats_lines)
        return Backend(
            mode=NATIVE,
            container_id=None,
            sites=sites,
            logs=logs,
            actions=NativeActions(self.local, self.paths),
            metrics=MetricsSampler(self.local, logs, sites, now=self.now),
        )

    def _container_backend(self, container_id: str) -> Backend:
        sites = ContainerSiteSource(self.docker, container_id, now=self.now)
        logs = AccessLogReader(
            ContainerLogSource(self.docker, container_id), now=self.now, stats_lines=self.stats_lines
        )
        return Backend(
            mode=CONTAINER,
            container_id=container_id,
            sites=sites,
            logs=logs,
            actions=ContainerActions(self.docker, container_id),
            metrics=MetricsSampler(self.local, logs, sites, now=self.now),
        )

    def resolve(self) -> Backend:
        """Pick the backend for one logical operation."""
        docker = self.docker if self.use_docker else None
        if docker is not None and docker.available:
            container_id = self.cache.get_cached_or_detect()
            if container_id:
                return self._container_backend(container_id)
        return self._native_backend()

    def mode(self) -> str:
        return self.resolve().mode

    def invalidate_environment(self):
        self.cache.invalidate()

    # ----------------------------------------------------------------------
    # Sites
    # ----------------------------------------------------------------------
    def list_sites(self) -> List[Site]:
        backend = self.resolve()
        if backend.mode == CONTAINER:
            try:
                sites = backend.sites.list_sites()
            except SourceUnavailable as e:
                logger.warning("container inventory unavailable, using native: %s", e)
                sites = []
            if sites:
                return sites
            backend = self._native_backend()
        return backend.sites.list_sites()

    def listening_ports(self) -> List[str]:
        return self.resolve().sites.listening_ports()

    def server_names(self) -> Dict[str, List[str]]:
        return self.resolve().sites.server_names()

    # ----------------------------------------------------------------------
    # Logs
    # ----------------------------------------------------------------------
    def get_access_logs(self, max_lines: int) -> List[LogEntry]:
        return self.resolve().logs.get_access_logs(max_lines)

    def get_error_logs(self, max_lines: int) -> List[str]:
        return self.resolve().logs.get_error_logs(max_lines)

    def calculate_request_rate(self) -> Tuple[float, int]:
        return self.resolve().logs.calculate_request_rate()

    def get_log_stats(self) -> LogStats:
        return self.resolve().logs.get_log_stats()

    # ----------------------------------------------------------------------
    # Metrics
    # ----------------------------------------------------------------------
    def get_metrics(self) -> Metrics:
        return self.resolve().metrics.sample()

    def get_system_metrics(self) -> SystemMetrics:
        return self.resolve().metrics.system_metrics()

    def get_stats(self) -> NginxStats:
        return self.resolve().metrics.stats()

    # ----------------------------------------------------------------------
    # Actions
    # ----------------------------------------------------------------------
    def enable_site(self, name: str):
        self.resolve().actions.enable_site(name)

    def disable_site(self, name: str):
        self.resolve().actions.disable_site(name)

    def test_config(self):
        self.resolve().actions.test_config()

    def reload(self):
        self.resolve().actions.reload()

    def config_errors(self) -> List[str]:
        return self.resolve().actions.config_errors()

    def site_config_path(self) -> str:
        return self.resolve().actions.site_config_path()

    def create_site(self, filename: str, content: str):
        backend = self.resolve()
        logger.info("creating site %s (%s mode)", filename, backend.mode)
        backend.actions.create_site(filename, content)

    def create_site_from(self, site: SiteConfig) -> str:
        """Validate, render and create; returns the file name used."""
        errors = site.validate()
        if errors:
            raise ActionError("; ".join(errors))
        filename = site.filename()
        self.create_site(filename, site.render())
        return filename
