# connectors/schema.py

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional


# --------------------------
# Filesystem layout of a native nginx
# --------------------------

@dataclass(frozen=True)
class NginxPaths:
    sites_available: str = "/etc/nginx/sites-available"
    sites_enabled: str = "/etc/nginx/sites-enabled"
    conf_d: str = "/etc/nginx/conf.d"           # flat layout (RHEL/Fedora style)
    nginx_conf: str = "/etc/nginx/nginx.conf"
    access_log: str = "/var/log/nginx/access.log"
    error_log: str = "/var/log/nginx/error.log"

    @classmethod
    def from_config(cls, config: dict) -> "NginxPaths":
        paths = (config or {}).get("paths", {}) or {}
        known = {k: str(v) for k, v in paths.items() if k in cls.__dataclass_fields__ and v}
        return cls(**known)


# --------------------------
# Site
# --------------------------

@dataclass(frozen=True)
class Site:
    name: str           # file name (native) or server_name / "server-N" (container)
    enabled: bool
    port: str
    ssl: bool
    uptime: str         # "2d 5h", "3h", "< 1h", "Disabled", "Running", "N/A"


# --------------------------
# Access log
# --------------------------

@dataclass(frozen=True)
class LogEntry:
    ip: str
    timestamp: datetime
    method: str
    path: str
    status_code: int
    bytes_sent: int
    user_agent: str
    referer: str
    status_class: str   # "2xx", "3xx", "4xx", "5xx"


@dataclass
class LogStats:
    total_requests: int = 0
    unique_ips: int = 0
    status_counts: Dict[str, int] = field(default_factory=dict)
    method_counts: Dict[str, int] = field(default_factory=dict)
    top_paths: Dict[str, int] = field(default_factory=dict)
    total_bytes: int = 0
    avg_bytes_per_request: int = 0


# --------------------------
# Metrics
# --------------------------

@dataclass(frozen=True)
class Metrics:
    cpu: float = 0.0
    memory: float = 0.0
    network_in: float = 0.0     # MB received since boot
    network_out: float = 0.0    # MB transmitted since boot
    request_rate: float = 0.0   # requests/sec over the last minute
    active_conns: int = 0
    total_conns: int = 0        # access log line count, not a lifetime counter
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class SystemMetrics:
    load_avg_1: float = 0.0
    load_avg_5: float = 0.0
    load_avg_15: float = 0.0
    memory_total: int = 0       # bytes
    memory_used: int = 0        # bytes
    memory_used_percent: float = 0.0
    disk_usage: str = ""        # root filesystem use, "%" stripped


@dataclass(frozen=True)
class NginxStats:
    active_connections: int = 0
    request_rate: float = 0.0
    total_requests: int = 0
    uptime: timedelta = timedelta(0)
    worker_processes: int = 0


# --------------------------
# Parsed site file
# --------------------------

@dataclass(frozen=True)
class SiteFacts:
    port: str = "80"
    ssl: bool = False
    server_names: List[str] = field(default_factory=list)
