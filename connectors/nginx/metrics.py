# connectors/nginx/metrics.py
"""
Point-in-time metrics.

Process-table and /proc probes run on the local host (container processes are
visible from there). Request rate, access-log size and listening ports come
from the sources picked for the current mode.

Every probe defaults to zero on its own failure; sample() always returns.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Tuple

from connectors.errors import NginxError
from connectors.schema import Metrics, NginxStats, SystemMetrics

logger = logging.getLogger("ngxdash.metrics")

MB = 1024 * 1024
FALLBACK_PORTS = ["80"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------
# Parsers (pure)
# ----------------------
def nginx_process_lines(ps_text: str) -> List[str]:
    return [
        line for line in (ps_text or "").splitlines()
        if "nginx" in line and "grep" not in line
    ]


def parse_ps_usage(ps_text: str) -> Tuple[float, float]:
    """Sum %CPU and %MEM (`ps aux` columns 3 and 4) over nginx processes."""
    cpu = 0.0
    mem = 0.0
    for line in nginx_process_lines(ps_text):
        fields = line.split()
        if len(fields) < 4:
            continue
        try:
            cpu += float(fields[2])
            mem += float(fields[3])
        except ValueError:
            continue
    return cpu, mem


def parse_net_dev(text: str) -> Tuple[float, float]:
    """(received MB, transmitted MB) over all non-loopback interfaces."""
    rx_total = 0
    tx_total = 0
    for line in (text or "").splitlines():
        if ":" not in line:
            continue
        iface, _, counters = line.partition(":")
        if iface.strip() == "lo":
            continue
        fields = counters.split()
        if len(fields) < 9:
            continue
        try:
            rx_total += int(fields[0])
            tx_total += int(fields[8])
        except ValueError:
            continue
    return rx_total / MB, tx_total / MB


def _local_port(address: str) -> str:
    return address.rsplit(":", 1)[-1] if ":" in address else ""


def count_connections(ss_text: str, ports: List[str], established_only: bool = True) -> int:
    """
    Count `ss -tn` rows whose local port is one of `ports`.

    State  Recv-Q Send-Q Local Address:Port  Peer Address:Port
    ESTAB  0      0      10.0.0.5:443        10.0.0.9:51234
    """
    wanted = set(ports)
    count = 0
    for line in (ss_text or "").splitlines():
        fields = line.split()
        if len(fields) < 5 or fields[0] == "State":
            continue
        if established_only and fields[0] != "ESTAB":
            continue
        if _local_port(fields[3]) in wanted:
            count += 1
    return count


def parse_loadavg(text: str) -> Tuple[float, float, float]:
    parts = (text or "").split()
    if len(parts) < 3:
        return 0.0, 0.0, 0.0
    try:
        return float(parts[0]), float(parts[1]), float(parts[2])
    except ValueError:
        return 0.0, 0.0, 0.0


def parse_meminfo(text: str) -> Dict[str, int]:
    """/proc/meminfo -> {"MemTotal": kB, ...}"""
    info = {}
    for line in (text or "").splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            info[parts[0].rstrip(":")] = int(parts[1])
        except ValueError:
            continue
    return info


def parse_df_usage(text: str) -> str:
    """Use% of the first filesystem row of `df -h /`, without the '%'."""
    lines = (text or "").splitlines()
    if len(lines) < 2:
        return ""
    parts = lines[1].split()
    if len(parts) < 5:
        return ""
    return parts[4].rstrip("%")


def parse_elapsed_time(etime: str) -> timedelta:
    """ps etime: ss | mm:ss | hh:mm:ss | dd-hh:mm:ss"""
    etime = (etime or "").strip()
    days = 0
    if "-" in etime:
        day_part, etime = etime.split("-", 1)
        days = int(day_part or 0)

    parts = [int(p or 0) for p in etime.split(":")] if etime else []
    hours = minutes = seconds = 0
    if len(parts) == 1:
        seconds = parts[0]
    elif len(parts) == 2:
        minutes, seconds = parts
    elif len(parts) == 3:
        hours, minutes, seconds = parts
    return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)


# ------------------------------------------------------------
# Sampler
# ------------------------------------------------------------
class MetricsSampler:
    """
    Args:
        host: LocalHostConnector
        log_reader: AccessLogReader for the current mode
        site_source: SiteSource for the current mode (listening ports)
    """

    def __init__(self, host, log_reader, site_source, now: Callable[[], datetime] = _utcnow):
        self.host = host
        self.log_reader = log_reader
        self.site_source = site_source
        self.now = now

    def _stdout(self, cmd: str) -> str:
        res = self.host.exec_cmd(cmd)
        if not res.get("ok"):
            raise NginxError(f"`{cmd}` failed: {res.get('stderr') or res.get('stdout', '').strip()}")
        return res.get("stdout", "")

    def _file(self, path: str) -> str:
        res = self.host.read_file(path)
        if not res.get("ok"):
            raise NginxError(f"cannot read {path}: {res.get('stderr')}")
        return res.get("stdout", "")

    def _probe(self, name, fn, default):
        try:
            return fn()
        except (NginxError, ValueError) as e:
            logger.debug("metric %s unavailable: %s", name, e)
            return default

    # ----------------------
    # Probes
    # ----------------------
    def process_usage(self) -> Tuple[float, float]:
        return parse_ps_usage(self._stdout("ps aux"))

    def network_totals(self) -> Tuple[float, float]:
        return parse_net_dev(self._file("/proc/net/dev"))

    def ports(self) -> List[str]:
        ports = self._probe("ports", self.site_source.listening_ports, [])
        return ports or list(FALLBACK_PORTS)

    def connection_stats(self) -> Tuple[int, int]:
        active = count_connections(self._stdout("ss -tn"), self.ports())
        total = self._probe("total_conns", self.log_reader.source.count_access_lines, 0)
        return active, total

    def request_rate(self) -> float:
        rate, _ = self.log_reader.calculate_request_rate()
        return rate

    # ----------------------
    # Snapshots
    # ----------------------
    def sample(self) -> Metrics:
        cpu, mem = self._probe("cpu/memory", self.process_usage, (0.0, 0.0))
        net_in, net_out = self._probe("network", self.network_totals, (0.0, 0.0))
        active, total = self._probe("connections", self.connection_stats, (0, 0))
        rate = self._probe("request_rate", self.request_rate, 0.0)

        return Metrics(
            cpu=cpu,
            memory=mem,
            network_in=net_in,
            network_out=net_out,
            request_rate=rate,
            active_conns=active,
            total_conns=total,
            timestamp=self.now(),
        )

    def system_metrics(self) -> SystemMetrics:
        load1, load5, load15 = self._probe(
            "loadavg", lambda: parse_loadavg(self._file("/proc/loadavg")), (0.0, 0.0, 0.0)
        )
        mem = self._probe("meminfo", lambda: parse_meminfo(self._file("/proc/meminfo")), {})
        disk = self._probe("disk", lambda: parse_df_usage(self._stdout("df -h /")), "")

        total_kb = mem.get("MemTotal", 0)
        used_kb = total_kb - mem.get("MemAvailable", 0) if total_kb else 0
        return SystemMetrics(
            load_avg_1=load1,
            load_avg_5=load5,
            load_avg_15=load15,
            memory_total=total_kb * 1024,
            memory_used=used_kb * 1024,
            memory_used_percent=(used_kb / total_kb * 100) if total_kb else 0.0,
            disk_usage=disk,
        )

    def stats(self) -> NginxStats:
        def workers():
            ps = self._stdout("ps aux")
            return sum(1 for l in nginx_process_lines(ps) if "nginx: worker process" in l)

        def uptime():
            for line in nginx_process_lines(self._stdout("ps -eo pid,etime,cmd")):
                if "nginx: master process" in line:
                    return parse_elapsed_time(line.split()[1])
            return timedelta(0)

        rate, total = self._probe(
            "request_rate", self.log_reader.calculate_request_rate, (0.0, 0)
        )
        return NginxStats(
            active_connections=self._probe(
                "active_connections",
                lambda: count_connections(self._stdout("ss -tn"), self.ports(), established_only=False),
                0,
            ),
            request_rate=rate,
            total_requests=total,
            uptime=self._probe("uptime", uptime, timedelta(0)),
            worker_processes=self._probe("workers", workers, 0),
        )
