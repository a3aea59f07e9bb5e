# connectors/nginx/logs.py
"""
Access / error log acquisition and parsing.

NativeLogSource reads the log files directly. ContainerLogSource prefers the
container's captured stdout/stderr (`docker logs --tail`) and falls back to
tailing the file inside the container. Container reads never fail: when both
paths are unavailable they return no lines.

Parsing is per line: a line that does not look like the combined format is
dropped and the rest of the batch is kept.
"""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from connectors.errors import SourceUnavailable
from connectors.schema import LogEntry, LogStats, NginxPaths
from connectors.timestamp_parsers import TimestampParserRegistry, parse_nginx_time

logger = logging.getLogger("ngxdash.logs")

RATE_WINDOW = timedelta(seconds=60)
RATE_SCAN_LINES = 1000
STATS_LINES = 1000

CONTAINER_ACCESS_LOG = "/var/log/nginx/access.log"
CONTAINER_ERROR_LOG = "/var/log/nginx/error.log"

# $remote_addr - $remote_user [$time_local] "$request" $status $body_bytes_sent "$http_referer" "$http_user_agent"
COMBINED_RE = re.compile(
    r'^(\S+) \S+ \S+ \[([^\]]+)\] "(\S+) ([^"]+) \S+" (\d+) (\d+) "([^"]*)" "([^"]*)"'
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def status_class(code: int) -> str:
    if 200 <= code < 300:
        return "2xx"
    if 300 <= code < 400:
        return "3xx"
    if 400 <= code < 500:
        return "4xx"
    return "5xx"


def parse_line(line: str, now: Callable[[], datetime] = _utcnow) -> Optional[LogEntry]:
    """
    One combined-format line -> LogEntry, or None when the line does not match.

    An unparsable timestamp is replaced by the current time.
    """
    m = COMBINED_RE.match(line or "")
    if not m:
        return None

    timestamp = parse_nginx_time(m.group(2)) or now()
    code = int(m.group(5))
    return LogEntry(
        ip=m.group(1),
        timestamp=timestamp,
        method=m.group(3),
        path=m.group(4),
        status_code=code,
        bytes_sent=int(m.group(6)),
        referer=m.group(7),
        user_agent=m.group(8),
        status_class=status_class(code),
    )


def parse_lines(lines: Iterable[str], now: Callable[[], datetime] = _utcnow) -> List[LogEntry]:
    entries = []
    dropped = 0
    for line in lines:
        entry = parse_line(line, now=now)
        if entry is None:
            dropped += 1
            continue
        entries.append(entry)
    if dropped:
        logger.debug("dropped %d unparsable log lines", dropped)
    return entries


def compute_request_rate(lines: List[str], now: datetime) -> Tuple[float, int]:
    """
    (requests/sec over the last minute, lines scanned).

    Every line counts toward the total; only lines with a well-formed
    bracketed timestamp inside the window count toward the rate.
    """
    parse_ts = TimestampParserRegistry.get("nginx_access")
    cutoff = now - RATE_WINDOW
    total = 0
    recent = 0
    for line in lines:
        total += 1
        ts = parse_ts(line)
        if ts is not None and ts > cutoff:
            recent += 1
    return recent / 60.0, total


def build_log_stats(entries: List[LogEntry]) -> LogStats:
    status_counts = Counter(e.status_class for e in entries)
    method_counts = Counter(e.method for e in entries)
    path_counts = Counter(e.path for e in entries)
    total_bytes = sum(e.bytes_sent for e in entries)
    total = len(entries)

    return LogStats(
        total_requests=total,
        unique_ips=len({e.ip for e in entries}),
        status_counts=dict(status_counts),
        method_counts=dict(method_counts),
        top_paths=dict(path_counts),
        total_bytes=total_bytes,
        avg_bytes_per_request=total_bytes // total if total else 0,
    )


def _last(lines: List[str], n: int) -> List[str]:
    if n <= 0:
        return []
    return lines[-n:]


# ------------------------------------------------------------
# Sources
# ------------------------------------------------------------
class LogSource:

    def tail_access_lines(self, n: int) -> List[str]:
        raise NotImplementedError()

    def tail_error_lines(self, n: int) -> List[str]:
        raise NotImplementedError()

    def count_access_lines(self) -> int:
        raise NotImplementedError()


class NativeLogSource(LogSource):
    """Reads whole files and keeps the tail; no seek-from-end."""

    def __init__(self, paths: NginxPaths = None):
        self.paths = paths or NginxPaths()

    def _read_lines(self, path: str) -> List[str]:
        try:
            with open(path, "r", errors="ignore") as f:
                return f.read().splitlines()
        except OSError as e:
            raise SourceUnavailable(f"failed to open {path}: {e}")

    def tail_access_lines(self, n: int) -> List[str]:
        return _last(self._read_lines(self.paths.access_log), n)

    def tail_error_lines(self, n: int) -> List[str]:
        return _last(self._read_lines(self.paths.error_log), n)

    def count_access_lines(self) -> int:
        return len(self._read_lines(self.paths.access_log))


class ContainerLogSource(LogSource):

    def __init__(self, docker, container_id: str):
        self.docker = docker
        self.container_id = container_id

    def _tail(self, n: int, stdout: bool, stderr: bool, fallback_path: str) -> List[str]:
        res = self.docker.get_container_logs(self.container_id, tail=n, stdout=stdout, stderr=stderr)
        text = res.get("stdout", "") if res.get("ok") else ""
        if text.strip():
            return _last(text.splitlines(), n)

        logger.debug("log stream of %s empty or unavailable (%s), tailing %s",
                     self.container_id, res.get("stderr"), fallback_path)
        res = self.docker.exec_in_container(
            self.container_id, f"tail -n {int(n)} {fallback_path} 2>/dev/null || true"
        )
        if not res.get("ok"):
            logger.debug("in-container tail failed for %s: %s", self.container_id, res.get("stderr"))
            return []
        return _last([l for l in res.get("stdout", "").splitlines() if l.strip()], n)

    def tail_access_lines(self, n: int) -> List[str]:
        return self._tail(n, stdout=True, stderr=False, fallback_path=CONTAINER_ACCESS_LOG)

    def tail_error_lines(self, n: int) -> List[str]:
        return self._tail(n, stdout=False, stderr=True, fallback_path=CONTAINER_ERROR_LOG)

    def count_access_lines(self) -> int:
        return len(self.tail_access_lines(RATE_SCAN_LINES))


# ------------------------------------------------------------
# Reader
# ------------------------------------------------------------
class AccessLogReader:
    """Log operations on top of one LogSource."""

    def __init__(self, source: LogSource, now: Callable[[], datetime] = _utcnow,
                 stats_lines: int = STATS_LINES):
        self.source = source
        self.now = now
        self.stats_lines = stats_lines

    def get_access_logs(self, max_lines: int) -> List[LogEntry]:
        return parse_lines(self.source.tail_access_lines(max_lines), now=self.now)

    def get_error_logs(self, max_lines: int) -> List[str]:
        return self.source.tail_error_lines(max_lines)

    def calculate_request_rate(self) -> Tuple[float, int]:
        return compute_request_rate(self.source.tail_access_lines(RATE_SCAN_LINES), self.now())

    def get_log_stats(self) -> LogStats:
        return build_log_stats(self.get_access_logs(self.stats_lines))
