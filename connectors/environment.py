# connectors/environment.py
"""
Native vs. container detection.

nginx is considered containerized when its master process lives in a Docker
cgroup. Detection shells out twice (process table, /proc/<pid>/cgroup), so the
result is memoized in an EnvironmentCache for a few seconds and shared by every
read path of the service.
"""

import logging
import re
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger("ngxdash.environment")

DEFAULT_CACHE_TTL = 5.0
SHORT_ID_LEN = 12

MASTER_PROCESS_CMD = "ps aux | grep 'nginx: master process' | grep -v grep | head -1"

# cgroup v2:  0::/system.slice/docker-<id>.scope
# cgroup v1:  12:pids:/docker/<id>
_CGROUP_V2_RE = re.compile(r"docker-([0-9A-Za-z]+)\.scope")
_CGROUP_V1_RE = re.compile(r"docker/([0-9A-Za-z]+)")


def extract_container_id(cgroup_text: str) -> Optional[str]:
    """Return the 12-char short ID found in cgroup membership text, or None."""
    for line in (cgroup_text or "").splitlines():
        if "docker" not in line:
            continue
        for pattern in (_CGROUP_V2_RE, _CGROUP_V1_RE):
            m = pattern.search(line)
            if m and len(m.group(1)) >= SHORT_ID_LEN:
                return m.group(1)[:SHORT_ID_LEN]
    return None


def detect_container(host) -> Optional[str]:
    """
    Find the Docker container running the nginx master process.

    Args:
        host: LocalHostConnector (or anything with exec_cmd / read_file)

    Returns:
        Short container ID, or None when nginx is not running, runs natively,
        or the ID cannot be extracted. None means "use native mode".
    """
    out = host.exec_cmd(MASTER_PROCESS_CMD)
    line = (out.get("stdout") or "").strip()
    if not out.get("ok") or not line:
        logger.debug("no nginx master process found")
        return None

    fields = line.split()
    if len(fields) < 2 or not fields[1].isdigit():
        logger.debug("could not parse nginx process line: %s", line)
        return None
    pid = fields[1]

    cgroup = host.read_file(f"/proc/{pid}/cgroup")
    if not cgroup.get("ok"):
        logger.debug("cannot read cgroup of pid %s: %s", pid, cgroup.get("stderr"))
        return None

    container_id = extract_container_id(cgroup.get("stdout", ""))
    if container_id:
        logger.info("nginx master pid=%s runs in container %s", pid, container_id)
    else:
        logger.debug("nginx master pid=%s is not in a docker cgroup", pid)
    return container_id


# ------------------------------------------------------------
# Read/write lock
# ------------------------------------------------------------
class ReadWriteLock:
    """Many concurrent readers, one exclusive writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    def acquire_read(self):
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True

    def release_write(self):
        with self._cond:
            self._writing = False
            self._cond.notify_all()


# ------------------------------------------------------------
# Cache
# ------------------------------------------------------------
class EnvironmentCache:
    """
    Memoizes the container ID for `ttl` seconds.

    A failed detection never overwrites the cache; invalidate() zeroes it.

    Args:
        detector: zero-arg callable returning a container ID or None
        ttl: freshness window in seconds
        clock: monotonic clock, injectable for tests
    """

    def __init__(self, detector: Callable[[], Optional[str]], ttl: float = DEFAULT_CACHE_TTL,
                 clock: Callable[[], float] = time.monotonic):
        self.detector = detector
        self.ttl = ttl
        self.clock = clock
        self.container_id = ""
        self.last_check = None
        self._lock = ReadWriteLock()
        self._detect_lock = threading.Lock()

    def _fresh(self) -> bool:
        return (
            self.container_id != ""
            and self.last_check is not None
            and self.clock() - self.last_check < self.ttl
        )

    def _read_fresh(self) -> Optional[str]:
        self._lock.acquire_read()
        try:
            return self.container_id if self._fresh() else None
        finally:
            self._lock.release_read()

    def get_cached_or_detect(self) -> Optional[str]:
        cached = self._read_fresh()
        if cached:
            return cached

        # one detection at a time; callers queued behind it reuse its result
        with self._detect_lock:
            cached = self._read_fresh()
            if cached:
                return cached

            container_id = self.detector()
            if not container_id:
                return None

            self._lock.acquire_write()
            try:
                self.container_id = container_id
                self.last_check = self.clock()
            finally:
                self._lock.release_write()
            return container_id

    def invalidate(self):
        self._lock.acquire_write()
        try:
            self.container_id = ""
            self.last_check = None
        finally:
            self._lock.release_write()
        logger.debug("environment cache invalidated")
