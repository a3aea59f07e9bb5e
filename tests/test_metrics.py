# tests/test_metrics.py
from datetime import timedelta

import pytest

from conftest import NOW, FakeHost
from connectors.nginx.logs import AccessLogReader, LogSource
from connectors.nginx.metrics import (
    MetricsSampler,
    count_connections,
    parse_df_usage,
    parse_elapsed_time,
    parse_loadavg,
    parse_meminfo,
    parse_net_dev,
    parse_ps_usage,
)
from connectors.nginx.sites import SiteSource

PS_AUX = """USER       PID %CPU %MEM    VSZ   RSS TTY      STAT START   TIME COMMAND
root       100  0.5  1.0  10640  6000 ?        Ss   09:00   0:00 nginx: master process /usr/sbin/nginx
www-data   101  2.0  1.5  11000  7000 ?        S    09:00   0:01 nginx: worker process
www-data   102  1.5  1.5  11000  7000 ?        S    09:00   0:01 nginx: worker process
root       200  0.1  0.0   6000   800 pts/0    S+   12:00   0:00 grep nginx
root       300 50.0 20.0 900000 90000 ?        Sl   08:00   9:00 /usr/bin/python3 app.py
"""

NET_DEV = """Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo: 5000000     100    0    0    0     0          0         0  5000000     100    0    0    0     0       0          0
  eth0: 2097152     200    0    0    0     0          0         0  1048576     150    0    0    0     0       0          0
"""

SS_TN = """State  Recv-Q Send-Q Local Address:Port  Peer Address:Port Process
ESTAB  0      0      10.0.0.5:443         10.0.0.9:51234
ESTAB  0      0      10.0.0.5:80          10.0.0.9:51235
TIME-WAIT 0   0      10.0.0.5:80          10.0.0.9:51236
ESTAB  0      0      10.0.0.5:22          10.0.0.9:51237
"""

PS_ETIME = """  PID     ELAPSED CMD
  100  2-03:04:05 nginx: master process /usr/sbin/nginx
  101  2-03:04:05 nginx: worker process
"""


def test_parse_ps_usage_sums_nginx_only():
    cpu, mem = parse_ps_usage(PS_AUX)
    assert cpu == pytest.approx(4.0)
    assert mem == pytest.approx(4.0)


def test_parse_net_dev_skips_loopback():
    assert parse_net_dev(NET_DEV) == (2.0, 1.0)


def test_count_connections():
    assert count_connections(SS_TN, ["80", "443"]) == 2
    assert count_connections(SS_TN, ["80", "443"], established_only=False) == 3
    assert count_connections("", ["80"]) == 0


def test_parse_loadavg():
    assert parse_loadavg("0.52 0.41 0.30 1/123 4567\n") == (0.52, 0.41, 0.30)
    assert parse_loadavg("") == (0.0, 0.0, 0.0)


def test_parse_meminfo():
    info = parse_meminfo("MemTotal:       8000000 kB\nMemAvailable:   6000000 kB\n")
    assert info == {"MemTotal": 8000000, "MemAvailable": 6000000}


def test_parse_df_usage():
    text = "Filesystem Size Used Avail Use% Mounted on\n/dev/sda1 50G 20G 30G 41% /\n"
    assert parse_df_usage(text) == "41"
    assert parse_df_usage("") == ""


@pytest.mark.parametrize("etime, expected", [
    ("42", timedelta(seconds=42)),
    ("05:06", timedelta(minutes=5, seconds=6)),
    ("01:02:03", timedelta(hours=1, minutes=2, seconds=3)),
    ("2-03:04:05", timedelta(days=2, hours=3, minutes=4, seconds=5)),
])
def test_parse_elapsed_time(etime, expected):
    assert parse_elapsed_time(etime) == expected


# ----------------------
# Sampler
# ----------------------
class StubLogSource(LogSource):
    def __init__(self, lines=None):
        self.lines = lines or []

    def tail_access_lines(self, n):
        return self.lines[-n:]

    def tail_error_lines(self, n):
        return []

    def count_access_lines(self):
        return len(self.lines)


class StubSites(SiteSource):
    def __init__(self, ports):
        self.ports = ports

    def listening_ports(self):
        return self.ports


def _recent_line():
    stamp = (NOW - timedelta(seconds=5)).strftime("%d/%b/%Y:%H:%M:%S %z")
    return f'1.1.1.1 - - [{stamp}] "GET / HTTP/1.1" 200 10 "-" "-"'


def _sampler(host, lines=None, ports=("80", "443")):
    reader = AccessLogReader(StubLogSource(lines), now=lambda: NOW)
    return MetricsSampler(host, reader, StubSites(list(ports)), now=lambda: NOW)


def test_sample_collects_every_probe():
    host = FakeHost(
        commands={"ps aux": PS_AUX, "ss -tn": SS_TN},
        files={"/proc/net/dev": NET_DEV},
    )
    m = _sampler(host, lines=[_recent_line()] * 6).sample()

    assert m.cpu == pytest.approx(4.0)
    assert m.memory == pytest.approx(4.0)
    assert (m.network_in, m.network_out) == (2.0, 1.0)
    assert m.active_conns == 2
    assert m.total_conns == 6
    assert m.request_rate == pytest.approx(6 / 60.0)
    assert m.timestamp == NOW


def test_sample_defaults_to_zero_when_probes_fail():
    m = _sampler(FakeHost()).sample()
    assert (m.cpu, m.memory, m.network_in, m.network_out) == (0.0, 0.0, 0.0, 0.0)
    assert (m.active_conns, m.total_conns, m.request_rate) == (0, 0, 0.0)
    assert m.timestamp == NOW


def test_ports_fall_back_to_80():
    host = FakeHost(commands={"ss -tn": SS_TN})
    m = _sampler(host, ports=()).sample()
    assert m.active_conns == 1


def test_system_metrics():
    host = FakeHost(
        commands={"df -h /": "Filesystem Size Used Avail Use% Mounted on\n/dev/sda1 50G 20G 30G 41% /\n"},
        files={
            "/proc/loadavg": "0.52 0.41 0.30 1/123 4567\n",
            "/proc/meminfo": "MemTotal:       8000000 kB\nMemAvailable:   6000000 kB\n",
        },
    )
    sm = _sampler(host).system_metrics()
    assert (sm.load_avg_1, sm.load_avg_5, sm.load_avg_15) == (0.52, 0.41, 0.30)
    assert sm.memory_total == 8000000 * 1024
    assert sm.memory_used == 2000000 * 1024
    assert sm.memory_used_percent == pytest.approx(25.0)
    assert sm.disk_usage == "41"


def test_system_metrics_unavailable():
    sm = _sampler(FakeHost()).system_metrics()
    assert sm.memory_total == 0
    assert sm.memory_used_percent == 0.0
    assert sm.disk_usage == ""


def test_nginx_stats():
    host = FakeHost(commands={"ps aux": PS_AUX, "ps -eo pid,etime,cmd": PS_ETIME, "ss -tn": SS_TN})
    st = _sampler(host, lines=[_recent_line()] * 3).stats()
    assert st.worker_processes == 2
    assert st.uptime == timedelta(days=2, hours=3, minutes=4, seconds=5)
    assert st.active_connections == 3
    assert st.total_requests == 3
    assert st.request_rate == pytest.approx(3 / 60.0)
