# tests/test_history.py
from datetime import timedelta

import pytest

from conftest import NOW
from connectors.schema import Metrics
from history.metrics_history import MetricsHistory, RingBuffer


def test_ring_buffer_overwrites_oldest():
    buf = RingBuffer(3)
    for v in range(5):
        buf.append(v)
    assert buf.values() == [2, 3, 4]
    assert buf.latest() == 4
    assert len(buf) == 3


def test_ring_buffer_partial_and_clear():
    buf = RingBuffer(4)
    assert buf.latest() is None
    buf.append("a")
    buf.append("b")
    assert buf.values() == ["a", "b"]
    buf.clear()
    assert buf.values() == []
    assert len(buf) == 0


def test_ring_buffer_rejects_zero_capacity():
    with pytest.raises(ValueError):
        RingBuffer(0)


def _m(seconds, net_in, net_out, cpu=1.0):
    return Metrics(cpu=cpu, memory=2.0, network_in=net_in, network_out=net_out,
                   request_rate=0.5, timestamp=NOW + timedelta(seconds=seconds))


def test_network_rate_warms_up():
    history = MetricsHistory(capacity=10)
    assert history.add(_m(0, 100.0, 50.0)) == 0.0
    assert history.add(_m(2, 104.0, 52.0)) == pytest.approx(3.0)
    assert history.network.values() == [0.0, pytest.approx(3.0)]


def test_zero_counters_keep_rate_at_zero():
    history = MetricsHistory(capacity=10)
    history.add(_m(0, 0.0, 0.0))
    assert history.add(_m(1, 10.0, 10.0)) == 0.0
    assert history.add(_m(2, 11.0, 12.0)) == pytest.approx(3.0)


def test_same_timestamp_uses_one_second_interval():
    history = MetricsHistory(capacity=10)
    history.add(_m(0, 10.0, 10.0))
    assert history.add(_m(0, 11.0, 11.0)) == pytest.approx(2.0)


def test_history_keeps_capacity_points():
    history = MetricsHistory(capacity=3)
    for i in range(5):
        history.add(_m(i, 1.0 + i, 1.0 + i, cpu=float(i)))
    assert len(history) == 3
    assert history.cpu.values() == [2.0, 3.0, 4.0]
    assert history.requests.values() == [0.5, 0.5, 0.5]


def test_reset_restarts_warm_up():
    history = MetricsHistory(capacity=5)
    history.add(_m(0, 10.0, 10.0))
    history.reset()
    assert len(history) == 0
    assert history.add(_m(1, 20.0, 20.0)) == 0.0
