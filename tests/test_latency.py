import asyncio

from netquality import latency
from netquality.config import GOOD
from netquality.models import LatencyStats
from netquality.stats import classify_quality

LINUX_OUTPUT = """\
PING 8.8.8.8 (8.8.8.8) 56(84) bytes of data.
64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=11.2 ms

--- 8.8.8.8 ping statistics ---
20 packets transmitted, 19 received, 5% packet loss, time 19027ms
rtt min/avg/max/mdev = 11.201/12.877/15.302/1.004 ms
"""

MACOS_OUTPUT = """\
--- 1.1.1.1 ping statistics ---
20 packets transmitted, 20 packets received, 0.0% packet loss
round-trip min/avg/max/stddev = 9.512/10.250/14.004/0.911 ms
"""

BUSYBOX_OUTPUT = """\
--- 8.8.8.8 ping statistics ---
4 packets transmitted, 4 packets received, 0% packet loss
round-trip min/avg/max = 20.1/22.3/25.9 ms
"""

UNREACHABLE_OUTPUT = """\
--- 8.8.8.8 ping statistics ---
20 packets transmitted, 0 received, 100% packet loss, time 19456ms
"""


def test_parse_linux():
    stats = latency.parse_ping_output(LINUX_OUTPUT, "8.8.8.8")
    assert stats.min_ms == 11.201
    assert stats.avg_ms == 12.877
    assert stats.max_ms == 15.302
    assert stats.loss_percent == 5
    assert stats.jitter_ms == 4.1
    assert stats.method == "ping"


def test_parse_macos():
    stats = latency.parse_ping_output(MACOS_OUTPUT, "1.1.1.1")
    assert stats.avg_ms == 10.25
    assert stats.loss_percent == 0
    assert stats.jitter_ms == 4.5


def test_parse_busybox():
    stats = latency.parse_ping_output(BUSYBOX_OUTPUT, "8.8.8.8")
    assert (stats.min_ms, stats.avg_ms, stats.max_ms) == (20.1, 22.3, 25.9)


def test_parse_without_summary_is_unavailable_with_zero_loss():
    stats = latency.parse_ping_output(UNREACHABLE_OUTPUT, "8.8.8.8")
    assert not stats.is_available
    assert stats.loss_percent == 0
    assert stats.jitter_ms is None


def _fake_target(results):
    calls = []

    async def fake(target, count):
        calls.append(target)
        return results.get(target)

    return fake, calls


def test_primary_target_reachable(monkeypatch):
    ok = LatencyStats(target="8.8.8.8", min_ms=10.0, avg_ms=12.0, max_ms=14.0)
    fake, calls = _fake_target({"8.8.8.8": ok})
    monkeypatch.setattr(latency, "_ping_target", fake)

    stats = asyncio.run(latency.measure_latency("8.8.8.8", "1.1.1.1", 5))

    assert stats is ok
    assert calls == ["8.8.8.8"]


def test_falls_back_to_secondary_target(monkeypatch):
    ok = LatencyStats(target="1.1.1.1", min_ms=10.0, avg_ms=12.0, max_ms=14.0)
    fake, calls = _fake_target({"1.1.1.1": ok})
    monkeypatch.setattr(latency, "_ping_target", fake)

    stats = asyncio.run(latency.measure_latency("8.8.8.8", "1.1.1.1", 5))

    assert stats.target == "1.1.1.1"
    assert calls == ["8.8.8.8", "1.1.1.1"]


def test_both_targets_unreachable(monkeypatch):
    fake, calls = _fake_target({})
    monkeypatch.setattr(latency, "_ping_target", fake)

    stats = asyncio.run(latency.measure_latency("8.8.8.8", "1.1.1.1", 5))

    assert not stats.is_available
    assert stats.loss_percent == 0
    assert stats.target == "8.8.8.8"


def test_icmplib_error_falls_back_to_system_ping(monkeypatch):
    async def broken(target, count):
        raise PermissionError("no ICMP socket")

    system = LatencyStats(target="8.8.8.8", min_ms=1.0, avg_ms=2.0, max_ms=3.0, method="ping")

    async def fake_system(target, count):
        return system

    monkeypatch.setattr(latency, "_ping_icmplib", broken)
    monkeypatch.setattr(latency, "_ping_system", fake_system)

    assert asyncio.run(latency._ping_target("8.8.8.8", 3)) is system


def test_system_ping_failure_is_unreachable(monkeypatch):
    async def broken(target, count):
        raise PermissionError("no ICMP socket")

    async def missing(target, count):
        raise FileNotFoundError("ping not found on PATH")

    monkeypatch.setattr(latency, "_ping_icmplib", broken)
    monkeypatch.setattr(latency, "_ping_system", missing)

    assert asyncio.run(latency._ping_target("8.8.8.8", 3)) is None


def test_parse_keeps_fractional_loss():
    output = MACOS_OUTPUT.replace("0.0% packet loss", "2.6% packet loss")
    stats = latency.parse_ping_output(output, "1.1.1.1")
    assert stats.loss_percent == 2.6
    assert classify_quality(stats.avg_ms, stats.loss_percent) == GOOD
