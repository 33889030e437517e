import pytest
from rich.console import Console

from netquality import display, engine
from netquality.config import SOURCE_CDN
from netquality.models import (
    BandwidthResult,
    DnsTiming,
    EndpointSample,
    LatencyStats,
    SpeedtestRun,
)


@pytest.fixture
def recorded_console(monkeypatch):
    """Swap the display console for one that records plain text."""
    console = Console(record=True, width=100, color_system=None, force_terminal=False)
    monkeypatch.setattr(display, "console", console)
    return console


@pytest.fixture
def simulated_probes(monkeypatch):
    """Replace every probe with canned results: 0% loss, 25ms, 150/50 Mbit/s via CDN."""
    calls = []

    async def fake_latency(target, fallback_target, count):
        calls.append("latency")
        return LatencyStats(target=target, min_ms=20.0, avg_ms=25.0, max_ms=31.5, loss_percent=0, method="ping")

    async def fake_dns():
        calls.append("dns")
        return DnsTiming(host="www.google.com", http_ms=84.0, resolve_ms=12.0)

    async def fake_speedtest(server_id=None):
        calls.append("speedtest")
        return SpeedtestRun(installed=False)

    async def fake_download():
        calls.append("download")
        return [
            EndpointSample(
                url="https://speed.cloudflare.com/__down?bytes=50000000",
                label="__down",
                result=BandwidthResult(mbps=150.0, source=SOURCE_CDN, duration_s=2.7, bytes=50_000_000),
            ),
            EndpointSample(url="https://speed.hetzner.de/100MB.bin", label="100MB", error="timed out"),
        ]

    async def fake_upload():
        calls.append("upload")
        return BandwidthResult(mbps=50.0, source=SOURCE_CDN, duration_s=1.7, bytes=10 * 1024 * 1024)

    monkeypatch.setattr(engine, "measure_latency", fake_latency)
    monkeypatch.setattr(engine, "measure_dns", fake_dns)
    monkeypatch.setattr(engine, "run_speedtest", fake_speedtest)
    monkeypatch.setattr(engine, "probe_download", fake_download)
    monkeypatch.setattr(engine, "probe_upload", fake_upload)
    return calls
