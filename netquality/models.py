"""Data models for netquality."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class LatencyStats:
    """Round-trip statistics for one ping run.

    ``None`` RTT fields mean the latency could not be measured.
    """

    target: str
    min_ms: Optional[float] = None
    avg_ms: Optional[float] = None
    max_ms: Optional[float] = None
    loss_percent: float = 0.0
    method: Optional[str] = None  # icmplib | ping

    @property
    def is_available(self) -> bool:
        return self.avg_ms is not None

    @property
    def jitter_ms(self) -> Optional[float]:
        if self.min_ms is None or self.max_ms is None:
            return None
        return round(self.max_ms - self.min_ms, 1)


@dataclass
class DnsTiming:
    """Response time of the DNS probe host."""

    host: str
    http_ms: float = 0.0
    fallback: bool = False  # True if the default duration was substituted
    resolve_ms: Optional[float] = None


@dataclass
class SpeedtestServer:
    """One entry of a ``speedtest-cli --list`` listing."""

    server_id: str
    description: str = ""
    distance_km: Optional[float] = None


@dataclass
class BandwidthResult:
    """An accepted throughput sample."""

    mbps: float
    source: str  # speedtest-cli | CDN
    duration_s: Optional[float] = None
    bytes: Optional[int] = None
    url: Optional[str] = None


@dataclass
class SpeedtestRun:
    """Outcome of delegating to the external speedtest utility."""

    installed: bool = False
    server: Optional[SpeedtestServer] = None
    selection: Optional[str] = None  # user | nearest | first | default
    download: Optional[BandwidthResult] = None
    upload: Optional[BandwidthResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.download is not None and self.upload is not None


@dataclass
class EndpointSample:
    """Result of probing a single CDN endpoint."""

    url: str
    label: str
    result: Optional[BandwidthResult] = None
    error: Optional[str] = None


@dataclass
class RunConfig:
    """Configuration for a check run."""

    server_id: Optional[str] = None
    ping_target: str = "8.8.8.8"
    fallback_target: str = "1.1.1.1"
    ping_count: int = 20
    json_output: bool = False
    verbose: bool = False


@dataclass
class NetworkReport:
    """Everything collected during one run."""

    latency: Optional[LatencyStats] = None
    quality: Optional[str] = None
    dns: Optional[DnsTiming] = None
    speedtest: SpeedtestRun = field(default_factory=SpeedtestRun)
    cdn_samples: list[EndpointSample] = field(default_factory=list)
    upload_sample: Optional[BandwidthResult] = None
    download: Optional[BandwidthResult] = None
    upload: Optional[BandwidthResult] = None
    notes: list[str] = field(default_factory=list)
    config: Optional[RunConfig] = None
    timestamp: Optional[str] = None
