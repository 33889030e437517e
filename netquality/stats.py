"""Classification and throughput arithmetic for measurements."""

from __future__ import annotations

from typing import Optional, Sequence

from netquality.config import MIN_SAMPLE_SECONDS, POOR, QUALITY_RULES
from netquality.models import BandwidthResult


def classify_quality(avg_ms: Optional[float], loss_percent: float) -> str:
    """Map average latency and packet loss to a quality label.

    Rules are evaluated best first; an unavailable latency is always POOR.
    """
    if avg_ms is None:
        return POOR
    for label, max_loss, max_avg in QUALITY_RULES:
        loss_ok = loss_percent == 0 if max_loss == 0 else loss_percent < max_loss
        if loss_ok and avg_ms < max_avg:
            return label
    return POOR


def compute_throughput_mbps(num_bytes: int, elapsed_s: float) -> float:
    """Return throughput in Mbit/s for *num_bytes* transferred in *elapsed_s*."""
    if elapsed_s <= 0:
        raise ValueError(f"elapsed time must be positive, got {elapsed_s!r}")
    return (num_bytes * 8) / (elapsed_s * 1_000_000)


def is_measurable(num_bytes: int, elapsed_s: float) -> bool:
    """Whether a transfer is long and large enough to report."""
    return num_bytes > 0 and elapsed_s >= MIN_SAMPLE_SECONDS


def build_sample(
    num_bytes: int,
    elapsed_s: float,
    source: str,
    url: Optional[str] = None,
) -> Optional[BandwidthResult]:
    """Turn a timed transfer into a result, or None if it is unmeasurable."""
    if not is_measurable(num_bytes, elapsed_s):
        return None
    return BandwidthResult(
        mbps=compute_throughput_mbps(num_bytes, elapsed_s),
        source=source,
        duration_s=elapsed_s,
        bytes=num_bytes,
        url=url,
    )


def select_best(samples: Sequence[Optional[BandwidthResult]]) -> Optional[BandwidthResult]:
    """Pick the fastest sample; the first one seen wins a tie."""
    best: Optional[BandwidthResult] = None
    for sample in samples:
        if sample is None:
            continue
        if best is None or sample.mbps > best.mbps:
            best = sample
    return best
