"""JSON export for check results."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Optional

from netquality.models import BandwidthResult, NetworkReport


def export_json(report: NetworkReport, indent: int = 2) -> str:
    """Export a report as a JSON string."""
    return json.dumps(_build_export_dict(report), indent=indent, default=str)


def _bandwidth_to_dict(result: Optional[BandwidthResult]) -> Optional[dict]:
    return asdict(result) if result is not None else None


def _build_export_dict(report: NetworkReport) -> dict:
    """Build a serializable dictionary from a NetworkReport."""
    data: dict = {}

    if report.timestamp:
        data["timestamp"] = report.timestamp

    if report.latency:
        data["latency"] = {
            "target": report.latency.target,
            "method": report.latency.method,
            "min_ms": report.latency.min_ms,
            "avg_ms": report.latency.avg_ms,
            "max_ms": report.latency.max_ms,
            "jitter_ms": report.latency.jitter_ms,
            "loss_percent": report.latency.loss_percent,
        }
    else:
        data["latency"] = None

    data["quality"] = report.quality
    data["dns"] = asdict(report.dns) if report.dns else None

    st = report.speedtest
    data["speedtest"] = {
        "installed": st.installed,
        "server": asdict(st.server) if st.server else None,
        "selection": st.selection,
        "download": _bandwidth_to_dict(st.download),
        "upload": _bandwidth_to_dict(st.upload),
        "error": st.error,
    }

    data["cdn"] = [
        {
            "url": s.url,
            "label": s.label,
            "result": _bandwidth_to_dict(s.result),
            "error": s.error,
        }
        for s in report.cdn_samples
    ]
    data["upload_sample"] = _bandwidth_to_dict(report.upload_sample)
    data["download"] = _bandwidth_to_dict(report.download)
    data["upload"] = _bandwidth_to_dict(report.upload)
    data["notes"] = list(report.notes)

    return data
