"""Sequential orchestration of all probes into a NetworkReport.

Probes run one after another so that the bandwidth tests do not compete
with each other or with the latency probe.  Every probe is isolated: an
unexpected error degrades that probe to "unavailable" and the run goes on.

Public API:
    run_checks -- run every probe and return the report
"""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Callable, Optional

from netquality.bandwidth import (
    best_download,
    combine_download,
    combine_upload,
    probe_download,
    probe_upload,
)
from netquality.dns_timer import measure_dns
from netquality.latency import measure_latency
from netquality.models import LatencyStats, NetworkReport, RunConfig, SpeedtestRun
from netquality.speedtest import run_speedtest
from netquality.stats import classify_quality

logger = logging.getLogger(__name__)

# Signature: (section_name, report_so_far)
SectionCallback = Callable[[str, NetworkReport], None]

SECTIONS = ["latency", "quality", "dns", "bandwidth"]


def _notify(callback: SectionCallback | None, section: str, report: NetworkReport) -> None:
    if callback:
        callback(section, report)


async def run_checks(
    config: RunConfig,
    on_section: SectionCallback | None = None,
) -> NetworkReport:
    """Run every probe in order and return the collected report.

    Parameters
    ----------
    config:
        Run parameters built by the CLI.
    on_section:
        Optional callable invoked after each section completes, in the
        order of :data:`SECTIONS`.
    """
    report = NetworkReport(config=config)

    # ---- latency & loss ----
    try:
        report.latency = await measure_latency(
            config.ping_target, config.fallback_target, config.ping_count,
        )
    except Exception:
        logger.exception("Latency probe failed")
        report.latency = LatencyStats(target=config.ping_target)
    _notify(on_section, "latency", report)

    # ---- quality ----
    report.quality = classify_quality(report.latency.avg_ms, report.latency.loss_percent)
    _notify(on_section, "quality", report)

    # ---- DNS ----
    try:
        report.dns = await measure_dns()
    except Exception:
        logger.exception("DNS probe failed")
    _notify(on_section, "dns", report)

    # ---- bandwidth ----
    try:
        report.speedtest = await run_speedtest(config.server_id)
    except Exception as exc:
        logger.exception("speedtest-cli delegate failed")
        report.speedtest = SpeedtestRun(installed=True, error=str(exc))

    if not report.speedtest.installed:
        report.notes.append("speedtest-cli not installed")
    elif report.speedtest.selection == "default":
        report.notes.append("Could not determine best server, used speedtest-cli default")
    if report.speedtest.succeeded:
        report.download = report.speedtest.download
        report.upload = report.speedtest.upload

    try:
        report.cdn_samples = await probe_download()
    except Exception:
        logger.exception("CDN download probe failed")
    report.download = combine_download(report.download, best_download(report.cdn_samples))

    try:
        report.upload_sample = await probe_upload()
    except Exception:
        logger.exception("Upload probe failed")
    report.upload = combine_upload(report.upload, report.upload_sample)

    report.timestamp = _dt.datetime.now().astimezone().isoformat(timespec="seconds")
    _notify(on_section, "bandwidth", report)

    return report
