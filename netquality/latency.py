"""Latency and packet-loss probing.

Primary strategy uses icmplib's async_ping with unprivileged ICMP sockets.
Falls back to shelling out to the system ``ping`` binary when the socket
cannot be opened (e.g. ``net.ipv4.ping_group_range`` excludes the user).
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from typing import Optional

from netquality.config import PING_INTERVAL, PING_TIMEOUT
from netquality.models import LatencyStats

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ping output parsing
# ---------------------------------------------------------------------------

# Linux:   "20 packets transmitted, 20 received, 0% packet loss, time 19027ms"
# macOS:   "20 packets transmitted, 20 packets received, 0.0% packet loss"
_LOSS_RE = re.compile(r"(\d+(?:\.\d+)?)% packet loss")

# Linux:   "rtt min/avg/max/mdev = 11.201/12.877/15.302/1.004 ms"
# macOS:   "round-trip min/avg/max/stddev = 11.201/12.877/15.302/1.004 ms"
# busybox: "round-trip min/avg/max = 11.201/12.877/15.302 ms"
_RTT_RE = re.compile(
    r"min/avg/max(?:/\w+)?\s*=\s*"
    r"([\d.]+)/([\d.]+)/([\d.]+)"
)


def parse_ping_output(output: str, target: str) -> LatencyStats:
    """Parse the summary of ``ping -c N`` output.

    Without an RTT summary line the latency is reported as unavailable and
    the loss as zero, so that the rest of the report is not held up.
    """
    rtt = _RTT_RE.search(output)
    if not rtt:
        return LatencyStats(target=target, method="ping")

    loss = 0.0
    loss_match = _LOSS_RE.search(output)
    if loss_match:
        loss = float(loss_match.group(1))

    return LatencyStats(
        target=target,
        min_ms=float(rtt.group(1)),
        avg_ms=float(rtt.group(2)),
        max_ms=float(rtt.group(3)),
        loss_percent=loss,
        method="ping",
    )


# ---------------------------------------------------------------------------
# Primary: icmplib
# ---------------------------------------------------------------------------

async def _ping_icmplib(target: str, count: int) -> Optional[LatencyStats]:
    """Ping via icmplib.  Returns None if the host never answered.

    Raises on socket permission errors so the caller can fall back to the
    system binary.
    """
    from icmplib import async_ping  # local import to allow fallback

    host = await async_ping(
        target,
        count=count,
        interval=PING_INTERVAL,
        timeout=PING_TIMEOUT,
        privileged=False,
    )
    if not host.is_alive or host.packets_received == 0:
        return None

    return LatencyStats(
        target=target,
        min_ms=round(host.min_rtt, 3),
        avg_ms=round(host.avg_rtt, 3),
        max_ms=round(host.max_rtt, 3),
        loss_percent=round(host.packet_loss * 100, 1),
        method="icmplib",
    )


# ---------------------------------------------------------------------------
# Fallback: shell out to ping
# ---------------------------------------------------------------------------

async def _ping_system(target: str, count: int) -> Optional[LatencyStats]:
    """Run the system ``ping`` binary.  Returns None if the target was unreachable."""
    ping_bin = shutil.which("ping")
    if ping_bin is None:
        raise FileNotFoundError("ping not found on PATH")

    cmd = [ping_bin, "-c", str(count), target]
    logger.debug("Fallback ping command: %s", " ".join(cmd))

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    try:
        stdout, _ = await asyncio.wait_for(
            proc.communicate(),
            timeout=count * (PING_INTERVAL + PING_TIMEOUT) + 10,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise

    stats = parse_ping_output(stdout.decode(errors="replace"), target)
    if proc.returncode != 0 and not stats.is_available:
        logger.debug("ping %s exited %d", target, proc.returncode)
        return None
    return stats


async def _ping_target(target: str, count: int) -> Optional[LatencyStats]:
    """Ping one target, preferring icmplib over the system binary."""
    try:
        return await _ping_icmplib(target, count)
    except Exception as exc:
        logger.debug("icmplib ping failed (%s), falling back to system ping", exc)

    try:
        return await _ping_system(target, count)
    except Exception as exc:
        logger.warning("System ping to %s failed: %s", target, exc)
        return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def measure_latency(
    target: str,
    fallback_target: str,
    count: int = 20,
) -> LatencyStats:
    """Measure latency and loss to *target*, retrying once on *fallback_target*.

    Never raises; an unmeasurable link yields an unavailable record with
    zero loss.
    """
    stats = await _ping_target(target, count)
    if stats is None:
        logger.info("%s unreachable, retrying with %s", target, fallback_target)
        stats = await _ping_target(fallback_target, count)

    if stats is None:
        return LatencyStats(target=target)
    return stats
