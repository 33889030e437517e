"""Delegate bandwidth measurement to the external ``speedtest-cli`` utility.

Server auto-selection parses the free-text ``--list`` output.  The
distance annotation has no guaranteed format, so picking the "nearest"
server is a best-effort heuristic rather than an exact ranking.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from typing import Optional

from netquality.config import (
    SERVER_FILTER_KEYWORDS,
    SERVER_FILTER_LIMIT,
    SERVER_UNFILTERED_LIMIT,
    SOURCE_SPEEDTEST,
    SPEEDTEST_BIN,
    SPEEDTEST_LIST_LINES,
    SPEEDTEST_LIST_TIMEOUT,
    SPEEDTEST_RUN_TIMEOUT,
)
from netquality.models import BandwidthResult, SpeedtestRun, SpeedtestServer

logger = logging.getLogger(__name__)

#   "  12345) Globe Telecom (Davao City, Philippines) [12.34 km]"
_SERVER_LINE_RE = re.compile(r"^\s*(\d+)\)\s*(.*)$")
_DISTANCE_RE = re.compile(r"[\[(]\s*(\d+(?:\.\d+)?)\s*km\s*[\])]", re.IGNORECASE)

#   "Download: 93.41 Mbit/s"
_SIMPLE_RE = re.compile(r"^\s*(Download|Upload):\s*([\d.]+)\s*Mbit/s", re.IGNORECASE | re.MULTILINE)


def find_speedtest() -> Optional[str]:
    """Return the path of the speedtest utility, or None if not installed."""
    return shutil.which(SPEEDTEST_BIN)


async def _run_tool(args: list[str], timeout: float) -> tuple[int, str]:
    """Run a command and return (exit_code, combined output).

    Raises ``asyncio.TimeoutError`` after killing the process.
    """
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise
    return proc.returncode or 0, stdout.decode(errors="replace")


# ---------------------------------------------------------------------------
# Server listing
# ---------------------------------------------------------------------------

def parse_server_listing(output: str) -> list[SpeedtestServer]:
    """Parse ``speedtest-cli --list`` output into servers, in listed order."""
    servers: list[SpeedtestServer] = []
    for line in output.splitlines():
        match = _SERVER_LINE_RE.match(line)
        if not match:
            continue
        description = match.group(2).strip()
        distance: Optional[float] = None
        dist_match = _DISTANCE_RE.search(description)
        if dist_match:
            distance = float(dist_match.group(1))
        servers.append(
            SpeedtestServer(
                server_id=match.group(1),
                description=description,
                distance_km=distance,
            )
        )
    return servers


def select_server(servers: list[SpeedtestServer]) -> tuple[Optional[SpeedtestServer], Optional[str]]:
    """Choose a server from a parsed listing.

    Returns ``(server, selection)`` where selection is ``"nearest"`` for the
    smallest parsed distance (first seen on ties), ``"first"`` when no
    distance could be parsed, or ``(None, None)`` for an empty listing.
    """
    best: Optional[SpeedtestServer] = None
    for server in servers:
        if server.distance_km is None:
            continue
        if best is None or server.distance_km < best.distance_km:
            best = server
    if best is not None:
        return best, "nearest"
    if servers:
        return servers[0], "first"
    return None, None


async def list_servers(speedtest_bin: str, limit: int = SPEEDTEST_LIST_LINES) -> str:
    """Return the first *limit* lines of the server listing ("" on failure)."""
    try:
        _, output = await _run_tool([speedtest_bin, "--list"], timeout=SPEEDTEST_LIST_TIMEOUT)
    except Exception as exc:
        logger.debug("Server listing failed: %s", exc)
        return ""
    return "\n".join(output.splitlines()[:limit])


async def auto_select_server(speedtest_bin: str) -> tuple[Optional[SpeedtestServer], Optional[str]]:
    """List servers (10 s cap) and pick one; ``(None, None)`` means use the default."""
    listing = await list_servers(speedtest_bin)
    if not listing:
        return None, None
    return select_server(parse_server_listing(listing))


def filter_listing(output: str) -> list[str]:
    """Lines of a full listing shown by ``--list-servers``.

    Lines mentioning one of the configured region keywords are preferred;
    without any match the head of the unfiltered listing is returned.
    """
    lines = output.splitlines()
    matching = [
        line for line in lines
        if any(keyword in line.lower() for keyword in SERVER_FILTER_KEYWORDS)
    ]
    if matching:
        return matching[:SERVER_FILTER_LIMIT]
    return lines[:SERVER_UNFILTERED_LIMIT]


async def fetch_filtered_listing(speedtest_bin: str) -> list[str]:
    """Fetch the complete listing and apply :func:`filter_listing`."""
    try:
        _, output = await _run_tool([speedtest_bin, "--list"], timeout=SPEEDTEST_RUN_TIMEOUT)
    except Exception as exc:
        logger.warning("Server listing failed: %s", exc)
        return []
    return filter_listing(output)


# ---------------------------------------------------------------------------
# Speed test
# ---------------------------------------------------------------------------

def parse_simple_output(output: str) -> tuple[Optional[BandwidthResult], Optional[BandwidthResult]]:
    """Parse ``speedtest-cli --simple`` output into (download, upload).

    Both values must be present; otherwise ``(None, None)`` is returned.
    """
    values: dict[str, float] = {}
    for match in _SIMPLE_RE.finditer(output):
        values.setdefault(match.group(1).lower(), float(match.group(2)))

    if "download" not in values or "upload" not in values:
        return None, None
    return (
        BandwidthResult(mbps=values["download"], source=SOURCE_SPEEDTEST),
        BandwidthResult(mbps=values["upload"], source=SOURCE_SPEEDTEST),
    )


async def run_speedtest(server_id: Optional[str] = None) -> SpeedtestRun:
    """Run the external speedtest, choosing a server if none was given.

    Never raises; a missing utility yields ``installed=False``.
    """
    speedtest_bin = find_speedtest()
    if speedtest_bin is None:
        return SpeedtestRun(installed=False)

    run = SpeedtestRun(installed=True)
    if server_id:
        run.server = SpeedtestServer(server_id=server_id)
        run.selection = "user"
    else:
        server, selection = await auto_select_server(speedtest_bin)
        if server is None:
            run.selection = "default"
        else:
            run.server = server
            run.selection = selection

    cmd = [speedtest_bin, "--simple"]
    if run.server is not None:
        cmd += ["--server", run.server.server_id]
    logger.debug("Speedtest command: %s", " ".join(cmd))

    try:
        code, output = await _run_tool(cmd, timeout=SPEEDTEST_RUN_TIMEOUT)
    except asyncio.TimeoutError:
        run.error = f"timed out after {SPEEDTEST_RUN_TIMEOUT:.0f}s"
        return run
    except Exception as exc:
        run.error = str(exc)
        return run

    run.download, run.upload = parse_simple_output(output)
    if not run.succeeded:
        last_line = output.strip().splitlines()[-1] if output.strip() else f"exit code {code}"
        run.error = f"unparseable output: {last_line}"
        logger.debug("speedtest-cli output: %s", output)
    return run
