"""DNS / first-response timing.

The headline number is the wall-clock time of one HTTPS GET to a
well-known host, which folds name resolution, connect, TLS and first
response together.  A separate dnspython lookup records the bare
resolution time alongside it.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import dns.asyncresolver
import httpx

from netquality.config import DNS_FALLBACK_MS, DNS_PROBE_HOST, DNS_PROBE_URL, DNS_TIMEOUT, USER_AGENT
from netquality.models import DnsTiming

logger = logging.getLogger(__name__)


async def _time_http_get(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Callable[[], float] = time.perf_counter,
) -> float:
    """Return elapsed milliseconds for one GET of *url*."""
    async with httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(DNS_TIMEOUT),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        t0 = clock()
        response = await client.get(url)
        elapsed_ms = (clock() - t0) * 1000.0
    response.raise_for_status()
    return elapsed_ms


async def _time_resolution(hostname: str) -> Optional[float]:
    """Resolve *hostname* once and return the lookup time in ms, or None."""
    resolver = dns.asyncresolver.Resolver()
    resolver.lifetime = DNS_TIMEOUT
    try:
        t0 = time.perf_counter()
        await resolver.resolve(hostname, "A")
        return round((time.perf_counter() - t0) * 1000.0, 3)
    except Exception as exc:
        logger.debug("DNS lookup failed for %s: %s", hostname, exc)
        return None


async def measure_dns(
    host: str = DNS_PROBE_HOST,
    url: str = DNS_PROBE_URL,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    resolve: bool = True,
) -> DnsTiming:
    """Time the probe host, substituting a fixed default on failure."""
    timing = DnsTiming(host=host)

    try:
        timing.http_ms = round(await _time_http_get(url, transport), 1)
    except Exception as exc:
        logger.debug("HTTP timing failed for %s: %s", url, exc)
        timing.http_ms = DNS_FALLBACK_MS
        timing.fallback = True

    if resolve:
        timing.resolve_ms = await _time_resolution(host)

    return timing
