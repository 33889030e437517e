"""Direct HTTP bandwidth probes against public CDN endpoints.

Public API:
    probe_download   -- time each download endpoint in order
    probe_upload     -- POST a random payload and time it
    combine_download -- merge the CDN result with the speedtest result
    combine_upload   -- same for upload, with a plausibility floor
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Sequence
from urllib.parse import urlparse

import httpx

from netquality.config import (
    DOWNLOAD_URLS,
    HTTP_CONNECT_TIMEOUT,
    HTTP_TOTAL_TIMEOUT,
    SOURCE_CDN,
    UPLOAD_CHUNK_BYTES,
    UPLOAD_MIN_MBPS,
    UPLOAD_SIZE_BYTES,
    UPLOAD_URL,
    USER_AGENT,
)
from netquality.models import BandwidthResult, EndpointSample
from netquality.stats import build_sample, select_best

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        http2=True,
        transport=transport,
        timeout=httpx.Timeout(HTTP_TOTAL_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


def endpoint_label(url: str) -> str:
    """Short display name for an endpoint: the last path segment, else the host."""
    parsed = urlparse(url)
    name = parsed.path.rstrip("/").rsplit("/", 1)[-1]
    if name.endswith(".bin"):
        name = name[: -len(".bin")]
    return name or parsed.hostname or url


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

async def _download_once(
    client: httpx.AsyncClient,
    url: str,
    clock: Clock,
) -> tuple[int, float]:
    """Stream *url* to nowhere and return (bytes, elapsed seconds)."""
    num_bytes = 0
    t0 = clock()
    async with client.stream("GET", url) as response:
        response.raise_for_status()
        async for chunk in response.aiter_raw():
            num_bytes += len(chunk)
    return num_bytes, clock() - t0


async def probe_download(
    urls: Sequence[str] = DOWNLOAD_URLS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Clock = time.perf_counter,
    total_timeout: float = HTTP_TOTAL_TIMEOUT,
) -> list[EndpointSample]:
    """Time a download from each endpoint in order.

    Each endpoint's failure is recorded on its own sample; transfers under
    one second are discarded as unmeasurable.  A transfer still running
    after *total_timeout* seconds is abandoned and counts as a failure.
    """
    samples: list[EndpointSample] = []
    async with _client(transport) as client:
        for url in urls:
            sample = EndpointSample(url=url, label=endpoint_label(url))
            try:
                num_bytes, elapsed = await asyncio.wait_for(
                    _download_once(client, url, clock),
                    timeout=total_timeout,
                )
            except asyncio.TimeoutError:
                logger.debug("Download from %s exceeded %.0fs", url, total_timeout)
                sample.error = f"timed out after {total_timeout:g}s"
                samples.append(sample)
                continue
            except Exception as exc:
                logger.debug("Download from %s failed: %s", url, exc)
                sample.error = str(exc) or type(exc).__name__
                samples.append(sample)
                continue

            sample.result = build_sample(num_bytes, elapsed, SOURCE_CDN, url)
            if sample.result is None:
                sample.error = f"unmeasurable ({num_bytes} bytes in {elapsed:.2f}s)"
            samples.append(sample)
    return samples


def best_download(samples: Sequence[EndpointSample]) -> Optional[BandwidthResult]:
    """Fastest accepted CDN sample, first seen on ties."""
    return select_best([s.result for s in samples])


def combine_download(
    current: Optional[BandwidthResult],
    cdn_best: Optional[BandwidthResult],
) -> Optional[BandwidthResult]:
    """The CDN result replaces *current* only when strictly faster."""
    if cdn_best is None:
        return current
    if current is None or cdn_best.mbps > current.mbps:
        return cdn_best
    return current


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

def _write_payload(size: int) -> Path:
    """Write *size* random bytes to a new temporary file."""
    fd, name = tempfile.mkstemp(prefix="netquality_upload_")
    with os.fdopen(fd, "wb") as f:
        remaining = size
        while remaining > 0:
            n = min(remaining, UPLOAD_CHUNK_BYTES)
            f.write(os.urandom(n))
            remaining -= n
    return Path(name)


async def probe_upload(
    url: str = UPLOAD_URL,
    size: int = UPLOAD_SIZE_BYTES,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Clock = time.perf_counter,
    total_timeout: float = HTTP_TOTAL_TIMEOUT,
) -> Optional[BandwidthResult]:
    """Upload a random payload and return the accepted sample, or None.

    The upload is abandoned after *total_timeout* seconds.  The temporary
    payload file is always removed.
    """
    path: Optional[Path] = None
    try:
        path = _write_payload(size)
        loop = asyncio.get_running_loop()
        payload = await loop.run_in_executor(None, path.read_bytes)
        async with _client(transport) as client:
            t0 = clock()
            response = await asyncio.wait_for(
                client.post(
                    url,
                    content=payload,
                    headers={"Content-Type": "application/octet-stream"},
                ),
                timeout=total_timeout,
            )
            elapsed = clock() - t0
        response.raise_for_status()
        return build_sample(size, elapsed, SOURCE_CDN, url)
    except asyncio.TimeoutError:
        logger.debug("Upload to %s exceeded %.0fs", url, total_timeout)
        return None
    except Exception as exc:
        logger.debug("Upload to %s failed: %s", url, exc)
        return None
    finally:
        if path is not None:
            path.unlink(missing_ok=True)


def combine_upload(
    current: Optional[BandwidthResult],
    sample: Optional[BandwidthResult],
    floor_mbps: float = UPLOAD_MIN_MBPS,
) -> Optional[BandwidthResult]:
    """Adopt the upload sample only above the plausibility floor.

    It must also beat *current* when one is already known.
    """
    if sample is None or sample.mbps <= floor_mbps:
        return current
    if current is None or sample.mbps > current.mbps:
        return sample
    return current
