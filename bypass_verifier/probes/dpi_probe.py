"""
DPI range probe.

Requests the first 256 KiB of a known-large resource and counts how many body
bytes actually arrive. The byte count survives interruptions, which is what
lets the classifier tell an injected block page from a dead host.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from ..classifier import DpiVerdict, classify_dpi
from ..config import DPI_READ_CHUNK, HEADERS
from ..models import DpiTarget, ProbeKind, ProbeResult
from .http_probe import describe_error

LOG = logging.getLogger(__name__)


@dataclass
class RangeTransfer:
    """Mutable progress of one range download."""

    status_code: Optional[int] = None
    bytes_received: int = 0
    completed: bool = False
    error: Optional[str] = None

    @property
    def size_kb(self) -> float:
        return self.bytes_received / 1024


async def _read_range(
    session: aiohttp.ClientSession,
    url: str,
    range_bytes: int,
    timeout: float,
    transfer: RangeTransfer,
) -> None:
    headers = dict(HEADERS)
    headers["Range"] = f"bytes=0-{range_bytes - 1}"
    client_timeout = aiohttp.ClientTimeout(total=None, sock_connect=timeout, sock_read=timeout)
    async with session.get(url, headers=headers, timeout=client_timeout) as response:
        transfer.status_code = response.status
        async for chunk in response.content.iter_chunked(DPI_READ_CHUNK):
            transfer.bytes_received += len(chunk)
            if transfer.bytes_received >= range_bytes:
                # server ignored Range; the window is all we need
                break
    transfer.completed = True


def format_dpi_message(transfer: RangeTransfer, verdict: DpiVerdict) -> str:
    status = transfer.status_code if transfer.status_code is not None else "no response"
    message = (
        f"HTTP {status} size={transfer.bytes_received} "
        f"KB={transfer.size_kb:.1f} {verdict.value}"
    )
    if transfer.error:
        message += f" ({transfer.error})"
    return message


async def probe_dpi(
    session: aiohttp.ClientSession,
    profile_name: str,
    target: DpiTarget,
    target_name: str,
    range_bytes: int,
    timeout: float,
    extra_timeout: float,
    warn_min_kb: float,
    warn_max_kb: float,
) -> ProbeResult:
    """
    Run one range probe against a registry target.

    The whole exchange is bounded by `timeout + extra_timeout`; whatever was
    read before the bound hits still counts towards the verdict.
    """
    transfer = RangeTransfer()
    try:
        await asyncio.wait_for(
            _read_range(session, target.url, range_bytes, timeout, transfer),
            timeout=timeout + extra_timeout,
        )
    except asyncio.CancelledError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
        transfer.error = describe_error(e)

    verdict = classify_dpi(
        transfer.status_code,
        transfer.bytes_received,
        transfer.completed,
        warn_min_kb,
        warn_max_kb,
    )
    message = format_dpi_message(transfer, verdict)
    if verdict is DpiVerdict.LIKELY_BLOCKED:
        LOG.info(f"[{profile_name}] {target_name}: {message}")
    else:
        LOG.debug(f"[{profile_name}] {target_name}: {message}")

    return ProbeResult(
        profile_name=profile_name,
        target_name=target_name,
        kind=ProbeKind.DPI,
        success=verdict is DpiVerdict.SUCCESS,
        message=message,
        likely_blocked=verdict is DpiVerdict.LIKELY_BLOCKED,
        status_code=transfer.status_code,
        content_length=transfer.bytes_received,
    )
