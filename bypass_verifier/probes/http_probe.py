"""
HTTP / TLS probes.

Each probe performs one GET through the session pinned to its TLS mode and
turns every outcome, including transport errors, into a ProbeResult.
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp

from ..config import HEADERS
from ..models import ProbeKind, ProbeResult

LOG = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    """Short, user-facing description of a transport error."""
    if isinstance(error, asyncio.TimeoutError):
        return "Connection timeout"
    if isinstance(error, aiohttp.ClientSSLError):
        return f"TLS error: {error}"
    if isinstance(error, aiohttp.ClientConnectorError):
        return f"Connection failed: {error.os_error or error}"
    if isinstance(error, aiohttp.ServerDisconnectedError):
        return "Server disconnected"
    if isinstance(error, aiohttp.ClientPayloadError):
        return f"Transfer interrupted: {error}"
    return f"{type(error).__name__}: {error}" if str(error) else type(error).__name__


async def probe_http(
    session: Optional[aiohttp.ClientSession],
    profile_name: str,
    url: str,
    kind: ProbeKind,
    timeout: float,
) -> ProbeResult:
    """
    GET `url` and report whether a complete 2xx response came back.

    A None session means the TLS mode is not available on this platform; the
    probe still yields a result, flagged as unsupported.
    """
    if session is None:
        return ProbeResult(
            profile_name=profile_name,
            target_name=url,
            kind=kind,
            success=False,
            message=f"{kind.value} is not supported on this platform",
            unsupported=True,
        )

    start = time.monotonic()
    try:
        async with session.get(
            url,
            headers=HEADERS,
            timeout=aiohttp.ClientTimeout(total=timeout),
            allow_redirects=True,
        ) as response:
            status = response.status
            # a body cut off or stalled by DPI fails the probe
            body = await response.read()
            elapsed_ms = (time.monotonic() - start) * 1000
            LOG.debug(
                f"[{profile_name}] {kind.value} {url} -> {status}, "
                f"{len(body)} bytes in {elapsed_ms:.0f}ms"
            )
            content_length = response.content_length
            return ProbeResult(
                profile_name=profile_name,
                target_name=url,
                kind=kind,
                success=200 <= status < 300,
                message=f"HTTP {status} {response.reason or ''}".rstrip(),
                status_code=status,
                content_length=content_length if content_length is not None else len(body),
            )
    except asyncio.CancelledError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
        message = describe_error(e)
        LOG.debug(f"[{profile_name}] {kind.value} {url} failed: {message}")
        return ProbeResult(
            profile_name=profile_name,
            target_name=url,
            kind=kind,
            success=False,
            message=message,
        )
