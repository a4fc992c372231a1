"""
ICMP reachability via the system ping utility.

Raw ICMP sockets need elevated privileges on most systems, so the probe
shells out to `ping` with a single echo request and parses the round trip.
"""

import asyncio
import locale
import logging
import math
import re
from typing import List, Optional

from ..config import is_windows
from ..models import ProbeKind, ProbeResult

LOG = logging.getLogger(__name__)

# "time=12.3 ms", "time<1ms", "время=12мс", "Average = 12ms"
_RTT_PATTERNS = [
    re.compile(r"(?:time|время)\s*[=<]\s*(\d+(?:[.,]\d+)?)\s*(?:ms|мс)", re.IGNORECASE),
    re.compile(r"(?:average|среднее)\s*=\s*(\d+(?:[.,]\d+)?)\s*(?:ms|мс)", re.IGNORECASE),
]


def build_ping_command(host: str, timeout: float) -> List[str]:
    if is_windows():
        return ["ping", "-n", "1", "-w", str(int(timeout * 1000)), host]
    return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout))), host]


def parse_rtt(output: str) -> Optional[float]:
    """Round-trip time in ms from ping output, or None if there was no reply."""
    for pattern in _RTT_PATTERNS:
        match = pattern.search(output)
        if match:
            return float(match.group(1).replace(",", "."))
    return None


def _decode(raw: bytes) -> str:
    try:
        return raw.decode(locale.getpreferredencoding(False))
    except (UnicodeDecodeError, LookupError):
        return raw.decode("utf-8", errors="replace")


def _failure(profile_name: str, host: str, message: str) -> ProbeResult:
    return ProbeResult(
        profile_name=profile_name,
        target_name=host,
        kind=ProbeKind.PING,
        success=False,
        message=message,
    )


async def probe_ping(profile_name: str, host: str, timeout: float) -> ProbeResult:
    """Send one echo request to `host`."""
    command = build_ping_command(host, timeout)
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        LOG.warning(f"Cannot run ping: {e}")
        return _failure(profile_name, host, f"Ping unavailable: {e}")

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout + 1)
    except (asyncio.TimeoutError, asyncio.CancelledError) as e:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
        if isinstance(e, asyncio.CancelledError):
            raise
        return _failure(profile_name, host, "TimedOut")

    output = _decode(stdout)
    rtt = parse_rtt(output)
    if process.returncode == 0 and rtt is not None:
        return ProbeResult(
            profile_name=profile_name,
            target_name=host,
            kind=ProbeKind.PING,
            success=True,
            message=f"{rtt:.0f} ms",
            ping_time_ms=rtt,
        )

    lines = [line.strip() for line in (output + _decode(stderr)).splitlines() if line.strip()]
    detail = lines[-1] if lines and process.returncode not in (0, 1) else "TimedOut"
    LOG.debug(f"[{profile_name}] ping {host} failed (code {process.returncode}): {detail}")
    return _failure(profile_name, host, detail)
