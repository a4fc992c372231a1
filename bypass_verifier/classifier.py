"""
Block-detection heuristic for DPI range probes.

A DPI box that recognises a flow usually lets the first handshake and a few
segments through, then either injects its own block page or freezes the
transfer. Both leave a response of roughly 14-22 KiB behind. The window is
empirical, not protocol-defined, so the bounds are named config values.

Only the DPI suite is classified this way. Standard probes treat any
non-2xx status or exception as a plain failure.
"""

from enum import Enum
from typing import Optional

from .config import DPI_WARN_MAX_KB, DPI_WARN_MIN_KB


class DpiVerdict(Enum):
    SUCCESS = "OK"
    LIKELY_BLOCKED = "LIKELY_BLOCKED"
    FAILURE = "FAIL"


def is_success_status(status_code: Optional[int]) -> bool:
    return status_code is not None and 200 <= status_code < 300


def size_in_block_window(
    bytes_received: int,
    warn_min_kb: float = DPI_WARN_MIN_KB,
    warn_max_kb: float = DPI_WARN_MAX_KB,
) -> bool:
    size_kb = bytes_received / 1024
    return warn_min_kb <= size_kb <= warn_max_kb


def is_likely_dpi_blocked(
    status_code: Optional[int],
    bytes_received: int,
    completed: bool = True,
    warn_min_kb: float = DPI_WARN_MIN_KB,
    warn_max_kb: float = DPI_WARN_MAX_KB,
) -> bool:
    """
    True when the response looks like interference rather than unreachability.

    "No response" covers both a missing status (connection died before
    headers) and a transfer that was cut off mid-body.
    """
    no_response = status_code is None or status_code == 0 or not completed
    error_status = status_code is not None and status_code >= 400
    return (error_status or no_response) and size_in_block_window(
        bytes_received, warn_min_kb, warn_max_kb
    )


def classify_dpi(
    status_code: Optional[int],
    bytes_received: int,
    completed: bool = True,
    warn_min_kb: float = DPI_WARN_MIN_KB,
    warn_max_kb: float = DPI_WARN_MAX_KB,
) -> DpiVerdict:
    """
    Classify one DPI probe.

    Args:
        status_code: HTTP status, None if no response headers arrived
        bytes_received: body bytes actually read
        completed: False if the body read was interrupted by a transport error
        warn_min_kb: lower bound of the block-page window (KiB)
        warn_max_kb: upper bound of the block-page window (KiB)
    """
    if is_success_status(status_code) and bytes_received > 0 and completed:
        return DpiVerdict.SUCCESS
    if is_likely_dpi_blocked(
        status_code, bytes_received, completed, warn_min_kb, warn_max_kb
    ):
        return DpiVerdict.LIKELY_BLOCKED
    return DpiVerdict.FAILURE
