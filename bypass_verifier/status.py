"""Passive tap on engine output that keeps a few startup statistics."""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

LOG = logging.getLogger(__name__)

_DESYNC_PROFILES_RE = re.compile(r"we have (\d+) user defined desync profile", re.IGNORECASE)
_LOADED_RE = re.compile(r"Loaded (\d+) (hosts|ip/subnets?|ips?)", re.IGNORECASE)


@dataclass
class EngineStatus:
    lines_seen: int = 0
    error_lines: int = 0
    desync_profiles: Optional[int] = None
    hosts_loaded: int = 0
    ips_loaded: int = 0
    last_error: Optional[str] = None
    recent: List[str] = field(default_factory=list)


class StatusCollector:
    """
    Subscribe with `supervisor.add_output_listener(collector.on_output)` and
    `supervisor.add_error_listener(collector.on_error)`.
    """

    def __init__(self, keep_recent: int = 50):
        self.keep_recent = keep_recent
        self.status = EngineStatus()

    def reset(self) -> None:
        self.status = EngineStatus()

    def _remember(self, line: str) -> None:
        self.status.recent.append(line)
        if len(self.status.recent) > self.keep_recent:
            del self.status.recent[0]

    def on_output(self, line: str) -> None:
        self.status.lines_seen += 1
        self._remember(line)

        match = _DESYNC_PROFILES_RE.search(line)
        if match:
            self.status.desync_profiles = int(match.group(1))
            LOG.debug(f"Engine reports {self.status.desync_profiles} desync profile(s)")
            return

        match = _LOADED_RE.search(line)
        if match:
            count = int(match.group(1))
            if match.group(2).lower().startswith("host"):
                self.status.hosts_loaded += count
            else:
                self.status.ips_loaded += count

    def on_error(self, line: str) -> None:
        self.status.error_lines += 1
        self.status.last_error = line
        self._remember(line)
        LOG.debug(f"engine stderr: {line}")
