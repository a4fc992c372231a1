"""
Core data models for profile verification.

This module defines the data structures passed between the supervisor, the
probe runners, the orchestrator and the reporters:

- Profile: a named, ordered set of engine arguments (read-only here)
- StandardTarget / DpiTarget: what a probe is aimed at
- ProbeKind / Outcome / TestSuite: enums for probe type, verdict and suite
- ProbeResult: one immutable probe outcome
- TestRun: every ProbeResult from one orchestrator invocation
"""

import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse


class ProbeKind(Enum):
    """Kind of network check that produced a result."""

    HTTP = "HTTP"
    TLS12 = "TLS1.2"
    TLS13 = "TLS1.3"
    PING = "Ping"
    DPI = "DPI"
    INIT = "Init"  # engine failed to start for the profile


class Outcome(Enum):
    """Final verdict of a probe as shown in reports."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILED"
    LIKELY_BLOCKED = "LIKELY BLOCKED"
    UNSUPPORTED = "UNSUPPORTED"


class TestSuite(Enum):
    """Which probe suite a run executes."""

    __test__ = False

    STANDARD = "Standard"
    DPI = "DPI"


@dataclass(frozen=True)
class Profile:
    """Engine profile. Owned by the catalog; never mutated by the core."""

    name: str
    description: str = ""
    arguments: Tuple[str, ...] = ()
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_dict(cls, data: Dict) -> "Profile":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            arguments=tuple(data.get("arguments") or ()),
            id=data.get("id") or str(uuid.uuid4()),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "arguments": list(self.arguments),
        }


@dataclass(frozen=True)
class StandardTarget:
    """User-supplied domain, tested via HTTP, TLS1.2, TLS1.3 and ping."""

    url: str
    host: str

    @classmethod
    def from_domain(cls, domain: str) -> "StandardTarget":
        host = extract_host(domain)
        return cls(url=f"https://{host}", host=host)


@dataclass(frozen=True)
class DpiTarget:
    """Entry of the DPI registry. `times` > 1 expands into several probes."""

    id: str
    provider: str
    url: str
    times: int = 1

    @property
    def display_name(self) -> str:
        return f"{self.id} <{self.provider}>"


@dataclass(frozen=True)
class ProbeResult:
    """
    Outcome of one probe. Identified by (profile_name, target_name, kind).

    `likely_blocked` is only ever set by the DPI classifier. `unsupported`
    marks a TLS1.3 result produced on a platform that cannot negotiate it.
    """

    profile_name: str
    target_name: str
    kind: ProbeKind
    success: bool
    message: str
    likely_blocked: bool = False
    ping_time_ms: Optional[float] = None
    status_code: Optional[int] = None
    content_length: Optional[int] = None
    unsupported: bool = False

    @property
    def key(self) -> Tuple[str, str, ProbeKind]:
        return (self.profile_name, self.target_name, self.kind)

    @property
    def outcome(self) -> Outcome:
        if self.unsupported:
            return Outcome.UNSUPPORTED
        if self.likely_blocked:
            return Outcome.LIKELY_BLOCKED
        if self.success:
            return Outcome.SUCCESS
        return Outcome.FAILURE

    @classmethod
    def init_failure(cls, profile_name: str, message: str) -> "ProbeResult":
        return cls(
            profile_name=profile_name,
            target_name="INIT",
            kind=ProbeKind.INIT,
            success=False,
            message=message,
        )


@dataclass
class TestRun:
    """All results of one orchestrator invocation."""

    __test__ = False

    suite: TestSuite
    results: List[ProbeResult] = field(default_factory=list)
    profiles: List[str] = field(default_factory=list)
    domain: Optional[str] = None
    domain_reachable_without_engine: Optional[bool] = None
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def duration(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at

    def results_for(self, profile_name: str) -> List[ProbeResult]:
        return [r for r in self.results if r.profile_name == profile_name]

    def group_by_profile(self) -> "OrderedDict[str, List[ProbeResult]]":
        """Results grouped by profile, in submission order."""
        groups: "OrderedDict[str, List[ProbeResult]]" = OrderedDict()
        for name in self.profiles:
            groups[name] = []
        for result in self.results:
            groups.setdefault(result.profile_name, []).append(result)
        return OrderedDict((k, v) for k, v in groups.items() if v)

    def init_failures(self) -> List[str]:
        return [r.profile_name for r in self.results if r.kind is ProbeKind.INIT]


def extract_host(domain_or_url: str) -> str:
    """Strip scheme, path and port: 'https://x.com/a' -> 'x.com'."""
    value = domain_or_url.strip()
    if "://" not in value:
        value = f"https://{value}"
    parsed = urlparse(value)
    host = parsed.hostname or value.split("://", 1)[1].split("/", 1)[0]
    return host.lower()
