"""
Result aggregation and ranking.

Standard: a profile "bypasses" when at least one non-ping probe succeeded;
bypassing profiles are ranked by that success count.
DPI: score = successes - likely_blocked, over every probed profile.
Ties are always broken by profile name.
"""

from dataclasses import dataclass
from typing import List

from ..models import ProbeKind, ProbeResult, TestRun, TestSuite


@dataclass
class ProfileScore:
    """Per-profile tallies for one run."""

    profile_name: str
    total: int = 0
    successes: int = 0
    likely_blocked: int = 0
    unsupported: int = 0
    init_failed: bool = False

    @property
    def failures(self) -> int:
        return self.total - self.successes - self.likely_blocked - self.unsupported

    @property
    def dpi_score(self) -> int:
        return self.successes - self.likely_blocked


def score_profile(profile_name: str, results: List[ProbeResult], count_ping: bool = True) -> ProfileScore:
    score = ProfileScore(profile_name=profile_name)
    for result in results:
        if result.kind is ProbeKind.INIT:
            score.init_failed = True
            continue
        if not count_ping and result.kind is ProbeKind.PING:
            continue
        score.total += 1
        if result.unsupported:
            score.unsupported += 1
        elif result.likely_blocked:
            score.likely_blocked += 1
        elif result.success:
            score.successes += 1
    return score


def score_run(run: TestRun, count_ping: bool = True) -> List[ProfileScore]:
    """One ProfileScore per profile, in submission order."""
    return [
        score_profile(name, results, count_ping)
        for name, results in run.group_by_profile().items()
    ]


def rank_standard(run: TestRun) -> List[ProfileScore]:
    """Bypassing profiles, most non-ping successes first."""
    scores = [s for s in score_run(run, count_ping=False) if s.successes > 0]
    return sorted(scores, key=lambda s: (-s.successes, s.profile_name))


def rank_dpi(run: TestRun) -> List[ProfileScore]:
    """Every profile that was probed, best score first."""
    scores = [s for s in score_run(run) if not s.init_failed]
    return sorted(scores, key=lambda s: (-s.dpi_score, s.profile_name))


def rank(run: TestRun) -> List[ProfileScore]:
    if run.suite is TestSuite.STANDARD:
        return rank_standard(run)
    return rank_dpi(run)
