"""
Plain-text report export.

Layout:

    BypassVerifier Test Results - 2026-01-31 12:00:00
    Test Type: Standard
    Total Profiles Tested: 2
    Total Tests Executed: 8
    ============================================================

    Profile: General
    ----------------------------------------
    Target: https://example.com
      HTTP: SUCCESS - HTTP 200 OK
      ...
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from ..config import default_report_dir
from ..errors import ReportDestinationError
from ..models import ProbeKind, ProbeResult, TestRun

LOG = logging.getLogger(__name__)

SECTION_PREFIX = "Profile: "
HEADER_RULE = "=" * 60
SECTION_RULE = "-" * 40


def report_filename(run: TestRun, when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"BypassVerifier_{run.suite.value}Test_{when:%Y%m%d_%H%M%S}.txt"


def _result_lines(result: ProbeResult) -> List[str]:
    lines = [f"  {result.kind.value}: {result.outcome.value} - {result.message}"]
    if result.kind is ProbeKind.PING and result.ping_time_ms is not None:
        lines.append(f"    Ping Time: {result.ping_time_ms:.0f} ms")
    if result.kind is ProbeKind.DPI:
        if result.status_code is not None:
            lines.append(f"    HTTP Status: {result.status_code}")
        if result.content_length is not None:
            lines.append(
                f"    Content Length: {result.content_length} bytes "
                f"({result.content_length / 1024:.1f} KB)"
            )
    return lines


def render_report(run: TestRun, when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    groups = run.group_by_profile()
    lines = [
        f"BypassVerifier Test Results - {when:%Y-%m-%d %H:%M:%S}",
        f"Test Type: {run.suite.value}",
    ]
    if run.domain:
        lines.append(f"Domain: {run.domain}")
    lines += [
        f"Total Profiles Tested: {len(groups)}",
        f"Total Tests Executed: {len(run.results)}",
        HEADER_RULE,
    ]

    for profile_name, results in groups.items():
        lines += ["", f"{SECTION_PREFIX}{profile_name}", SECTION_RULE]
        current_target = None
        for result in results:
            if result.target_name != current_target:
                current_target = result.target_name
                lines.append(f"Target: {current_target}")
            lines += _result_lines(result)

    lines.append("")
    return "\n".join(lines)


def export_report(
    run: TestRun,
    directory: Optional[Union[str, Path]] = None,
    when: Optional[datetime] = None,
) -> Path:
    """
    Write the report and return its path.

    Raises:
        ReportDestinationError: the directory cannot be created or written.
    """
    target_dir = Path(directory) if directory is not None else default_report_dir()
    when = when or datetime.now()
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / report_filename(run, when)
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_report(run, when))
    except OSError as e:
        raise ReportDestinationError(f"Cannot write report to {target_dir}: {e}") from e

    LOG.info(f"Report saved to {path}")
    return path


def parse_report_sections(path: Union[str, Path]) -> List[str]:
    """Profile names of every section in a saved report, in file order."""
    with open(path, "r", encoding="utf-8") as f:
        return [
            line[len(SECTION_PREFIX):].rstrip("\n")
            for line in f
            if line.startswith(SECTION_PREFIX)
        ]
