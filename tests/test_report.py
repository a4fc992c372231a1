import io
import re
from datetime import datetime

import pytest
from rich.console import Console

from bypass_verifier.errors import ReportDestinationError
from bypass_verifier.models import ProbeKind, ProbeResult, TestRun, TestSuite
from bypass_verifier.reporting.aggregator import rank_dpi, rank_standard, score_run
from bypass_verifier.reporting.console_report import render_best, render_summary
from bypass_verifier.reporting.text_report import (
    export_report,
    parse_report_sections,
    render_report,
    report_filename,
)


def _standard(profile, http=True, tls12=True, tls13=True, ping=True):
    url, host = "https://example.com", "example.com"
    return [
        ProbeResult(profile, url, ProbeKind.HTTP, http, "HTTP 200 OK" if http else "Connection timeout"),
        ProbeResult(profile, url, ProbeKind.TLS12, tls12, "HTTP 200 OK" if tls12 else "TLS error"),
        ProbeResult(profile, url, ProbeKind.TLS13, tls13, "HTTP 200 OK" if tls13 else "Connection timeout"),
        ProbeResult(profile, host, ProbeKind.PING, ping, "12 ms" if ping else "TimedOut",
                    ping_time_ms=12.0 if ping else None),
    ]


def _dpi(profile, target, success=False, blocked=False, size=262144, status=206):
    return ProbeResult(
        profile, target, ProbeKind.DPI, success, f"HTTP {status} size={size}",
        likely_blocked=blocked, status_code=status, content_length=size,
    )


@pytest.fixture
def standard_run():
    run = TestRun(suite=TestSuite.STANDARD, profiles=["Beta", "Alpha", "Gamma", "Broken"], domain="example.com")
    run.results += _standard("Beta", tls13=False)
    run.results += _standard("Alpha", tls13=False)
    run.results += _standard("Gamma", http=False, tls12=False, tls13=False, ping=True)
    run.results.append(ProbeResult.init_failure("Broken", "Engine init failed: Readiness timeout"))
    return run


@pytest.fixture
def dpi_run():
    run = TestRun(suite=TestSuite.DPI, profiles=["P1", "P2", "P3"])
    run.results += [_dpi("P1", "T1", success=True), _dpi("P1", "T2", blocked=True, size=18432, status=503)]
    run.results += [_dpi("P2", "T1", success=True), _dpi("P2", "T2", success=False, size=0, status=None)]
    run.results += [_dpi("P3", "T1", success=True), _dpi("P3", "T2", success=True)]
    return run


class TestRanking:
    def test_standard_ignores_ping_and_breaks_ties_by_name(self, standard_run):
        ranked = rank_standard(standard_run)
        assert [s.profile_name for s in ranked] == ["Alpha", "Beta"]
        assert ranked[0].successes == 2

    def test_dpi_score(self, dpi_run):
        ranked = rank_dpi(dpi_run)
        assert [(s.profile_name, s.dpi_score) for s in ranked] == [("P3", 2), ("P2", 1), ("P1", 0)]

    def test_init_failure_scored(self, standard_run):
        scores = {s.profile_name: s for s in score_run(standard_run)}
        assert scores["Broken"].init_failed
        assert scores["Broken"].total == 0


class TestTextReport:
    def test_sections_round_trip(self, standard_run, tmp_path):
        path = export_report(standard_run, tmp_path / "out")
        sections = parse_report_sections(path)
        assert sections == list(standard_run.group_by_profile())
        assert len(sections) == 4

    def test_filename(self, dpi_run):
        name = report_filename(dpi_run, datetime(2026, 1, 31, 9, 5, 7))
        assert name == "BypassVerifier_DPITest_20260131_090507.txt"

    def test_standard_filename_pattern(self, standard_run, tmp_path):
        path = export_report(standard_run, tmp_path)
        assert re.fullmatch(r"BypassVerifier_StandardTest_\d{8}_\d{6}\.txt", path.name)

    def test_status_words(self, dpi_run):
        text = render_report(dpi_run)
        assert "Test Type: DPI" in text
        assert "Total Profiles Tested: 3" in text
        assert "Total Tests Executed: 6" in text
        assert "DPI: LIKELY BLOCKED - HTTP 503 size=18432" in text
        assert "DPI: SUCCESS" in text
        assert "DPI: FAILED" in text
        assert "Content Length: 18432 bytes (18.0 KB)" in text

    def test_unsupported_word(self):
        run = TestRun(suite=TestSuite.STANDARD, profiles=["P"])
        run.results.append(ProbeResult("P", "https://x.com", ProbeKind.TLS13, False, "n/a", unsupported=True))
        assert "TLS1.3: UNSUPPORTED - n/a" in render_report(run)

    def test_init_failure_listed(self, standard_run):
        text = render_report(standard_run)
        assert "Init: FAILED - Engine init failed: Readiness timeout" in text

    def test_unwritable_destination(self, standard_run, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        with pytest.raises(ReportDestinationError):
            export_report(standard_run, blocker / "sub")


class TestConsoleReport:
    def test_summary_mentions_profiles(self, standard_run):
        buffer = io.StringIO()
        console = Console(file=buffer, width=120, force_terminal=False)
        render_summary(standard_run, console, show_details=True)
        output = buffer.getvalue()

        for name in ("Alpha", "Beta", "Gamma", "Broken"):
            assert name in output
        assert "Failed to start" in output

    def test_best_profile(self, dpi_run):
        console = Console(file=io.StringIO(), width=120)
        assert render_best(dpi_run, console) == "P3"

    def test_no_best_profile(self):
        run = TestRun(suite=TestSuite.STANDARD, profiles=["P"])
        run.results += _standard("P", http=False, tls12=False, tls13=False)
        console = Console(file=io.StringIO(), width=120)
        assert render_best(run, console) is None
