"""Small collaborators: status tap, targets, models, logging setup."""

import logging
import re
from unittest.mock import patch

from bypass_verifier.logging_setup import CompactFormatter, setup_logging
from bypass_verifier.models import Outcome, ProbeKind, ProbeResult, StandardTarget, extract_host
from bypass_verifier.probes.targets import DPI_TARGETS, expand_dpi_targets
from bypass_verifier.status import StatusCollector


class TestStatusCollector:
    def test_parses_engine_statistics(self):
        collector = StatusCollector()
        collector.on_output("we have 3 user defined desync profile(s) and default low+high")
        collector.on_output("Loaded 1250 hosts from list-general.txt")
        collector.on_output("Loaded 12 ip/subnets from ipset-all.txt")
        collector.on_error("cannot open ipset")

        status = collector.status
        assert status.desync_profiles == 3
        assert status.hosts_loaded == 1250
        assert status.ips_loaded == 12
        assert status.lines_seen == 3
        assert status.error_lines == 1
        assert status.last_error == "cannot open ipset"

    def test_recent_lines_bounded(self):
        collector = StatusCollector(keep_recent=5)
        for i in range(20):
            collector.on_output(f"line {i}")
        assert collector.status.recent == [f"line {i}" for i in range(15, 20)]

    def test_reset(self):
        collector = StatusCollector()
        collector.on_output("x")
        collector.reset()
        assert collector.status.lines_seen == 0


class TestTargets:
    def test_registry_ids_unique(self):
        ids = [t.id for t in DPI_TARGETS]
        assert len(ids) == len(set(ids))

    def test_expansion_by_times(self):
        expanded = expand_dpi_targets()
        names = [name for name, _ in expanded]
        assert len(expanded) == sum(t.times for t in DPI_TARGETS)
        assert names.count("US.DO-01@0") == 1
        assert "US.DO-01" not in names
        assert names[0] == "US.CF-01"

    def test_custom_url(self):
        expanded = expand_dpi_targets(custom_url=" https://example.com/file.bin ")
        assert len(expanded) == 1
        name, target = expanded[0]
        assert name == "CUSTOM"
        assert target.url == "https://example.com/file.bin"
        assert target.display_name == "CUSTOM <Custom>"

    def test_blank_custom_url_keeps_registry(self):
        assert len(expand_dpi_targets(custom_url="  ")) == sum(t.times for t in DPI_TARGETS)


class TestModels:
    def test_extract_host(self):
        assert extract_host("Discord.com") == "discord.com"
        assert extract_host("https://discord.com:8443/app") == "discord.com"

    def test_standard_target(self):
        target = StandardTarget.from_domain("http://Example.com/x")
        assert target.url == "https://example.com"
        assert target.host == "example.com"

    def test_outcome_precedence(self):
        base = dict(profile_name="P", target_name="T", kind=ProbeKind.DPI, message="")
        assert ProbeResult(success=True, **base).outcome is Outcome.SUCCESS
        assert ProbeResult(success=False, **base).outcome is Outcome.FAILURE
        assert ProbeResult(success=False, likely_blocked=True, **base).outcome is Outcome.LIKELY_BLOCKED
        assert ProbeResult(success=False, unsupported=True, **base).outcome is Outcome.UNSUPPORTED

    def test_init_failure_key(self):
        result = ProbeResult.init_failure("P", "boom")
        assert result.key == ("P", "INIT", ProbeKind.INIT)
        assert not result.success


class TestLogging:
    def test_compact_format(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "engine ready", None, None)
        line = CompactFormatter().format(record)
        assert re.fullmatch(r"\[\d{2}\.\d{2}\.\d{2}-\d{2}:\d{2}:\d{2}\] \[INF\] engine ready", line)

    def test_file_handler_installed(self, tmp_path):
        root = logging.getLogger()
        before = root.handlers[:]
        with patch("bypass_verifier.logging_setup.logging.basicConfig"):
            log_file = setup_logging("DEBUG", tmp_path / "logs")
        added = [h for h in root.handlers if h not in before]
        try:
            logging.getLogger("bypass_verifier.test").warning("disk full")
            for handler in added:
                handler.flush()
            assert log_file.exists()
            assert "[WRN] disk full" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in added:
                root.removeHandler(handler)
                handler.close()
