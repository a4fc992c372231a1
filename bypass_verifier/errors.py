"""
Exception hierarchy for the profile verification engine.

Per-probe and per-profile problems are recorded as ProbeResult data and never
raised past the orchestrator. Only the errors below cross that boundary:
start failures (caught by the orchestrator and turned into an Init result),
and the fatal run-level errors that abort a whole test run.
"""

from typing import Optional


class VerifierError(Exception):
    """Base class for all bypass-verifier errors."""


class ConfigError(VerifierError):
    """Configuration file is unreadable or malformed."""


class EngineStartError(VerifierError):
    """The engine could not be started or never signalled readiness."""

    def __init__(self, message: str, profile_name: Optional[str] = None):
        super().__init__(message)
        self.profile_name = profile_name


class EngineBusyError(EngineStartError):
    """A second engine was requested while one is still live."""


class NoProfilesError(VerifierError):
    """No profiles could be enumerated for a test run."""


class ReportDestinationError(VerifierError):
    """The report destination directory cannot be created or written."""


class TestRunCancelled(VerifierError):
    """The test run was cancelled through its cancel event."""

    __test__ = False  # keep pytest from collecting this as a test class
