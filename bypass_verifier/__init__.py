"""
bypass-verifier: finds which engine profiles restore connectivity to blocked
targets by starting the engine with each profile and probing through it.
"""

from .config import VerifierConfig, load_config
from .errors import (
    ConfigError,
    EngineBusyError,
    EngineStartError,
    NoProfilesError,
    ReportDestinationError,
    TestRunCancelled,
    VerifierError,
)
from .models import Outcome, ProbeKind, ProbeResult, Profile, TestRun, TestSuite
from .orchestrator import TestOrchestrator

__version__ = "1.0.0"

__all__ = [
    "VerifierConfig",
    "load_config",
    "ConfigError",
    "EngineBusyError",
    "EngineStartError",
    "NoProfilesError",
    "ReportDestinationError",
    "TestRunCancelled",
    "VerifierError",
    "Outcome",
    "ProbeKind",
    "ProbeResult",
    "Profile",
    "TestRun",
    "TestSuite",
    "TestOrchestrator",
]
