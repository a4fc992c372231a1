"""
Pytest configuration and shared fixtures for bypass-verifier tests.

Supervisor tests run a small Python script in place of the real engine. It
is launched through `sys.executable` via `engine_launcher`, and its behaviour
is selected with `--mode=`:

    ready     print the readiness marker, then idle until terminated
    silent    never print the marker
    exit      exit with code 3 right away
    stubborn  like ready, but ignore SIGTERM
"""

import logging
import sys
from pathlib import Path

import pytest

from bypass_verifier.config import READINESS_MARKER, VerifierConfig
from bypass_verifier.models import Profile

logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("asyncio").setLevel(logging.WARNING)

FAKE_ENGINE_NAME = "fake_engine.py"

FAKE_ENGINE_SOURCE = f'''
import signal
import sys
import time

mode = "ready"
delay = 0.0
for arg in sys.argv[1:]:
    if arg.startswith("--mode="):
        mode = arg.split("=", 1)[1]
    elif arg.startswith("--delay="):
        delay = float(arg.split("=", 1)[1])

print("fake engine starting", flush=True)
print("we have 2 user defined desync profile(s)", flush=True)
if mode == "exit":
    sys.exit(3)
if mode == "stubborn":
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
time.sleep(delay)
if mode in ("ready", "stubborn"):
    print({READINESS_MARKER!r}, flush=True)
while True:
    time.sleep(0.1)
'''


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    """Installation layout with bin/, lists/ and profiles/."""
    for name in ("bin", "lists", "profiles"):
        (tmp_path / name).mkdir()
    (tmp_path / "bin" / FAKE_ENGINE_NAME).write_text(FAKE_ENGINE_SOURCE, encoding="utf-8")
    return tmp_path


@pytest.fixture
def engine_config(app_dir: Path) -> VerifierConfig:
    """Config that runs the fake engine with short timeouts."""
    return VerifierConfig(
        app_path=app_dir,
        engine_executable=FAKE_ENGINE_NAME,
        engine_launcher=[sys.executable],
        readiness_timeout=3.0,
        process_stop_timeout=2.0,
        process_stop_grace=1.0,
        settle_after_start=0.0,
        settle_after_stop=0.0,
        report_dir=app_dir / "reports",
    )


@pytest.fixture
def fast_config(tmp_path: Path) -> VerifierConfig:
    """Config for tests that never start a real process."""
    return VerifierConfig(
        app_path=tmp_path,
        settle_after_start=0.0,
        settle_after_stop=0.0,
        report_dir=tmp_path / "reports",
    )


@pytest.fixture
def engine_profile():
    """Factory for profiles driving the fake engine."""

    def make(mode: str, name: str = None, delay: float = 0.0) -> Profile:
        return Profile(
            name=name or f"fake-{mode}",
            arguments=(f"--mode={mode}", f"--delay={delay}"),
        )

    return make
