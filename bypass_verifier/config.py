# bypass_verifier/config.py

import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigError

LOG = logging.getLogger(__name__)

# --- Engine ---
ENGINE_EXECUTABLE = "winws.exe" if os.name == "nt" else "nfqws"
READINESS_MARKER = "windivert initialized. capture is started."
PATTERN_FILE = "tls_clienthello_www_google_com.bin"

# Placeholders understood inside profile argument tokens
BIN_PLACEHOLDER = "%BIN%"
LISTS_PLACEHOLDER = "%LISTS%"
GAME_FILTER_PLACEHOLDER = "%GameFilter%"
IPSET_FILTER_PLACEHOLDER = "%IPSetFilter%"

GAME_FILTER_PORTS_DISABLED = "12"
GAME_FILTER_PORTS_ENABLED = "1024-65535"

GENERAL_HOSTLIST = "list-general.txt"
EXCLUDE_HOSTLIST = "list-exclude.txt"
IPSET_EXCLUDE = "ipset-exclude.txt"
IPSET_ALL = "ipset-all.txt"

# --- Timeouts (seconds) ---
READINESS_TIMEOUT = 5.0
PROCESS_STOP_TIMEOUT = 10.0
PROCESS_STOP_GRACE = 5.0
SETTLE_AFTER_START = 0.5
SETTLE_AFTER_STOP = 1.0
HTTP_PROBE_TIMEOUT = 10.0
PING_PROBE_TIMEOUT = 3.0
DPI_PROBE_TIMEOUT = 5.0
DPI_PROBE_EXTRA_TIMEOUT = 2.0
BLOCK_CHECK_TIMEOUT = 7.0

# --- DPI heuristic ---
# Size window (KiB) in which an error response or a stalled transfer looks
# like an injected block page rather than plain unreachability.
DPI_WARN_MIN_KB = 14
DPI_WARN_MAX_KB = 22
DPI_RANGE_BYTES = 262144
DPI_READ_CHUNK = 8192

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.6753.0 Safari/537.36"
}

CONFIG_FILE_NAME = "appconfig.json"
REPORT_FALLBACK_DIR = "reports"


def default_report_dir() -> Path:
    """Desktop if there is one, otherwise ./reports."""
    desktop = Path.home() / "Desktop"
    if desktop.is_dir():
        return desktop
    return Path.cwd() / REPORT_FALLBACK_DIR


@dataclass
class VerifierConfig:
    """
    All tunables of a verification run.

    Every heuristic constant above is carried here so it can be overridden
    from appconfig.json or by the caller without touching module globals.
    """

    app_path: Path = field(default_factory=Path.cwd)
    bin_path: str = "bin"
    lists_path: str = "lists"
    profiles_path: str = "profiles"
    logs_path: str = "logs"
    engine_executable: str = ENGINE_EXECUTABLE
    # prefix for the engine command line, e.g. ["sudo"] for nfqws
    engine_launcher: List[str] = field(default_factory=list)
    readiness_marker: str = READINESS_MARKER
    report_dir: Optional[Path] = None

    game_filter_enabled: bool = False
    filter_all_ip: bool = False

    readiness_timeout: float = READINESS_TIMEOUT
    process_stop_timeout: float = PROCESS_STOP_TIMEOUT
    process_stop_grace: float = PROCESS_STOP_GRACE
    settle_after_start: float = SETTLE_AFTER_START
    settle_after_stop: float = SETTLE_AFTER_STOP
    http_timeout: float = HTTP_PROBE_TIMEOUT
    ping_timeout: float = PING_PROBE_TIMEOUT
    dpi_timeout: float = DPI_PROBE_TIMEOUT
    dpi_extra_timeout: float = DPI_PROBE_EXTRA_TIMEOUT
    block_check_timeout: float = BLOCK_CHECK_TIMEOUT

    dpi_warn_min_kb: float = DPI_WARN_MIN_KB
    dpi_warn_max_kb: float = DPI_WARN_MAX_KB
    dpi_range_bytes: int = DPI_RANGE_BYTES

    @property
    def bin_dir(self) -> Path:
        return Path(self.app_path) / self.bin_path

    @property
    def lists_dir(self) -> Path:
        return Path(self.app_path) / self.lists_path

    @property
    def profiles_dir(self) -> Path:
        return Path(self.app_path) / self.profiles_path

    @property
    def logs_dir(self) -> Path:
        return Path(self.app_path) / self.logs_path

    @property
    def engine_path(self) -> Path:
        return self.bin_dir / self.engine_executable

    @property
    def resolved_report_dir(self) -> Path:
        if self.report_dir is not None:
            return Path(self.report_dir)
        return default_report_dir()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["app_path"] = str(self.app_path)
        data["report_dir"] = str(self.report_dir) if self.report_dir else None
        return data


_PATH_FIELDS = {"app_path", "report_dir"}


def load_config(
    path: Optional[Union[str, Path]] = None, **overrides: Any
) -> VerifierConfig:
    """
    Build a VerifierConfig from defaults, an optional JSON file and overrides.

    Args:
        path: appconfig.json location. A missing file is not an error.
        **overrides: keyword values applied last (e.g. from the command line).

    Raises:
        ConfigError: the file exists but is not a JSON object.
    """
    values: Dict[str, Any] = {}
    known = {f.name for f in fields(VerifierConfig)}

    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigError(f"Cannot read config {config_path}: {e}") from e
            if not isinstance(raw, dict):
                raise ConfigError(f"Config {config_path} must contain a JSON object")
            for key, value in raw.items():
                if key not in known:
                    LOG.warning(f"Ignoring unknown config key '{key}' in {config_path}")
                    continue
                values[key] = value
            LOG.debug(f"Loaded config from {config_path}")
        else:
            LOG.debug(f"Config file {config_path} not found, using defaults")

    for key, value in overrides.items():
        if value is None:
            continue
        if key not in known:
            raise ConfigError(f"Unknown config override '{key}'")
        values[key] = value

    for key in _PATH_FIELDS:
        if values.get(key) is not None:
            values[key] = Path(values[key])

    return VerifierConfig(**values)


def save_config(config: VerifierConfig, path: Union[str, Path]) -> None:
    """Write the config back as JSON (used to persist toggles)."""
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
    LOG.info(f"Config saved to {config_path}")


def is_windows() -> bool:
    return sys.platform == "win32"
