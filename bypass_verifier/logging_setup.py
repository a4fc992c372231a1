import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

CONSOLE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"

_LEVEL_ABBREVIATIONS = {
    "DEBUG": "DBG",
    "INFO": "INF",
    "WARNING": "WRN",
    "ERROR": "ERR",
    "CRITICAL": "FTL",
}


class CompactFormatter(logging.Formatter):
    """[dd.mm.yy-HH:MM:SS] [INF] message"""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%d.%m.%y-%H:%M:%S")
        level = _LEVEL_ABBREVIATIONS.get(record.levelname, record.levelname[:3])
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"[{stamp}] [{level}] {message}"


def log_file_name(when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"bypass-verifier_{when:%Y%m%d}.log"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """
    Configure root logging for the command line.

    Returns the log file path when a log directory was given.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logging.basicConfig(
        level=level,
        format=CONSOLE_FORMAT,
        datefmt=CONSOLE_DATEFMT,
        force=True,
    )
    # aiohttp logs every dropped connection at DEBUG
    logging.getLogger("aiohttp").setLevel(max(level, logging.INFO))
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    if log_dir is None:
        return None

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / log_file_name()
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(CompactFormatter())
    logging.getLogger().addHandler(handler)
    return log_file
