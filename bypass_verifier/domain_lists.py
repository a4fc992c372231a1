"""
Host list maintenance for the engine's --hostlist files.

Files are plain text, one domain per line, `#` starts a comment. Writes to
the same file are serialised with one asyncio.Lock per path.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Dict, List, Union

from .models import extract_host

LOG = logging.getLogger(__name__)

_DOMAIN_RE = re.compile(
    r"^(?=.{1,253}$)(?!-)[a-z0-9-]{1,63}(?<!-)(\.(?!-)[a-z0-9-]{1,63}(?<!-))*\.[a-z0-9-]{2,63}$"
)


def normalize_domain(domain: str) -> str:
    return extract_host(domain).rstrip(".")


def is_valid_domain(domain: str) -> bool:
    return bool(_DOMAIN_RE.match(domain))


def _strip_comment(line: str) -> str:
    return line.split("#", 1)[0].strip()


class DomainListManager:
    """Adds and removes domains in host list files."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, path: Path) -> asyncio.Lock:
        key = str(path.resolve())
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @staticmethod
    def read_domains(path: Union[str, Path]) -> List[str]:
        path = Path(path)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            return [d for d in (_strip_comment(line) for line in f) if d]

    async def add_domain(self, path: Union[str, Path], domain: str) -> bool:
        """
        Append a domain unless it is already listed.

        Returns:
            True if the file was changed.

        Raises:
            ValueError: the domain is not a valid host name.
        """
        path = Path(path)
        host = normalize_domain(domain)
        if not is_valid_domain(host):
            raise ValueError(f"Invalid domain: {domain!r}")

        async with self._lock_for(path):
            existing = {d.lower() for d in self.read_domains(path)}
            if host in existing:
                LOG.debug(f"{host} already present in {path.name}")
                return False

            path.parent.mkdir(parents=True, exist_ok=True)
            needs_newline = path.exists() and path.stat().st_size > 0 and not _ends_with_newline(path)
            with open(path, "a", encoding="utf-8") as f:
                if needs_newline:
                    f.write("\n")
                f.write(host + "\n")
            LOG.info(f"Added {host} to {path.name}")
            return True

    async def remove_domain(self, path: Union[str, Path], domain: str) -> bool:
        """Remove every line listing the domain. Returns True if any was removed."""
        path = Path(path)
        host = normalize_domain(domain)

        async with self._lock_for(path):
            if not path.exists():
                return False
            with open(path, "r", encoding="utf-8") as f:
                lines = f.readlines()
            kept = [line for line in lines if _strip_comment(line).lower() != host]
            if len(kept) == len(lines):
                return False
            with open(path, "w", encoding="utf-8") as f:
                f.writelines(kept)
            LOG.info(f"Removed {host} from {path.name}")
            return True


def _ends_with_newline(path: Path) -> bool:
    with open(path, "rb") as f:
        f.seek(-1, 2)
        return f.read(1) == b"\n"
