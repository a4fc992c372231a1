"""
Profile catalog backed by a directory of JSON files.

Each `*.json` file holds either one profile object or a list of them:

    {"name": "General (ALT)", "description": "...", "arguments": ["--wf-tcp=80,443", ...]}
"""

import json
import logging
import time
from pathlib import Path
from typing import List, Optional, Union

from .models import Profile

LOG = logging.getLogger(__name__)

CACHE_TTL = 300.0


class ProfileCatalog:
    """
    Read-only profile source.

    Key features:
    - profiles listed in file-name order, then in file order
    - results cached for CACHE_TTL seconds
    - case-insensitive lookup by name
    """

    def __init__(self, profiles_dir: Union[str, Path], cache_ttl: float = CACHE_TTL):
        self.profiles_dir = Path(profiles_dir)
        self.cache_ttl = cache_ttl
        self._cache: Optional[List[Profile]] = None
        self._cache_time = 0.0

    def invalidate(self) -> None:
        self._cache = None

    def list_available_profiles(self) -> List[Profile]:
        now = time.monotonic()
        if self._cache is not None and now - self._cache_time < self.cache_ttl:
            return list(self._cache)

        profiles = self._load_all()
        self._cache = profiles
        self._cache_time = now
        LOG.info(f"Loaded {len(profiles)} profiles from {self.profiles_dir}")
        return list(profiles)

    def get_profile_by_name(self, name: str) -> Optional[Profile]:
        wanted = name.strip().lower()
        for profile in self.list_available_profiles():
            if profile.name.lower() == wanted:
                return profile
        return None

    def _load_all(self) -> List[Profile]:
        if not self.profiles_dir.is_dir():
            LOG.warning(f"Profiles directory {self.profiles_dir} does not exist")
            return []

        profiles: List[Profile] = []
        seen = set()
        for path in sorted(self.profiles_dir.glob("*.json")):
            for profile in self._load_file(path):
                key = profile.name.lower()
                if key in seen:
                    LOG.warning(f"Duplicate profile '{profile.name}' in {path.name} skipped")
                    continue
                seen.add(key)
                profiles.append(profile)
        return profiles

    def _load_file(self, path: Path) -> List[Profile]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            LOG.error(f"Cannot load profile file {path}: {e}")
            return []

        entries = data if isinstance(data, list) else [data]
        profiles = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("name"):
                LOG.warning(f"Invalid profile entry in {path.name}: {entry!r:.80}")
                continue
            profiles.append(Profile.from_dict(entry))
        return profiles
