"""
Engine argument building.

Profile tokens are opaque to the core except for a handful of placeholders
that point at installation directories or toggle optional filters.
"""

import logging
import os
from pathlib import Path
from typing import List, Sequence

from .. import config
from ..models import Profile

LOG = logging.getLogger(__name__)


def _dir_token(path: Path) -> str:
    # Placeholders are glued directly to file names in profiles ("%LISTS%list-general.txt")
    return str(path) + os.sep


def replace_placeholders(
    token: str,
    bin_dir: Path,
    lists_dir: Path,
    game_filter_enabled: bool,
    filter_all_ip: bool,
) -> str:
    game_ports = (
        config.GAME_FILTER_PORTS_ENABLED
        if game_filter_enabled
        else config.GAME_FILTER_PORTS_DISABLED
    )
    ipset_filter = f"--ipset={lists_dir / config.IPSET_ALL}" if filter_all_ip else ""

    processed = token.replace(config.BIN_PLACEHOLDER, _dir_token(bin_dir))
    processed = processed.replace(config.LISTS_PLACEHOLDER, _dir_token(lists_dir))
    processed = processed.replace(config.GAME_FILTER_PLACEHOLDER, game_ports)
    processed = processed.replace(config.IPSET_FILTER_PLACEHOLDER, ipset_filter)
    # argv is passed without a shell, so batch-style quoting must go
    return processed.replace('"', "").strip()


def default_arguments(bin_dir: Path, lists_dir: Path) -> List[str]:
    """Built-in strategy used when a profile carries no arguments."""
    return [
        "--wf-tcp=80,443",
        "--wf-udp=443",
        f"--hostlist={lists_dir / config.GENERAL_HOSTLIST}",
        f"--hostlist-exclude={lists_dir / config.EXCLUDE_HOSTLIST}",
        f"--ipset-exclude={lists_dir / config.IPSET_EXCLUDE}",
        "--dpi-desync=multisplit",
        "--dpi-desync-split-pos=2,sniext+1",
        "--dpi-desync-split-seqovl=679",
        f"--dpi-desync-split-seqovl-pattern={bin_dir / config.PATTERN_FILE}",
    ]


def build_arguments(
    profile: Profile,
    bin_dir: Path,
    lists_dir: Path,
    game_filter_enabled: bool = False,
    filter_all_ip: bool = False,
) -> List[str]:
    """
    Render a profile into the argv tail for the engine.

    Args:
        profile: profile whose tokens are rendered in order
        bin_dir: directory holding the engine and its payload files
        lists_dir: directory holding host lists and ipsets
        game_filter_enabled: widen the %GameFilter% port range to 1024-65535
        filter_all_ip: expand %IPSetFilter% into an ipset-all restriction

    Returns:
        List of argument tokens; tokens that render empty are dropped.
    """
    if not profile.arguments:
        LOG.info(f"Profile '{profile.name}' has no arguments, using default argument set")
        return default_arguments(bin_dir, lists_dir)

    rendered: List[str] = []
    for token in profile.arguments:
        processed = replace_placeholders(
            token, bin_dir, lists_dir, game_filter_enabled, filter_all_ip
        )
        if processed:
            rendered.append(processed)

    LOG.debug(f"Built arguments for '{profile.name}': {' '.join(rendered)}")
    return rendered


def format_command(
    executable: Path, arguments: Sequence[str], launcher: Sequence[str] = ()
) -> str:
    """Human-readable command line for logs."""
    return " ".join([*launcher, str(executable), *arguments])
