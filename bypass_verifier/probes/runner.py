"""ProbeRunner - binds the probe functions to a config and a set of clients."""

import asyncio
import logging

import aiohttp

from ..config import HEADERS, VerifierConfig
from ..models import DpiTarget, ProbeKind, ProbeResult
from .clients import ProbeClients
from .dpi_probe import probe_dpi
from .http_probe import probe_http
from .ping_probe import probe_ping

LOG = logging.getLogger(__name__)


class ProbeRunner:
    """
    Entry point the orchestrator uses to execute probes.

    Every method returns a ProbeResult; transport errors never escape.
    """

    def __init__(self, config: VerifierConfig, clients: ProbeClients):
        self.config = config
        self.clients = clients

    async def http(self, profile_name: str, url: str, kind: ProbeKind) -> ProbeResult:
        return await probe_http(
            self.clients.session_for(kind),
            profile_name,
            url,
            kind,
            self.config.http_timeout,
        )

    async def ping(self, profile_name: str, host: str) -> ProbeResult:
        return await probe_ping(profile_name, host, self.config.ping_timeout)

    async def dpi(self, profile_name: str, target_name: str, target: DpiTarget) -> ProbeResult:
        return await probe_dpi(
            self.clients.session_for(ProbeKind.DPI),
            profile_name,
            target,
            target_name,
            range_bytes=self.config.dpi_range_bytes,
            timeout=self.config.dpi_timeout,
            extra_timeout=self.config.dpi_extra_timeout,
            warn_min_kb=self.config.dpi_warn_min_kb,
            warn_max_kb=self.config.dpi_warn_max_kb,
        )

    async def is_domain_blocked(self, url: str) -> bool:
        """
        Pre-check without any engine running.

        Any HTTP response, whatever its status, means the domain is reachable.
        """
        session = self.clients.session_for(ProbeKind.HTTP)
        try:
            async with session.get(
                url,
                headers=HEADERS,
                timeout=aiohttp.ClientTimeout(total=self.config.block_check_timeout),
            ) as response:
                LOG.info(f"{url} reachable without bypass (HTTP {response.status})")
                return False
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            LOG.info(f"{url} not reachable without bypass: {type(e).__name__}")
            return True
