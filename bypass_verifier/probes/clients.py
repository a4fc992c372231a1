"""
Shared HTTP clients for probes.

One aiohttp session per TLS mode: default negotiation, pinned TLS1.2 and
pinned TLS1.3. Sessions are created once per run and only read afterwards,
so concurrent probes can share them.
"""

import logging
import ssl
from typing import Dict, Optional

import aiohttp

from ..errors import VerifierError
from ..models import ProbeKind

LOG = logging.getLogger(__name__)

_PINNED_VERSIONS = {
    ProbeKind.TLS12: ssl.TLSVersion.TLSv1_2,
    ProbeKind.TLS13: ssl.TLSVersion.TLSv1_3,
}


def pinned_context(version: ssl.TLSVersion) -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.minimum_version = version
    context.maximum_version = version
    return context


def tls13_supported() -> bool:
    """
    Best-effort capability probe for TLS1.3.

    Treats any failure to build a TLS1.3-only context as "unsupported". This
    says nothing about whether a particular server will negotiate it.
    """
    if not getattr(ssl, "HAS_TLSv1_3", False):
        LOG.info("TLS1.3 is not supported by the linked OpenSSL")
        return False
    try:
        pinned_context(ssl.TLSVersion.TLSv1_3)
        return True
    except (ValueError, ssl.SSLError, AttributeError) as e:
        LOG.info(f"TLS1.3 is not supported: {e}")
        return False


class ProbeClients:
    """
    Long-lived sessions used by every probe of a run.

    Use as an async context manager or call open()/close() explicitly.
    """

    def __init__(self, limit: int = 70):
        self.limit = limit
        self.tls13_supported = tls13_supported()
        self._sessions: Dict[ProbeKind, aiohttp.ClientSession] = {}

    @property
    def is_open(self) -> bool:
        return bool(self._sessions)

    def _make_session(self, context: Optional[ssl.SSLContext]) -> aiohttp.ClientSession:
        # force_close: every probe makes its own handshake through the current engine
        connector = aiohttp.TCPConnector(
            limit=self.limit,
            ttl_dns_cache=300,
            force_close=True,
            ssl=context if context is not None else True,
        )
        return aiohttp.ClientSession(
            connector=connector,
            read_bufsize=16384,
            max_line_size=16384,
            max_field_size=16384,
        )

    async def open(self) -> "ProbeClients":
        if self.is_open:
            return self
        self._sessions[ProbeKind.HTTP] = self._make_session(None)
        self._sessions[ProbeKind.TLS12] = self._make_session(
            pinned_context(_PINNED_VERSIONS[ProbeKind.TLS12])
        )
        if self.tls13_supported:
            self._sessions[ProbeKind.TLS13] = self._make_session(
                pinned_context(_PINNED_VERSIONS[ProbeKind.TLS13])
            )
        LOG.debug(f"Probe sessions opened: {[k.value for k in self._sessions]}")
        return self

    async def close(self) -> None:
        sessions, self._sessions = self._sessions, {}
        for session in sessions.values():
            await session.close()

    def session_for(self, kind: ProbeKind) -> Optional[aiohttp.ClientSession]:
        """
        Session for an HTTP-family probe kind. DPI probes use the default one.

        Returns None for TLS1.3 when the platform cannot negotiate it.
        """
        if not self.is_open:
            raise VerifierError("Probe clients are not open")
        if kind is ProbeKind.DPI:
            kind = ProbeKind.HTTP
        return self._sessions.get(kind)

    async def __aenter__(self) -> "ProbeClients":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
