from .clients import ProbeClients, tls13_supported
from .runner import ProbeRunner
from .targets import DPI_TARGETS, expand_dpi_targets, standard_targets

__all__ = [
    "ProbeClients",
    "ProbeRunner",
    "DPI_TARGETS",
    "expand_dpi_targets",
    "standard_targets",
    "tls13_supported",
]
