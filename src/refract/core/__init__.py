"""
Core module - Configuration, HTTP probing and pipeline orchestration.

The orchestrator depends on the scanners package, so it is imported from
``refract.core.orchestrator`` directly rather than re-exported here.
"""

from .config import PipelineConfig, DEFAULT_MARKER, DEFAULT_USER_AGENT
from .http_client import (
    ProbeClient,
    ProbeResponse,
    ProbeError,
    ParseError,
    TransportError,
)
from .logging import configure_logging


__all__ = [
    # Configuration
    "PipelineConfig",
    "DEFAULT_MARKER",
    "DEFAULT_USER_AGENT",
    # HTTP probing
    "ProbeClient",
    "ProbeResponse",
    # Exceptions
    "ProbeError",
    "ParseError",
    "TransportError",
    # Logging
    "configure_logging",
]
