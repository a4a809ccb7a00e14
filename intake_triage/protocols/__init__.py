"""Crisis escalation protocol configuration."""

from intake_triage.protocols.models import (
    ConfigurationError,
    ProtocolRecord,
    ProtocolSnapshot,
    conservative_default,
)
from intake_triage.protocols.registry import ProtocolRegistry, load_snapshot

__all__ = [
    "ConfigurationError",
    "ProtocolRecord",
    "ProtocolRegistry",
    "ProtocolSnapshot",
    "conservative_default",
    "load_snapshot",
]
