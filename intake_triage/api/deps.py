"""FastAPI dependency injection utilities.

Services are process-wide singletons built on first use. Tests swap
them through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from intake_triage.protocols.registry import ProtocolRegistry
from intake_triage.services.escalation import EscalationService
from intake_triage.services.intake import IntakeOrchestrator
from intake_triage.services.notifications import LoggingNotifier


@lru_cache
def get_protocol_registry() -> ProtocolRegistry:
    """Get the process-wide protocol registry."""
    return ProtocolRegistry()


@lru_cache
def get_escalation_service() -> EscalationService:
    """Get the process-wide escalation service."""
    return EscalationService(
        registry=get_protocol_registry(),
        notifier=LoggingNotifier(),
    )


@lru_cache
def get_orchestrator() -> IntakeOrchestrator:
    """Get the process-wide intake orchestrator."""
    return IntakeOrchestrator(escalation_service=get_escalation_service())


# Type aliases for cleaner endpoint signatures
Registry = Annotated[ProtocolRegistry, Depends(get_protocol_registry)]
Escalation = Annotated[EscalationService, Depends(get_escalation_service)]
Orchestrator = Annotated[IntakeOrchestrator, Depends(get_orchestrator)]
