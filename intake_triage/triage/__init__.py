"""Triage resolution."""

from intake_triage.triage.resolver import TriageDecision, resolve, resolve_session

__all__ = ["TriageDecision", "resolve", "resolve_session"]
