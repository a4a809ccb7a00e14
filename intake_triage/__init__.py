"""Staged clinical intake and risk-triage engine."""

__version__ = "0.1.0"
