"""Utility functions."""

from intake_triage.utils.time import format_datetime, minutes_between, utc_now

__all__ = ["utc_now", "format_datetime", "minutes_between"]
