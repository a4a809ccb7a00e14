"""Booking action labels."""

from intake_triage.booking.policy import BookingAction, get_booking_action

__all__ = ["BookingAction", "get_booking_action"]
