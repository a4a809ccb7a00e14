"""Booking action labels offered to the scheduling collaborator.

The engine never books anything itself. It only names the action the
scheduling screens should offer for a triage level.
"""

from dataclasses import dataclass
from typing import Optional

from intake_triage.models.score import TriageLevel


@dataclass(frozen=True)
class BookingAction:
    """Action label handed to the scheduling collaborator.

    Attributes:
        label: Button text shown to the patient
        provider_type: Kind of provider the booking screen should list
        urgent: Whether the booking is for urgent or emergency care
    """

    label: str
    provider_type: str
    urgent: bool = False


BOOKING_ACTIONS: dict[TriageLevel, BookingAction] = {
    TriageLevel.THERAPIST: BookingAction(
        label="Find a Therapist",
        provider_type="therapist",
    ),
    TriageLevel.THERAPIST_AND_PSYCHIATRIST: BookingAction(
        label="Book with Mental Health Provider",
        provider_type="therapist_and_psychiatrist",
    ),
    TriageLevel.PSYCHIATRIST_CRISIS: BookingAction(
        label="Find Emergency Care",
        provider_type="psychiatrist",
        urgent=True,
    ),
}


def get_booking_action(level: TriageLevel) -> Optional[BookingAction]:
    """Booking action for a triage level.

    Monitoring never offers a booking.

    Examples:
        >>> get_booking_action(TriageLevel.MONITOR) is None
        True
        >>> get_booking_action(TriageLevel.PSYCHIATRIST_CRISIS).label
        'Find Emergency Care'
    """
    return BOOKING_ACTIONS.get(level)
