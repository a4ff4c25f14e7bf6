"""Slot availability for professionals.

- Candidate dates: fixed forward window, open weekdays only
- Half-hour slots from opening hour to closing hour (exclusive)
- A slot is taken only by a non-cancelled appointment for the same
  professional, date and time

Availability is always derived from the current appointment list, never stored.
"""
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from salon_booking import config
from salon_booking.models import Appointment, TimeSlot


def weekday_number(day: date) -> int:
    """Weekday with Sunday=0 ... Saturday=6 (the numbering used in BUSINESS_HOURS)."""
    return (day.weekday() + 1) % 7


class SlotGenerator:
    """Generate bookable dates and slots from business hours."""

    def __init__(
        self,
        business_hours: Optional[Dict[str, Any]] = None,
        window_days: int = config.BOOKING_WINDOW_DAYS,
        slot_minutes: int = config.SLOT_MINUTES
    ):
        self.business_hours = business_hours or config.BUSINESS_HOURS
        self.window_days = window_days
        self.slot_minutes = slot_minutes

    def is_open(self, day: date) -> bool:
        return weekday_number(day) in self.business_hours["days"]

    def candidate_dates(self, today: Optional[date] = None) -> List[date]:
        """
        Bookable dates in the forward window.

        Args:
            today: First day of the window (defaults to the current date)

        Returns:
            Open dates in ascending order, at most window_days entries
        """
        start = today or date.today()
        days = (start + timedelta(days=offset) for offset in range(self.window_days))
        return [day for day in days if self.is_open(day)]

    def slot_times(self) -> List[str]:
        """All slot labels for one day, e.g. ['09:00', '09:30', ...]."""
        times = []
        for hour in range(self.business_hours["start"], self.business_hours["end"]):
            for minute in range(0, 60, self.slot_minutes):
                times.append(f"{hour:02d}:{minute:02d}")
        return times

    def generate_slots(
        self,
        target_date: Optional[date],
        professional_id: Optional[str],
        appointments: Iterable[Appointment]
    ) -> List[TimeSlot]:
        """
        Slots for one professional on one date.

        Args:
            target_date: Day to generate slots for
            professional_id: Professional the slots belong to
            appointments: Full appointment list

        Returns:
            Ordered slots; empty when no professional/date is given or the
            date falls on a closed weekday
        """
        if not professional_id or target_date is None:
            return []
        if not self.is_open(target_date):
            return []

        # Pre-build set of booked times for O(1) lookup
        booked_times = {
            a.time
            for a in appointments
            if a.professional_id == professional_id
            and a.date == target_date
            and a.holds_slot()
        }

        return [
            TimeSlot(time=time_label, available=time_label not in booked_times)
            for time_label in self.slot_times()
        ]

    def is_available(
        self,
        target_date: date,
        time_label: str,
        professional_id: str,
        appointments: Iterable[Appointment]
    ) -> bool:
        slots = self.generate_slots(target_date, professional_id, appointments)
        return any(s.time == time_label and s.available for s in slots)
