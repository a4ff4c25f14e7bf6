"""Admin analytics over the appointment list.

All functions are pure: they take the (already scope-filtered) appointment
list plus the catalog, and recompute everything on each call.
"""
from collections import OrderedDict
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from salon_booking.models import Appointment, AppointmentStatus, Professional, Service

ALL_PROFESSIONALS = "all"
UNKNOWN_SERVICE_LABEL = "Unknown"
REMOVED_SERVICE_LABEL = "Removido"
MISSING_PROFESSIONAL_LABEL = "N/A"


class ReportPeriod(str, Enum):
    """Periods for per-professional performance."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


def _price_index(services: Iterable[Service]) -> Dict[str, float]:
    return {s.id: s.price for s in services}


def scope_appointments(
    appointments: Iterable[Appointment],
    effective_filter: str
) -> List[Appointment]:
    """Keep only appointments for the filtered professional ("all" keeps everything)."""
    if effective_filter == ALL_PROFESSIONALS:
        return list(appointments)
    return [a for a in appointments if a.professional_id == effective_filter]


def revenue_by_day(
    appointments: Iterable[Appointment],
    services: Iterable[Service],
    limit: int = 7
) -> List[Dict[str, Any]]:
    """
    Daily revenue of non-cancelled appointments.

    Returns:
        [{"date": "YYYY-MM-DD", "amount": float}], ascending by date,
        last ``limit`` entries. Appointments for deleted services add nothing.
    """
    prices = _price_index(services)
    daily: Dict[str, float] = {}
    for appointment in appointments:
        if appointment.status == AppointmentStatus.CANCELLED:
            continue
        price = prices.get(appointment.service_id)
        if price is None:
            continue
        key = appointment.date.isoformat()
        daily[key] = daily.get(key, 0) + price

    rows = [{"date": day, "amount": amount} for day, amount in sorted(daily.items())]
    return rows[-limit:] if limit else rows


def service_popularity(
    appointments: Iterable[Appointment],
    services: Iterable[Service]
) -> List[Dict[str, Any]]:
    """Appointment count per service name, in first-seen order."""
    names = {s.id: s.name for s in services}
    counts: "OrderedDict[str, int]" = OrderedDict()
    for appointment in appointments:
        name = names.get(appointment.service_id, UNKNOWN_SERVICE_LABEL)
        counts[name] = counts.get(name, 0) + 1
    return [{"name": name, "count": count} for name, count in counts.items()]


def total_revenue(
    appointments: Iterable[Appointment],
    services: Iterable[Service]
) -> float:
    prices = _price_index(services)
    return sum(
        prices.get(a.service_id, 0)
        for a in appointments
        if a.status != AppointmentStatus.CANCELLED
    )


def completion_rate(appointments: Iterable[Appointment]) -> int:
    """Percentage of confirmed or completed appointments, rounded half up (0 when empty)."""
    appointments = list(appointments)
    if not appointments:
        return 0
    done = sum(
        1 for a in appointments
        if a.status in (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)
    )
    # Half up in integers: 1 of 8 -> 13
    total = len(appointments)
    return (done * 200 + total) // (2 * total)


def is_in_period(day: date, period: ReportPeriod, now: datetime) -> bool:
    """
    Check whether a calendar day falls in the period ending now.

    - day: same calendar day
    - week: trailing 7 days, inclusive on both ends
    - month: same month and year
    - year: same year
    """
    today = now.date()
    if period == ReportPeriod.DAY:
        return day == today
    if period == ReportPeriod.WEEK:
        return today - timedelta(days=7) <= day <= today
    if period == ReportPeriod.MONTH:
        return day.year == today.year and day.month == today.month
    if period == ReportPeriod.YEAR:
        return day.year == today.year
    return True


def professional_performance(
    appointments: Iterable[Appointment],
    professionals: Iterable[Professional],
    services: Iterable[Service],
    period: ReportPeriod,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Confirmed revenue and count per professional for a period.

    Args:
        appointments: Appointment list
        professionals: Professionals to report on (already scoped)
        services: Catalog used for prices
        period: Reporting period
        now: Reference instant (defaults to the current time)

    Returns:
        [{"id", "name", "role", "count", "total"}] sorted by total descending
    """
    now = now or datetime.now()
    prices = _price_index(services)
    confirmed = [
        a for a in appointments
        if a.status == AppointmentStatus.CONFIRMED and is_in_period(a.date, period, now)
    ]

    rows = []
    for professional in professionals:
        own = [a for a in confirmed if a.professional_id == professional.id]
        rows.append({
            "id": professional.id,
            "name": professional.name,
            "role": professional.role,
            "count": len(own),
            "total": sum(prices.get(a.service_id, 0) for a in own),
        })

    return sorted(rows, key=lambda row: row["total"], reverse=True)


def dashboard_summary(
    appointments: Iterable[Appointment],
    services: Iterable[Service]
) -> Dict[str, Any]:
    """Headline numbers and chart data for the admin dashboard."""
    appointments = list(appointments)
    services = list(services)
    return {
        "total_revenue": total_revenue(appointments, services),
        "total_appointments": len(appointments),
        "completion_rate": completion_rate(appointments),
        "revenue_by_day": revenue_by_day(appointments, services),
        "service_popularity": service_popularity(appointments, services),
    }


def appointment_rows(
    appointments: Iterable[Appointment],
    services: Iterable[Service],
    professionals: Iterable[Professional]
) -> List[Dict[str, Any]]:
    """Appointment listing, newest first, with display labels for references."""
    service_names = {s.id: s.name for s in services}
    professional_names = {p.id: p.name for p in professionals}

    rows = []
    for appointment in sorted(appointments, key=lambda a: a.created_at, reverse=True):
        row = appointment.model_dump(mode="json")
        row["service_name"] = service_names.get(appointment.service_id, REMOVED_SERVICE_LABEL)
        row["professional_name"] = professional_names.get(
            appointment.professional_id, MISSING_PROFESSIONAL_LABEL
        )
        rows.append(row)
    return rows
