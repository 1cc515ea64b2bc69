# hms_core/doctors/scheduling.py
"""
Slot arithmetic and booking rules for doctor appointments.

Everything here is pure: callers pass in the doctor's availability document, the
appointments already holding time, and "now". The services module does the lookups.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable

SLOT_MINUTES = 30
SESSION_NAMES = ("morning", "afternoon", "evening")

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 120

BUSINESS_HOURS_START = 7
BUSINESS_HOURS_END = 20

EMERGENCY_MAX_ADVANCE_DAYS = 30

# alternative slot search window
ALTERNATIVE_SEARCH_DAYS = 7
ALTERNATIVE_DAY_START = time(9, 0)
ALTERNATIVE_DAY_END = time(18, 0)


@dataclass(frozen=True)
class BookedInterval:
    start: time
    duration_minutes: int = SLOT_MINUTES


@dataclass
class RuleCheck:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def as_dict(self) -> dict:
        return {"is_valid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def parse_hhmm(value) -> time:
    if isinstance(value, time):
        return value
    hh, mm = str(value).strip().split(":")[:2]
    return time(int(hh), int(mm))


def fmt_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def intervals_overlap(start_a: int, dur_a: int, start_b: int, dur_b: int) -> bool:
    """Half-open [start, start + duration) overlap, all values in minutes."""
    return start_a < start_b + dur_b and start_b < start_a + dur_a


def session_slots(start: time, end: time, step_minutes: int = SLOT_MINUTES) -> list[time]:
    """Slot start times from `start` up to, not including, `end`."""
    out: list[time] = []
    m, stop = _minutes(start), _minutes(end)
    while m < stop:
        out.append(time(m // 60, m % 60))
        m += step_minutes
    return out


def _is_booked(slot: time, booked: Iterable[BookedInterval]) -> bool:
    s = _minutes(slot)
    return any(intervals_overlap(s, SLOT_MINUTES, _minutes(b.start), b.duration_minutes or SLOT_MINUTES) for b in booked)


def generate_available_slots(availability: dict | None, booked: Iterable[BookedInterval]) -> dict[str, list[str]]:
    """
    Free "HH:MM" slots per session.

    Slots overlapping a booked interval are dropped first, then each session offers
    at most `maxPatients` of the remaining ones. Sessions not listed in
    `availableSessions` come back empty.
    """
    booked = list(booked)
    out: dict[str, list[str]] = {name: [] for name in SESSION_NAMES}
    if not availability:
        return out

    sessions = availability.get("sessions") or {}
    enabled = availability.get("availableSessions") or []

    for name in SESSION_NAMES:
        cfg = sessions.get(name)
        if name not in enabled or not cfg:
            continue
        try:
            start = parse_hhmm(cfg.get("startTime"))
            end = parse_hhmm(cfg.get("endTime"))
        except (TypeError, ValueError):
            continue

        cap = int(cfg.get("maxPatients") or 0)
        free = [s for s in session_slots(start, end) if not _is_booked(s, booked)]
        out[name] = [fmt_hhmm(s) for s in free[:cap]] if cap > 0 else []

    return out


def has_any_slot(slots: dict[str, list[str]]) -> bool:
    return any(slots.get(name) for name in SESSION_NAMES)


def check_appointment_rules(
    *,
    starts_at: datetime,
    now: datetime,
    duration_minutes: int,
    is_emergency: bool,
    max_advance_days: int,
    emergency_max_advance_days: int = EMERGENCY_MAX_ADVANCE_DAYS,
) -> RuleCheck:
    """Date, window and duration rules. Conflict and capacity checks need the database."""
    check = RuleCheck()

    if starts_at < now:
        check.errors.append("Appointment cannot be scheduled in the past")

    days_ahead = (starts_at - now) / timedelta(days=1)
    if is_emergency:
        if days_ahead > emergency_max_advance_days:
            check.errors.append(
                f"Emergency appointments cannot be booked more than {emergency_max_advance_days} days in advance"
            )
    else:
        if days_ahead > max_advance_days:
            check.errors.append(f"Appointments cannot be booked more than {max_advance_days} days in advance")
        if starts_at.hour < BUSINESS_HOURS_START or starts_at.hour >= BUSINESS_HOURS_END:
            check.warnings.append(
                "Appointments outside 7:00 AM to 8:00 PM may have limited doctor availability"
            )

    if duration_minutes < MIN_DURATION_MINUTES or duration_minutes > MAX_DURATION_MINUTES:
        check.errors.append(
            f"Appointment duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"
        )

    return check


def find_conflict(
    start: time,
    duration_minutes: int,
    booked: Iterable[tuple[time, int]],
) -> time | None:
    """Start time of the first booked interval overlapping [start, start + duration), if any."""
    s = _minutes(start)
    for other_start, other_dur in booked:
        if intervals_overlap(s, duration_minutes, _minutes(other_start), other_dur or SLOT_MINUTES):
            return other_start
    return None


def alternative_candidates(requested: date) -> Iterable[tuple[date, time]]:
    """Every half hour 09:00-17:30 on the requested day and the six days after it."""
    for offset in range(ALTERNATIVE_SEARCH_DAYS):
        day = requested + timedelta(days=offset)
        for slot in session_slots(ALTERNATIVE_DAY_START, ALTERNATIVE_DAY_END):
            yield day, slot
