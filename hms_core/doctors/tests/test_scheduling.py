from datetime import date, datetime, time, timedelta

from hms_core.doctors.models import default_availability
from hms_core.doctors.scheduling import (
    BookedInterval,
    alternative_candidates,
    check_appointment_rules,
    find_conflict,
    generate_available_slots,
    has_any_slot,
    intervals_overlap,
    session_slots,
)


def test_intervals_are_half_open():
    assert intervals_overlap(600, 30, 615, 30)
    # back-to-back slots do not overlap
    assert not intervals_overlap(600, 30, 630, 30)


def test_session_slots_stop_before_end():
    assert session_slots(time(9, 0), time(10, 30)) == [time(9, 0), time(9, 30), time(10, 0)]


def test_default_availability_caps_each_session():
    slots = generate_available_slots(default_availability(), [])
    # morning 09:00-12:00 is 6 half hours, under its cap of 10
    assert slots["morning"] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
    assert len(slots["evening"]) == 6


def test_max_patients_limits_slots_from_session_start():
    availability = {
        "sessions": {"morning": {"startTime": "09:00", "endTime": "12:00", "maxPatients": 2}},
        "availableSessions": ["morning"],
    }
    slots = generate_available_slots(availability, [])
    assert slots == {"morning": ["09:00", "09:30"], "afternoon": [], "evening": []}


def test_booked_intervals_remove_overlapping_slots():
    availability = {
        "sessions": {"morning": {"startTime": "09:00", "endTime": "11:00", "maxPatients": 10}},
        "availableSessions": ["morning"],
    }
    booked = [BookedInterval(start=time(9, 15), duration_minutes=30)]
    slots = generate_available_slots(availability, booked)
    # 09:15-09:45 touches both 09:00 and 09:30
    assert slots["morning"] == ["10:00", "10:30"]


def test_cap_applies_after_booked_slots_are_removed():
    availability = {
        "sessions": {"morning": {"startTime": "09:00", "endTime": "12:00", "maxPatients": 2}},
        "availableSessions": ["morning"],
    }
    booked = [BookedInterval(start=time(9, 0), duration_minutes=30)]
    slots = generate_available_slots(availability, booked)
    # 6 half hours, the first taken: the cap of 2 is filled from what is still free
    assert slots["morning"] == ["09:30", "10:00"]


def test_disabled_or_broken_sessions_are_empty():
    availability = {
        "sessions": {
            "morning": {"startTime": "09:00", "endTime": "12:00", "maxPatients": 5},
            "afternoon": {"startTime": "bad", "endTime": "17:00", "maxPatients": 5},
        },
        "availableSessions": ["afternoon"],
    }
    slots = generate_available_slots(availability, [])
    assert not has_any_slot(slots)
    assert not has_any_slot(generate_available_slots(None, []))


def test_rules_reject_past_and_far_future():
    now = datetime(2026, 3, 2, 10, 0)

    past = check_appointment_rules(
        starts_at=now - timedelta(hours=1), now=now, duration_minutes=30, is_emergency=False, max_advance_days=90
    )
    assert not past.is_valid
    assert "past" in past.errors[0]

    far = check_appointment_rules(
        starts_at=now + timedelta(days=91), now=now, duration_minutes=30, is_emergency=False, max_advance_days=90
    )
    assert any("90 days" in e for e in far.errors)


def test_emergency_window_is_shorter_and_skips_hours_warning():
    now = datetime(2026, 3, 2, 10, 0)
    late = now.replace(hour=22) + timedelta(days=1)

    normal = check_appointment_rules(
        starts_at=late, now=now, duration_minutes=30, is_emergency=False, max_advance_days=90
    )
    assert normal.is_valid
    assert normal.warnings

    emergency = check_appointment_rules(
        starts_at=now + timedelta(days=31), now=now, duration_minutes=30, is_emergency=True, max_advance_days=90
    )
    assert any("Emergency" in e for e in emergency.errors)
    assert emergency.as_dict()["is_valid"] is False


def test_duration_bounds():
    now = datetime(2026, 3, 2, 10, 0)
    soon = now + timedelta(days=1)
    for minutes, ok in [(10, False), (15, True), (120, True), (121, False)]:
        check = check_appointment_rules(
            starts_at=soon, now=now, duration_minutes=minutes, is_emergency=False, max_advance_days=90
        )
        assert check.is_valid is ok


def test_find_conflict_returns_the_clashing_start():
    booked = [(time(9, 0), 30), (time(10, 0), 60)]
    assert find_conflict(time(10, 30), 30, booked) == time(10, 0)
    assert find_conflict(time(9, 30), 30, booked) is None


def test_alternative_candidates_cover_a_week_of_half_hours():
    candidates = list(alternative_candidates(date(2026, 3, 2)))
    # 09:00..17:30 is 18 slots a day
    assert len(candidates) == 7 * 18
    assert candidates[0] == (date(2026, 3, 2), time(9, 0))
    assert candidates[-1] == (date(2026, 3, 8), time(17, 30))
