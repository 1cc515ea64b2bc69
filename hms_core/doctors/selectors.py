# hms_core/doctors/selectors.py
from __future__ import annotations

from datetime import date, time
from uuid import UUID

from django.db.models import Q, QuerySet
from django.utils import timezone

from hms_core.doctors.models import ACTIVE_APPOINTMENT_STATUSES, Appointment, AppointmentStatus, Doctor, DoctorStatus
from hms_core.doctors.scheduling import (
    BookedInterval,
    fmt_hhmm,
    generate_available_slots,
    has_any_slot,
)


def list_doctors(
    *,
    specialization: str | None = None,
    department: str | None = None,
    status: str | None = None,
    q: str = "",
) -> QuerySet[Doctor]:
    qs = Doctor.objects.all()

    if specialization:
        qs = qs.filter(specialization__iexact=specialization)
    if department:
        qs = qs.filter(department__iexact=department)
    if status:
        qs = qs.filter(status=status)

    q = (q or "").strip()
    if q:
        qs = qs.filter(
            Q(name__icontains=q)
            | Q(doctor_id__icontains=q)
            | Q(specialization__icontains=q)
            | Q(email__icontains=q)
        )

    return qs.order_by("name")


def specializations() -> list[str]:
    values = Doctor.objects.exclude(specialization="").values_list("specialization", flat=True).distinct()
    return sorted(set(values))


def active_appointments_on(
    *,
    day: date,
    doctor_id: UUID | None = None,
    patient_id: UUID | None = None,
    exclude_id: UUID | None = None,
) -> QuerySet[Appointment]:
    qs = Appointment.objects.filter(appointment_date=day, status__in=ACTIVE_APPOINTMENT_STATUSES)
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs


def booked_intervals(*, doctor_id: UUID, day: date, exclude_id: UUID | None = None) -> list[BookedInterval]:
    rows = active_appointments_on(day=day, doctor_id=doctor_id, exclude_id=exclude_id).values_list(
        "appointment_time", "duration_minutes"
    )
    return [BookedInterval(start=t, duration_minutes=d) for t, d in rows]


def available_slots(doctor: Doctor, day: date) -> dict[str, list[str]]:
    return generate_available_slots(doctor.availability_hours, booked_intervals(doctor_id=doctor.id, day=day))


def doctors_with_slots(*, day: date, specialization: str | None = None) -> list[dict]:
    """Active doctors with at least one free slot on `day`, each with its slots."""
    out: list[dict] = []
    for doctor in list_doctors(specialization=specialization, status=DoctorStatus.ACTIVE):
        slots = available_slots(doctor, day)
        if has_any_slot(slots):
            out.append({"doctor": doctor, "slots": slots})
    return out


def is_slot_available(doctor: Doctor, day: date, at: time) -> bool:
    wanted = fmt_hhmm(at)
    return any(wanted in times for times in available_slots(doctor, day).values())


def appointment_stats(*, doctor_id: UUID | None = None) -> dict:
    qs = Appointment.objects.all()
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)

    return {
        "total_appointments": qs.count(),
        "today_appointments": qs.filter(appointment_date=timezone.localdate()).count(),
        "completed_appointments": qs.filter(status=AppointmentStatus.COMPLETED).count(),
        "pending_appointments": qs.filter(
            status__in=[AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED]
        ).count(),
    }


def list_appointments(
    *,
    doctor_id: UUID | None = None,
    patient_id: UUID | None = None,
    day: date | None = None,
    status: str | None = None,
) -> QuerySet[Appointment]:
    qs = Appointment.objects.select_related("patient", "doctor")

    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if day:
        qs = qs.filter(appointment_date=day)
    if status:
        qs = qs.filter(status=status)

    return qs.order_by("-appointment_date", "-appointment_time")
