# hms_core/doctors/services.py
from __future__ import annotations

import logging
from datetime import date, datetime, time
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.db.models import ProtectedError
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.common.api.exceptions import ConflictError
from hms_core.common.numbering import next_sequence_number
from hms_core.doctors import scheduling
from hms_core.doctors.models import (
    ACTIVE_APPOINTMENT_STATUSES,
    Appointment,
    AppointmentStatus,
    AppointmentType,
    Doctor,
)
from hms_core.doctors.selectors import active_appointments_on, booked_intervals
from hms_core.patients.models import Patient

logger = logging.getLogger(__name__)


def _now_naive() -> datetime:
    return timezone.localtime().replace(tzinfo=None)


def validate_availability(value: dict) -> dict:
    """Shape check for the availability document; raises ValidationError."""
    if not isinstance(value, dict):
        raise ValidationError({"availability_hours": "Object expected."})

    sessions = value.get("sessions") or {}
    enabled = value.get("availableSessions") or []
    if not isinstance(sessions, dict) or not isinstance(enabled, list):
        raise ValidationError({"availability_hours": "sessions must be an object and availableSessions a list."})

    for name, cfg in sessions.items():
        if name not in scheduling.SESSION_NAMES:
            raise ValidationError({"availability_hours": f"Unknown session '{name}'."})
        try:
            start = scheduling.parse_hhmm(cfg["startTime"])
            end = scheduling.parse_hhmm(cfg["endTime"])
            max_patients = int(cfg.get("maxPatients", 0))
        except (KeyError, TypeError, ValueError):
            raise ValidationError({"availability_hours": f"Session '{name}' needs startTime, endTime (HH:MM)."})
        if end <= start:
            raise ValidationError({"availability_hours": f"Session '{name}' ends before it starts."})
        if max_patients < 0:
            raise ValidationError({"availability_hours": f"Session '{name}' maxPatients must be >= 0."})

    unknown = [s for s in enabled if s not in sessions]
    if unknown:
        raise ValidationError({"availability_hours": f"availableSessions not configured: {unknown}"})

    return value


class DoctorService:
    UPDATABLE_FIELDS = {
        "name",
        "email",
        "phone",
        "specialization",
        "department",
        "qualification",
        "experience_years",
        "consultation_fee",
        "license_number",
        "room_number",
        "status",
        "user",
    }

    @staticmethod
    def _next_doctor_id_locked() -> str:
        prefix = f"DR{timezone.localdate():%y%m}"
        return next_sequence_number(model=Doctor, field="doctor_id", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def create_doctor(
        *,
        actor_user_id: int | None,
        name: str,
        specialization: str,
        availability_hours: dict | None = None,
        **fields,
    ) -> Doctor:
        fields = {k: v for k, v in fields.items() if k in DoctorService.UPDATABLE_FIELDS}
        if availability_hours is not None:
            fields["availability_hours"] = validate_availability(availability_hours)

        doctor = Doctor.objects.create(
            doctor_id=DoctorService._next_doctor_id_locked(),
            name=name.strip(),
            specialization=specialization.strip(),
            **fields,
        )

        AuditService.log(
            event_code="doctor.created",
            entity_type="Doctor",
            entity_id=doctor.id,
            actor_user_id=actor_user_id,
            metadata={"doctor_id": doctor.doctor_id},
        )
        return doctor

    @staticmethod
    @transaction.atomic
    def update_doctor(*, actor_user_id: int | None, doctor_id: UUID, data: dict) -> Doctor:
        doctor = Doctor.objects.select_for_update().get(id=doctor_id)
        updates = {k: v for k, v in (data or {}).items() if k in DoctorService.UPDATABLE_FIELDS}
        if "availability_hours" in (data or {}):
            updates["availability_hours"] = validate_availability(data["availability_hours"])

        for k, v in updates.items():
            setattr(doctor, k, v)
        doctor.save()

        AuditService.log(
            event_code="doctor.updated",
            entity_type="Doctor",
            entity_id=doctor.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return doctor

    @staticmethod
    @transaction.atomic
    def set_availability(*, actor_user_id: int | None, doctor_id: UUID, availability_hours: dict) -> Doctor:
        return DoctorService.update_doctor(
            actor_user_id=actor_user_id,
            doctor_id=doctor_id,
            data={"availability_hours": availability_hours},
        )

    @staticmethod
    @transaction.atomic
    def delete_doctor(*, actor_user_id: int | None, doctor_id: UUID) -> None:
        doctor = Doctor.objects.select_for_update().get(id=doctor_id)

        if doctor.appointments.filter(status__in=ACTIVE_APPOINTMENT_STATUSES).exists():
            raise ConflictError("Doctor has active appointments.")

        try:
            # savepoint so a refused delete leaves the outer transaction usable
            with transaction.atomic():
                doctor.delete()
        except ProtectedError:
            raise ConflictError("Doctor has appointment or admission history; set status to inactive instead.")

        AuditService.log(
            event_code="doctor.deleted",
            entity_type="Doctor",
            entity_id=doctor_id,
            actor_user_id=actor_user_id,
            metadata={"doctor_id": doctor.doctor_id},
        )


class AppointmentService:
    # action -> (statuses it may run from, resulting status)
    TRANSITIONS = {
        "confirm": ({AppointmentStatus.SCHEDULED}, AppointmentStatus.CONFIRMED),
        "check_in": ({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED}, AppointmentStatus.IN_PROGRESS),
        "start": ({AppointmentStatus.CONFIRMED}, AppointmentStatus.IN_PROGRESS),
        "complete": ({AppointmentStatus.IN_PROGRESS}, AppointmentStatus.COMPLETED),
        "cancel": (set(ACTIVE_APPOINTMENT_STATUSES), AppointmentStatus.CANCELLED),
        "no_show": ({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED}, AppointmentStatus.NO_SHOW),
    }

    @staticmethod
    def validate(
        *,
        patient_id: UUID,
        doctor_id: UUID,
        appointment_date: date,
        appointment_time: time,
        duration_minutes: int = scheduling.SLOT_MINUTES,
        is_emergency: bool = False,
        exclude_id: UUID | None = None,
    ) -> scheduling.RuleCheck:
        check = scheduling.check_appointment_rules(
            starts_at=datetime.combine(appointment_date, appointment_time),
            now=_now_naive(),
            duration_minutes=duration_minutes,
            is_emergency=is_emergency,
            max_advance_days=settings.HMS_MAX_ADVANCE_BOOKING_DAYS,
        )

        doctor_booked = booked_intervals(doctor_id=doctor_id, day=appointment_date, exclude_id=exclude_id)
        clash = scheduling.find_conflict(
            appointment_time, duration_minutes, [(b.start, b.duration_minutes) for b in doctor_booked]
        )
        if clash is not None:
            check.errors.append(f"Doctor has a conflicting appointment at {scheduling.fmt_hhmm(clash)}")

        patient_rows = active_appointments_on(
            day=appointment_date, patient_id=patient_id, exclude_id=exclude_id
        ).values_list("appointment_time", "duration_minutes")
        clash = scheduling.find_conflict(appointment_time, duration_minutes, list(patient_rows))
        if clash is not None:
            check.errors.append(f"Patient has a conflicting appointment at {scheduling.fmt_hhmm(clash)}")

        limit = settings.HMS_MAX_APPOINTMENTS_PER_DAY
        if len(doctor_booked) >= limit:
            check.errors.append(f"Doctor has reached the maximum daily appointment limit ({limit})")

        return check

    @staticmethod
    def _next_appointment_id_locked(day: date) -> str:
        prefix = f"APT{day:%Y%m%d}"
        return next_sequence_number(model=Appointment, field="appointment_id", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def create_appointment(
        *,
        actor_user_id: int | None,
        patient_id: UUID,
        doctor_id: UUID,
        appointment_date: date,
        appointment_time: time,
        duration_minutes: int = scheduling.SLOT_MINUTES,
        type: str = AppointmentType.CONSULTATION,
        is_emergency: bool = False,
        reason: str = "",
        notes: str = "",
    ) -> tuple[Appointment, list[str]]:
        patient = Patient.objects.get(id=patient_id)
        # lock the doctor row so concurrent bookings for the same doctor serialize
        doctor = Doctor.objects.select_for_update().get(id=doctor_id)

        is_emergency = is_emergency or type == AppointmentType.EMERGENCY
        check = AppointmentService.validate(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            duration_minutes=duration_minutes,
            is_emergency=is_emergency,
        )
        if not check.is_valid:
            raise ValidationError({"appointment": check.errors})

        appt = Appointment.objects.create(
            appointment_id=AppointmentService._next_appointment_id_locked(timezone.localdate()),
            patient=patient,
            doctor=doctor,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            duration_minutes=duration_minutes,
            type=type,
            is_emergency=is_emergency,
            reason=reason or "",
            notes=notes or "",
        )

        AuditService.log(
            event_code="appointment.created",
            entity_type="Appointment",
            entity_id=appt.id,
            actor_user_id=actor_user_id,
            metadata={
                "appointment_id": appt.appointment_id,
                "doctor_id": str(doctor.id),
                "patient_id": str(patient.id),
                "warnings": check.warnings,
            },
        )
        logger.info("booked appointment %s with %s", appt.appointment_id, doctor.doctor_id)
        return appt, check.warnings

    @staticmethod
    @transaction.atomic
    def transition(
        *,
        actor_user_id: int | None,
        appointment_id: UUID,
        action: str,
        reason: str = "",
    ) -> Appointment:
        allowed_from, target = AppointmentService.TRANSITIONS[action]
        appt = Appointment.objects.select_for_update().get(id=appointment_id)

        if appt.status not in allowed_from:
            raise ConflictError(f"Cannot {action.replace('_', ' ')} an appointment that is {appt.status}.")

        from_status = appt.status
        appt.status = target
        fields = ["status", "updated_at"]

        if action == "check_in":
            appt.checked_in_at = timezone.now()
            fields.append("checked_in_at")
        if action == "cancel":
            appt.cancellation_reason = reason or ""
            fields.append("cancellation_reason")

        appt.save(update_fields=fields)

        AuditService.log(
            event_code=f"appointment.{action}",
            entity_type="Appointment",
            entity_id=appt.id,
            actor_user_id=actor_user_id,
            metadata={"from_status": from_status, "to_status": target, "reason": reason or None},
        )
        return appt

    @staticmethod
    @transaction.atomic
    def reschedule(
        *,
        actor_user_id: int | None,
        appointment_id: UUID,
        appointment_date: date,
        appointment_time: time,
    ) -> tuple[Appointment, list[str]]:
        appt = Appointment.objects.select_for_update().get(id=appointment_id)
        if appt.status not in (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED):
            raise ConflictError(f"Cannot reschedule an appointment that is {appt.status}.")

        check = AppointmentService.validate(
            patient_id=appt.patient_id,
            doctor_id=appt.doctor_id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            duration_minutes=appt.duration_minutes,
            is_emergency=appt.is_emergency,
            exclude_id=appt.id,
        )
        if not check.is_valid:
            raise ValidationError({"appointment": check.errors})

        old = {"date": appt.appointment_date, "time": appt.appointment_time}
        appt.appointment_date = appointment_date
        appt.appointment_time = appointment_time
        appt.status = AppointmentStatus.SCHEDULED
        appt.save(update_fields=["appointment_date", "appointment_time", "status", "updated_at"])

        AuditService.log(
            event_code="appointment.rescheduled",
            entity_type="Appointment",
            entity_id=appt.id,
            actor_user_id=actor_user_id,
            metadata={"from": old, "to": {"date": appointment_date, "time": appointment_time}},
        )
        return appt, check.warnings

    @staticmethod
    def alternative_slots(
        *,
        doctor_id: UUID,
        appointment_date: date,
        patient_id: UUID | None = None,
        duration_minutes: int = scheduling.SLOT_MINUTES,
        is_emergency: bool = False,
        limit: int = 5,
    ) -> list[dict]:
        """
        Free starts on the requested day and the six after it. Each candidate passes the
        same checks as a booking: time rules, doctor and patient overlap, daily limit.
        """
        doctor = Doctor.objects.get(id=doctor_id)
        now = _now_naive()
        limit_per_day = settings.HMS_MAX_APPOINTMENTS_PER_DAY

        out: list[dict] = []
        booked_by_day: dict[date, list[tuple[time, int]]] = {}
        patient_by_day: dict[date, list[tuple[time, int]]] = {}

        for day, slot in scheduling.alternative_candidates(appointment_date):
            if len(out) >= limit:
                break

            if day not in booked_by_day:
                booked_by_day[day] = [
                    (b.start, b.duration_minutes) for b in booked_intervals(doctor_id=doctor.id, day=day)
                ]
            if len(booked_by_day[day]) >= limit_per_day:
                continue
            if scheduling.find_conflict(slot, duration_minutes, booked_by_day[day]) is not None:
                continue

            if patient_id is not None:
                if day not in patient_by_day:
                    patient_by_day[day] = list(
                        active_appointments_on(day=day, patient_id=patient_id).values_list(
                            "appointment_time", "duration_minutes"
                        )
                    )
                if scheduling.find_conflict(slot, duration_minutes, patient_by_day[day]) is not None:
                    continue

            check = scheduling.check_appointment_rules(
                starts_at=datetime.combine(day, slot),
                now=now,
                duration_minutes=duration_minutes,
                is_emergency=is_emergency,
                max_advance_days=settings.HMS_MAX_ADVANCE_BOOKING_DAYS,
            )
            if not check.is_valid:
                continue

            out.append(
                {
                    "date": day,
                    "time": scheduling.fmt_hhmm(slot),
                    "doctor_id": doctor.id,
                    "doctor_name": doctor.name,
                    "specialization": doctor.specialization,
                }
            )

        return out
