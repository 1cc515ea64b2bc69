# hms_core/doctors/models.py
from __future__ import annotations

import copy
from decimal import Decimal

from django.conf import settings
from django.db import models

from hms_core.common.models import UUIDModel
from hms_core.patients.models import Patient

DEFAULT_AVAILABILITY = {
    "sessions": {
        "morning": {"startTime": "09:00", "endTime": "12:00", "maxPatients": 10},
        "afternoon": {"startTime": "14:00", "endTime": "17:00", "maxPatients": 10},
        "evening": {"startTime": "18:00", "endTime": "21:00", "maxPatients": 8},
    },
    "availableSessions": ["morning", "afternoon", "evening"],
}


def default_availability() -> dict:
    return copy.deepcopy(DEFAULT_AVAILABILITY)


class DoctorStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"
    ON_LEAVE = "on_leave", "On Leave"


class Doctor(UUIDModel):
    doctor_id = models.CharField(max_length=32, unique=True)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="doctor_profile",
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)

    specialization = models.CharField(max_length=128, db_index=True)
    department = models.CharField(max_length=128, blank=True)
    qualification = models.CharField(max_length=255, blank=True)
    experience_years = models.PositiveSmallIntegerField(default=0)
    consultation_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    license_number = models.CharField(max_length=64, blank=True)
    room_number = models.CharField(max_length=32, blank=True)

    # {"sessions": {name: {startTime, endTime, maxPatients}}, "availableSessions": [...]}
    availability_hours = models.JSONField(default=default_availability)

    status = models.CharField(max_length=16, choices=DoctorStatus.choices, default=DoctorStatus.ACTIVE, db_index=True)

    class Meta:
        db_table = "doctors_doctor"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"Dr. {self.name} ({self.specialization})"


class AppointmentType(models.TextChoices):
    CONSULTATION = "consultation", "Consultation"
    FOLLOW_UP = "follow_up", "Follow Up"
    EMERGENCY = "emergency", "Emergency"
    ROUTINE_CHECKUP = "routine_checkup", "Routine Checkup"
    PROCEDURE = "procedure", "Procedure"


class AppointmentStatus(models.TextChoices):
    SCHEDULED = "scheduled", "Scheduled"
    CONFIRMED = "confirmed", "Confirmed"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    NO_SHOW = "no_show", "No Show"


# statuses that hold a slot
ACTIVE_APPOINTMENT_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
)


class Appointment(UUIDModel):
    appointment_id = models.CharField(max_length=32, unique=True)

    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="appointments")
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name="appointments")

    appointment_date = models.DateField(db_index=True)
    appointment_time = models.TimeField()
    duration_minutes = models.PositiveSmallIntegerField(default=30)

    type = models.CharField(max_length=32, choices=AppointmentType.choices, default=AppointmentType.CONSULTATION)
    is_emergency = models.BooleanField(default=False)
    status = models.CharField(
        max_length=16, choices=AppointmentStatus.choices, default=AppointmentStatus.SCHEDULED, db_index=True
    )

    reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "doctors_appointment"
        indexes = [
            models.Index(fields=["doctor", "appointment_date"]),
            models.Index(fields=["patient", "appointment_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.appointment_id} {self.appointment_date} {self.appointment_time:%H:%M}"
