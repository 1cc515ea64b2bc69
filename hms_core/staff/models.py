# hms_core/staff/models.py
from __future__ import annotations

from django.conf import settings
from django.db import models

from hms_core.common.models import UUIDModel


class DepartmentStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Department(UUIDModel):
    name = models.CharField(max_length=128, unique=True)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=DepartmentStatus.choices, default=DepartmentStatus.ACTIVE)

    class Meta:
        db_table = "staff_department"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Staff(UUIDModel):
    employee_id = models.CharField(max_length=32, unique=True)

    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)

    # free text (nurse, technician, pharmacist, ...); distinct values feed the role picker
    role = models.CharField(max_length=64, db_index=True)
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        related_name="staff_members",
        null=True,
        blank=True,
    )
    specialization = models.CharField(max_length=128, blank=True)
    hire_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="staff_profile",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "staff"
        ordering = ["first_name", "last_name"]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.employee_id})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ShiftType(models.TextChoices):
    MORNING = "morning", "Morning"
    EVENING = "evening", "Evening"
    NIGHT = "night", "Night"


class ScheduleStatus(models.TextChoices):
    SCHEDULED = "scheduled", "Scheduled"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class StaffSchedule(UUIDModel):
    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name="schedules")
    date = models.DateField(db_index=True)
    shift_start = models.TimeField()
    shift_end = models.TimeField()
    shift_type = models.CharField(max_length=16, choices=ShiftType.choices, default=ShiftType.MORNING)
    status = models.CharField(max_length=16, choices=ScheduleStatus.choices, default=ScheduleStatus.SCHEDULED)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "staff_schedule"
        ordering = ["date", "shift_start"]
        indexes = [
            models.Index(fields=["staff", "date"]),
        ]
