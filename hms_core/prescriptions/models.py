# hms_core/prescriptions/models.py
from __future__ import annotations

from django.db import models
from django.utils import timezone

from hms_core.common.models import UUIDModel
from hms_core.doctors.models import Appointment, Doctor
from hms_core.patients.models import Patient
from hms_core.pharmacy.models import Medication


class PrescriptionStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class Prescription(UUIDModel):
    prescription_id = models.CharField(max_length=32, unique=True)

    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="prescriptions")
    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name="prescriptions")
    appointment = models.ForeignKey(
        Appointment,
        on_delete=models.SET_NULL,
        related_name="prescriptions",
        null=True,
        blank=True,
    )

    issue_date = models.DateField(default=timezone.localdate, db_index=True)
    instructions = models.TextField(blank=True)
    status = models.CharField(
        max_length=16, choices=PrescriptionStatus.choices, default=PrescriptionStatus.ACTIVE, db_index=True
    )

    class Meta:
        db_table = "prescriptions"

    def __str__(self) -> str:
        return self.prescription_id


class ItemStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    DISPENSED = "dispensed", "Dispensed"


class PrescriptionItem(UUIDModel):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name="items")
    medication = models.ForeignKey(Medication, on_delete=models.PROTECT, related_name="prescription_items")

    quantity = models.PositiveIntegerField()
    dosage = models.CharField(max_length=64, blank=True)
    frequency = models.CharField(max_length=64, blank=True)
    duration = models.CharField(max_length=64, blank=True)
    instructions = models.TextField(blank=True)

    status = models.CharField(max_length=16, choices=ItemStatus.choices, default=ItemStatus.PENDING)
    dispensed_quantity = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "prescription_items"
