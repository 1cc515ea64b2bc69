# hms_core/revisits/models.py
from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from hms_core.common.models import UUIDModel
from hms_core.doctors.models import Doctor
from hms_core.patients.models import Patient
from hms_core.staff.models import Staff


class VisitType(models.TextChoices):
    FOLLOW_UP = "follow_up", "Follow Up"
    REVIEW = "review", "Review"
    EMERGENCY = "emergency", "Emergency"


class RevisitPaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"


def _now_time():
    return timezone.localtime().time().replace(microsecond=0)


class PatientRevisit(UUIDModel):
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="revisits")
    # copied from the patient at creation for UHID lookups without a join
    uhid = models.CharField(max_length=32, db_index=True)

    visit_date = models.DateField(default=timezone.localdate, db_index=True)
    visit_time = models.TimeField(default=_now_time)

    department = models.CharField(max_length=128, blank=True)
    doctor = models.ForeignKey(
        Doctor,
        on_delete=models.SET_NULL,
        related_name="revisits",
        null=True,
        blank=True,
    )
    reason_for_visit = models.TextField(blank=True)
    symptoms = models.TextField(blank=True)
    previous_diagnosis = models.TextField(blank=True)
    current_diagnosis = models.TextField(blank=True)

    consultation_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    payment_mode = models.CharField(max_length=16, blank=True)
    payment_status = models.CharField(
        max_length=16, choices=RevisitPaymentStatus.choices, default=RevisitPaymentStatus.PENDING
    )
    visit_type = models.CharField(max_length=16, choices=VisitType.choices, default=VisitType.FOLLOW_UP)

    staff = models.ForeignKey(
        Staff,
        on_delete=models.SET_NULL,
        related_name="revisits",
        null=True,
        blank=True,
    )
    notes = models.TextField(blank=True)

    class Meta:
        db_table = "patient_revisits"

    def __str__(self) -> str:
        return f"{self.uhid} {self.visit_date}"
