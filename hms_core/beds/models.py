# hms_core/beds/models.py
from __future__ import annotations

import math
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from hms_core.common.models import UUIDModel
from hms_core.doctors.models import Doctor
from hms_core.patients.models import Patient


class BedType(models.TextChoices):
    GENERAL = "general", "General"
    PRIVATE = "private", "Private"
    SEMI_PRIVATE = "semi_private", "Semi Private"
    ICU = "icu", "ICU"
    NICU = "nicu", "NICU"
    EMERGENCY = "emergency", "Emergency"
    MATERNITY = "maternity", "Maternity"


class BedStatus(models.TextChoices):
    AVAILABLE = "available", "Available"
    OCCUPIED = "occupied", "Occupied"
    MAINTENANCE = "maintenance", "Maintenance"
    RESERVED = "reserved", "Reserved"


class Bed(UUIDModel):
    bed_number = models.CharField(max_length=32, unique=True)
    room_number = models.CharField(max_length=32, blank=True)
    floor_number = models.SmallIntegerField(default=0)

    bed_type = models.CharField(max_length=16, choices=BedType.choices, default=BedType.GENERAL, db_index=True)
    daily_rate = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    department = models.CharField(max_length=128, blank=True)
    features = models.JSONField(default=list, blank=True)

    # Stored status. Reads go through selectors.display_status, which reports an
    # "occupied" bed without an active allocation as available.
    status = models.CharField(max_length=16, choices=BedStatus.choices, default=BedStatus.AVAILABLE, db_index=True)

    class Meta:
        db_table = "beds"
        ordering = ["bed_number"]

    def __str__(self) -> str:
        return f"{self.bed_number} ({self.get_bed_type_display()})"


class AllocationStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    DISCHARGED = "discharged", "Discharged"
    TRANSFERRED = "transferred", "Transferred"


class AdmissionType(models.TextChoices):
    EMERGENCY = "emergency", "Emergency"
    ELECTIVE = "elective", "Elective"
    SCHEDULED = "scheduled", "Scheduled"
    REFERRED = "referred", "Referred"
    TRANSFER = "transfer", "Transfer"
    INPATIENT = "inpatient", "Inpatient"
    OUTPATIENT = "outpatient", "Outpatient"


class BedAllocation(UUIDModel):
    allocation_number = models.CharField(max_length=32, unique=True)
    # shared by every allocation of one admission (survives transfers)
    ip_number = models.CharField(max_length=32, db_index=True)

    bed = models.ForeignKey(Bed, on_delete=models.PROTECT, related_name="allocations")
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="bed_allocations")
    doctor = models.ForeignKey(
        Doctor,
        on_delete=models.SET_NULL,
        related_name="bed_allocations",
        null=True,
        blank=True,
    )

    admission_date = models.DateTimeField(db_index=True)
    discharge_date = models.DateTimeField(null=True, blank=True)

    admission_type = models.CharField(max_length=16, choices=AdmissionType.choices, default=AdmissionType.INPATIENT)
    admission_category = models.CharField(max_length=64, blank=True)
    reason = models.TextField(blank=True)

    status = models.CharField(
        max_length=16, choices=AllocationStatus.choices, default=AllocationStatus.ACTIVE, db_index=True
    )
    transfer_reason = models.TextField(blank=True)
    discharge_notes = models.TextField(blank=True)

    allocated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="bed_allocations",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "bed_allocations"
        constraints = [
            models.UniqueConstraint(
                fields=["bed"],
                condition=Q(status="active"),
                name="uq_active_allocation_per_bed",
            ),
            models.UniqueConstraint(
                fields=["patient"],
                condition=Q(status="active"),
                name="uq_active_allocation_per_patient",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.allocation_number} {self.bed_id} -> {self.patient_id} ({self.status})"

    @property
    def length_of_stay_days(self) -> int:
        """Started days, never less than one."""
        end = self.discharge_date or timezone.now()
        return max(math.ceil((end - self.admission_date).total_seconds() / 86400), 1)
