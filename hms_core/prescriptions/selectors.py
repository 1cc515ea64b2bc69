# hms_core/prescriptions/selectors.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from hms_core.pharmacy.models import Medication, MedicationStatus
from hms_core.prescriptions.models import ItemStatus, Prescription, PrescriptionStatus


def list_prescriptions(
    *,
    patient_id: UUID | None = None,
    doctor_id: UUID | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    q: str = "",
) -> QuerySet[Prescription]:
    qs = Prescription.objects.select_related("patient", "doctor").prefetch_related("items__medication")

    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)
    if status:
        qs = qs.filter(status=status)
    if date_from:
        qs = qs.filter(issue_date__gte=date_from)
    if date_to:
        qs = qs.filter(issue_date__lte=date_to)

    q = (q or "").strip()
    if q:
        qs = qs.filter(
            Q(prescription_id__icontains=q)
            | Q(patient__name__icontains=q)
            | Q(patient__uhid__icontains=q)
        )

    return qs.order_by("-issue_date", "-created_at")


def prescription_stats(*, doctor_id: UUID | None = None) -> dict:
    qs = Prescription.objects.all()
    if doctor_id:
        qs = qs.filter(doctor_id=doctor_id)

    return qs.aggregate(
        total=Count("id"),
        active=Count("id", filter=Q(status=PrescriptionStatus.ACTIVE)),
        completed=Count("id", filter=Q(status=PrescriptionStatus.COMPLETED)),
        today=Count("id", filter=Q(issue_date=timezone.localdate())),
    )


def medicine_search(q: str, *, limit: int = 20) -> QuerySet[Medication]:
    """Active medications for the prescribing form, in stock first."""
    qs = Medication.objects.filter(status=MedicationStatus.ACTIVE)
    q = (q or "").strip()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(generic_name__icontains=q) | Q(medication_code__icontains=q))
    return qs.order_by("-available_stock", "name")[:limit]


def pending_dispense_count() -> int:
    """Active prescriptions still waiting on at least one medicine."""
    return (
        Prescription.objects.filter(status=PrescriptionStatus.ACTIVE, items__status=ItemStatus.PENDING)
        .values("id")
        .distinct()
        .count()
    )
