# hms_core/patients/selectors.py
from __future__ import annotations

from django.db.models import Q, QuerySet

from hms_core.patients.models import Patient


def search_patients(*, q: str = "", status: str | None = None) -> QuerySet[Patient]:
    qs = Patient.objects.all()

    if status:
        qs = qs.filter(status=status)

    q = (q or "").strip()
    if q:
        qs = qs.filter(
            Q(name__icontains=q)
            | Q(uhid__icontains=q)
            | Q(phone__icontains=q)
            | Q(email__icontains=q)
        )

    return qs.order_by("-created_at")


def get_patient_by_uhid(uhid: str) -> Patient:
    return Patient.objects.get(uhid__iexact=(uhid or "").strip())


def patient_summary(patient: Patient) -> dict:
    """
    Everything recorded against a patient, newest first. Related rows are reached through
    reverse relations so this module stays free of imports from downstream apps.
    """
    allocations = patient.bed_allocations.select_related("bed", "doctor").order_by("-admission_date")
    return {
        "patient": patient,
        "current_allocation": allocations.filter(status="active").first(),
        "bed_allocations": allocations,
        "prescriptions": patient.prescriptions.select_related("doctor").prefetch_related("items__medication")
        .order_by("-issue_date", "-created_at"),
        "revisits": patient.revisits.select_related("doctor").order_by("-visit_date", "-visit_time"),
        "pharmacy_bills": patient.pharmacy_bills.prefetch_related("items").order_by("-created_at"),
    }
