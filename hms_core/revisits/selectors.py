# hms_core/revisits/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from hms_core.patients.models import Patient
from hms_core.revisits.models import PatientRevisit


def _base() -> QuerySet[PatientRevisit]:
    return PatientRevisit.objects.select_related("patient", "doctor", "staff")


def find_patient_by_uhid(uhid: str) -> Patient:
    uhid = (uhid or "").strip()
    return Patient.objects.get(uhid__iexact=uhid)


def list_revisits(*, patient_id: UUID | None = None, visit_type: str | None = None) -> QuerySet[PatientRevisit]:
    qs = _base()
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if visit_type:
        qs = qs.filter(visit_type=visit_type)
    return qs.order_by("-visit_date", "-visit_time")


def visit_history(patient_id: UUID, *, limit: int = 5) -> QuerySet[PatientRevisit]:
    return list_revisits(patient_id=patient_id)[:limit]


def recent_revisits(*, limit: int = 20) -> QuerySet[PatientRevisit]:
    return _base().order_by("-created_at")[:limit]


def revisit_stats() -> dict:
    today = timezone.localdate()
    return PatientRevisit.objects.aggregate(
        total=Count("id"),
        today=Count("id", filter=Q(visit_date=today)),
        this_month=Count("id", filter=Q(visit_date__year=today.year, visit_date__month=today.month)),
    )
