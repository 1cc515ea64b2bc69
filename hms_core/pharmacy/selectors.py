# hms_core/pharmacy/selectors.py
from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from django.conf import settings
from django.db.models import F, Q, QuerySet
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.pharmacy.models import (
    DrugPurchase,
    DrugPurchaseItem,
    Medication,
    MedicationStatus,
    MedicineBatch,
    PharmacyBill,
    PharmacyBillItem,
    Supplier,
)


def list_medications(*, q: str = "", category: str | None = None, status: str | None = None) -> QuerySet[Medication]:
    qs = Medication.objects.all()
    if category:
        qs = qs.filter(category__iexact=category)
    if status:
        qs = qs.filter(status=status)

    q = (q or "").strip()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(generic_name__icontains=q) | Q(medication_code__icontains=q))
    return qs.order_by("name")


def search_medications(q: str, *, limit: int = 20) -> list[Medication]:
    """Active medications for billing and prescribing pickers; names starting with `q` first."""
    q = (q or "").strip()
    if not q:
        return []
    qs = list_medications(q=q, status=MedicationStatus.ACTIVE)
    matches = list(qs[: limit * 3])
    matches.sort(key=lambda m: (not m.name.lower().startswith(q.lower()), m.name.lower()))
    return matches[:limit]


def categories() -> list[str]:
    return list(
        Medication.objects.exclude(category="")
        .order_by("category")
        .values_list("category", flat=True)
        .distinct()
    )


def low_stock() -> QuerySet[Medication]:
    return (
        Medication.objects.filter(status=MedicationStatus.ACTIVE, available_stock__lte=F("minimum_stock_level"))
        .order_by("available_stock", "name")
    )


def batches_for(medication_id: UUID, *, include_empty: bool = True) -> QuerySet[MedicineBatch]:
    qs = MedicineBatch.objects.filter(medication_id=medication_id).select_related("supplier")
    if not include_empty:
        qs = qs.filter(current_quantity__gt=0)
    return qs.order_by("expiry_date", "batch_number")


def expiry_alerts(*, days: int | None = None, today: date | None = None) -> list[dict]:
    """Active batches with stock left that expire within `days` (already-expired ones included)."""
    today = today or timezone.localdate()
    days = settings.HMS_EXPIRY_ALERT_DAYS if days is None else days
    if days < 0:
        raise ValidationError({"days": "Must not be negative."})

    qs = (
        MedicineBatch.objects.select_related("medication")
        .filter(is_active=True, current_quantity__gt=0, expiry_date__lte=today + timedelta(days=days))
        .order_by("expiry_date", "medication__name")
    )
    out = []
    for batch in qs:
        remaining = (batch.expiry_date - today).days
        out.append(
            {
                "batch": batch,
                "medication": batch.medication,
                "days_to_expiry": remaining,
                "expired": remaining < 0,
            }
        )
    return out


def batch_sales_history(batch_number: str, *, medication_id: UUID | None = None) -> QuerySet[PharmacyBillItem]:
    batch_number = (batch_number or "").strip()
    if not batch_number:
        raise ValidationError({"batch_number": "This parameter is required."})

    qs = PharmacyBillItem.objects.select_related("bill", "medication").filter(batch_number=batch_number)
    if medication_id:
        qs = qs.filter(medication_id=medication_id)
    return qs.order_by("-bill__created_at")


def medication_purchase_history(medication_id: UUID) -> QuerySet[DrugPurchaseItem]:
    return (
        DrugPurchaseItem.objects.select_related("purchase", "purchase__supplier")
        .filter(medication_id=medication_id)
        .order_by("-purchase__purchase_date", "-created_at")
    )


def list_bills(
    *,
    patient_id: UUID | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    q: str = "",
) -> QuerySet[PharmacyBill]:
    qs = PharmacyBill.objects.select_related("patient").prefetch_related("items__medication")
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)
    if payment_status:
        qs = qs.filter(payment_status=payment_status)
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)

    q = (q or "").strip()
    if q:
        qs = qs.filter(
            Q(bill_number__icontains=q)
            | Q(customer_name__icontains=q)
            | Q(customer_phone__icontains=q)
            | Q(patient__uhid__icontains=q)
        )
    return qs.order_by("-created_at")


def list_purchases(*, supplier_id: UUID | None = None, status: str | None = None) -> QuerySet[DrugPurchase]:
    qs = DrugPurchase.objects.select_related("supplier").prefetch_related("items__medication")
    if supplier_id:
        qs = qs.filter(supplier_id=supplier_id)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-purchase_date", "-created_at")


def search_purchases(bill_number: str) -> QuerySet[DrugPurchase]:
    """Supplier invoice number or our purchase number."""
    term = (bill_number or "").strip()
    if not term:
        raise ValidationError({"bill_number": "This parameter is required."})
    return list_purchases().filter(Q(invoice_number__icontains=term) | Q(purchase_number__icontains=term))


def list_suppliers(*, q: str = "", is_active: bool | None = None) -> QuerySet[Supplier]:
    qs = Supplier.objects.all()
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    q = (q or "").strip()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(supplier_code__icontains=q) | Q(phone__icontains=q))
    return qs.order_by("name")
