# hms_core/beds/selectors.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from django.db.models import Case, CharField, Count, Exists, F, OuterRef, Prefetch, Q, QuerySet, Value, When

from hms_core.beds.models import AllocationStatus, Bed, BedAllocation, BedStatus, BedType


def display_status(stored_status: str, has_active_allocation: bool) -> str:
    """An "occupied" bed nobody is allocated to is shown as available. Stored data is untouched."""
    if stored_status == BedStatus.OCCUPIED and not has_active_allocation:
        return BedStatus.AVAILABLE
    return stored_status


def _active_allocations() -> QuerySet[BedAllocation]:
    return BedAllocation.objects.filter(status=AllocationStatus.ACTIVE)


def beds_with_display_status() -> QuerySet[Bed]:
    """
    Beds annotated with `has_active_allocation` and `display_status`; the current
    allocation (if any) is prefetched into `active_allocations`.
    """
    active = _active_allocations().filter(bed_id=OuterRef("pk"))
    return (
        Bed.objects.annotate(has_active_allocation=Exists(active))
        .annotate(
            display_status=Case(
                When(status=BedStatus.OCCUPIED, has_active_allocation=False, then=Value(BedStatus.AVAILABLE.value)),
                default=F("status"),
                output_field=CharField(),
            )
        )
        .prefetch_related(
            Prefetch(
                "allocations",
                queryset=_active_allocations().select_related("patient", "doctor"),
                to_attr="active_allocations",
            )
        )
    )


def list_beds(
    *,
    status: str | None = None,
    bed_type: str | None = None,
    department: str | None = None,
    floor: int | None = None,
) -> QuerySet[Bed]:
    qs = beds_with_display_status()

    if status:
        qs = qs.filter(display_status=status)
    if bed_type:
        qs = qs.filter(bed_type=bed_type)
    if department:
        qs = qs.filter(department__iexact=department)
    if floor is not None:
        qs = qs.filter(floor_number=floor)

    return qs.order_by("bed_number")


def available_beds(*, bed_type: str | None = None) -> QuerySet[Bed]:
    return list_beds(status=BedStatus.AVAILABLE, bed_type=bed_type)


def patient_bed_history(patient_id: UUID) -> QuerySet[BedAllocation]:
    return (
        BedAllocation.objects.filter(patient_id=patient_id)
        .select_related("bed", "doctor", "patient")
        .order_by("-admission_date")
    )


def list_allocations(*, status: str | None = None, bed_id: UUID | None = None) -> QuerySet[BedAllocation]:
    qs = BedAllocation.objects.select_related("bed", "patient", "doctor")
    if status:
        qs = qs.filter(status=status)
    if bed_id:
        qs = qs.filter(bed_id=bed_id)
    return qs.order_by("-admission_date")


def occupancy_rate(occupied: int, total: int, *, places: int = 1) -> float:
    if not total:
        return 0.0
    exp = Decimal(1).scaleb(-places)
    return float((Decimal(occupied) * 100 / Decimal(total)).quantize(exp, rounding=ROUND_HALF_UP))


def bed_stats() -> dict:
    counts = {r["status"]: r["n"] for r in Bed.objects.values("status").annotate(n=Count("id")).order_by()}
    total = sum(counts.values())

    out = {"total": total}
    for value in BedStatus.values:
        out[value] = counts.get(value, 0)
    out["occupancy_rate"] = occupancy_rate(out[BedStatus.OCCUPIED], total)
    return out


def occupancy_by_type() -> list[dict]:
    """Per bed type: beds, active allocations and a whole-number occupancy percentage."""
    occupied_q = Q(allocations__status=AllocationStatus.ACTIVE)
    rows = (
        Bed.objects.values("bed_type")
        .annotate(total=Count("id", distinct=True), occupied=Count("allocations", filter=occupied_q, distinct=True))
        .order_by("bed_type")
    )
    labels = dict(BedType.choices)

    out = []
    for r in rows:
        out.append(
            {
                "bed_type": r["bed_type"],
                "label": labels.get(r["bed_type"], r["bed_type"]),
                "total": r["total"],
                "occupied": r["occupied"],
                "available": max(r["total"] - r["occupied"], 0),
                "occupancy_rate": int(occupancy_rate(r["occupied"], r["total"], places=0)),
            }
        )
    return out


def department_status() -> list[dict]:
    occupied_q = Q(allocations__status=AllocationStatus.ACTIVE)
    rows = (
        Bed.objects.values("department")
        .annotate(total=Count("id", distinct=True), occupied=Count("allocations", filter=occupied_q, distinct=True))
        .order_by("department")
    )
    return [
        {
            "department": r["department"] or "General",
            "total": r["total"],
            "occupied": r["occupied"],
            "available": max(r["total"] - r["occupied"], 0),
        }
        for r in rows
    ]
