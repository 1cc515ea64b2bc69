# hms_core/staff/selectors.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from hms_core.staff.models import Department, Staff, StaffSchedule

UNASSIGNED = "Unassigned"


def list_staff(
    *,
    role: str | None = None,
    department_id: UUID | None = None,
    is_active: bool | None = None,
    q: str = "",
) -> QuerySet[Staff]:
    qs = Staff.objects.select_related("department")

    if role:
        qs = qs.filter(role__iexact=role)
    if department_id:
        qs = qs.filter(department_id=department_id)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)

    q = (q or "").strip()
    if q:
        qs = qs.filter(
            Q(first_name__icontains=q)
            | Q(last_name__icontains=q)
            | Q(employee_id__icontains=q)
            | Q(email__icontains=q)
            | Q(phone__icontains=q)
        )

    return qs.order_by("first_name", "last_name")


def staff_stats() -> dict:
    qs = Staff.objects.all()
    total = qs.count()
    active = qs.filter(is_active=True).count()

    department_counts: dict[str, int] = {}
    for row in qs.values("department__name").annotate(n=Count("id")).order_by("department__name"):
        name = row["department__name"] or UNASSIGNED
        department_counts[name] = department_counts.get(name, 0) + row["n"]

    role_counts = {
        row["role"]: row["n"]
        for row in qs.values("role").annotate(n=Count("id")).order_by("role")
    }

    return {
        "total_staff": total,
        "active_staff": active,
        # no leave register; inactive staff are reported as on leave
        "on_leave_staff": total - active,
        "department_counts": department_counts,
        "role_counts": role_counts,
    }


def distinct_roles() -> list[str]:
    roles = Staff.objects.exclude(role="").values_list("role", flat=True).distinct()
    return sorted(set(roles))


def list_departments(*, status: str | None = None) -> QuerySet[Department]:
    qs = Department.objects.annotate(staff_count=Count("staff_members"))
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("name")


def list_schedules(
    *,
    staff_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> QuerySet[StaffSchedule]:
    qs = StaffSchedule.objects.select_related("staff")

    if staff_id:
        qs = qs.filter(staff_id=staff_id)
    if date_from:
        qs = qs.filter(date__gte=date_from)
    if date_to:
        qs = qs.filter(date__lte=date_to)

    return qs.order_by("date", "shift_start")
