# hms_core/dashboard/selectors.py
from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count, Q, Sum
from django.utils import timezone

from hms_core.beds.models import AdmissionType, AllocationStatus, Bed, BedAllocation, BedStatus
from hms_core.beds.selectors import beds_with_display_status, department_status, occupancy_by_type, occupancy_rate
from hms_core.common.money import ZERO, q2
from hms_core.doctors.models import Appointment, AppointmentStatus, Doctor, DoctorStatus
from hms_core.patients.models import AdmissionType as PatientAdmissionType
from hms_core.patients.models import Patient, PatientStatus
from hms_core.pharmacy.models import BillStatus, PaymentStatus, PharmacyBill
from hms_core.pharmacy.selectors import low_stock
from hms_core.prescriptions.selectors import pending_dispense_count
from hms_core.staff.models import ScheduleStatus, Staff, StaffSchedule

SECTIONS = (
    "stats",
    "recent_appointments",
    "recent_patients",
    "bed_status",
    "department_status",
    "quick_stats",
    "trends",
)


def percentage_change(current, previous) -> str:
    """Signed change to one decimal, e.g. "+12.5%". A zero baseline reports "+0%"."""
    if not previous:
        return "+0%"
    change = (Decimal(str(current)) - Decimal(str(previous))) * 100 / Decimal(str(previous))
    change = change.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if change == 0:
        change = abs(change)
    sign = "+" if change >= 0 else ""
    return f"{sign}{change}%"


def trend(current, previous) -> str:
    if current > previous:
        return "up"
    if current < previous:
        return "down"
    return "stable"


def _active_allocations():
    return BedAllocation.objects.filter(status=AllocationStatus.ACTIVE, discharge_date__isnull=True)


def _revenue(qs) -> Decimal:
    return q2(qs.aggregate(total=Sum("total_amount"))["total"] or ZERO)


def _completed_bills():
    return PharmacyBill.objects.filter(status=BillStatus.COMPLETED)


def revenue_on(day: date) -> Decimal:
    return _revenue(_completed_bills().filter(created_at__date=day))


def dashboard_stats(*, today: date | None = None) -> dict:
    today = today or timezone.localdate()

    patients = Patient.objects.aggregate(
        total=Count("id"),
        outpatient=Count("id", filter=Q(admission_type=PatientAdmissionType.OUTPATIENT)),
        critical=Count("id", filter=Q(is_critical=True, status=PatientStatus.ACTIVE)),
    )
    appointments = Appointment.objects.aggregate(
        total=Count("id"),
        today=Count("id", filter=Q(appointment_date=today)),
        upcoming=Count(
            "id",
            filter=Q(
                appointment_date__gt=today,
                status__in=[AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED],
            ),
        ),
        completed=Count("id", filter=Q(status=AppointmentStatus.COMPLETED)),
        cancelled=Count("id", filter=Q(status=AppointmentStatus.CANCELLED)),
    )
    doctors = Doctor.objects.aggregate(
        total=Count("id"),
        available=Count("id", filter=Q(status=DoctorStatus.ACTIVE)),
    )

    active = _active_allocations()
    total_beds = Bed.objects.count()
    occupied_beds = active.values("bed_id").distinct().count()
    available_beds = beds_with_display_status().filter(display_status=BedStatus.AVAILABLE).count()

    month_bills = _completed_bills().filter(created_at__year=today.year, created_at__month=today.month)

    return {
        "total_patients": patients["total"],
        "outpatient_patients": patients["outpatient"],
        "admitted_patients": active.values("patient_id").distinct().count(),
        "total_appointments": appointments["total"],
        "today_appointments": appointments["today"],
        "upcoming_appointments": appointments["upcoming"],
        "completed_appointments": appointments["completed"],
        "cancelled_appointments": appointments["cancelled"],
        "total_doctors": doctors["total"],
        "available_doctors": doctors["available"],
        "total_beds": total_beds,
        "occupied_beds": occupied_beds,
        "available_beds": available_beds,
        "bed_occupancy_rate": int(occupancy_rate(occupied_beds, total_beds, places=0)),
        "critical_patients": patients["critical"],
        "emergency_admissions": BedAllocation.objects.filter(
            admission_type=AdmissionType.EMERGENCY, admission_date__date=today
        ).count(),
        "total_staff": Staff.objects.filter(is_active=True).count(),
        "pending_bills": _completed_bills().filter(payment_status=PaymentStatus.PENDING).count(),
        "revenue_today": revenue_on(today),
        "revenue_month": _revenue(month_bills),
    }


def recent_appointments(*, limit: int = 5, today: date | None = None) -> list[dict]:
    """Today's appointments in time order."""
    today = today or timezone.localdate()
    qs = (
        Appointment.objects.filter(appointment_date=today)
        .select_related("patient", "doctor")
        .order_by("appointment_time")[:limit]
    )
    return [
        {
            "id": a.id,
            "patient_name": a.patient.name,
            "patient_initials": a.patient.initials,
            "appointment_date": a.appointment_date,
            "appointment_time": a.appointment_time,
            "type": a.get_type_display(),
            "status": a.status,
            "doctor_name": a.doctor.name,
        }
        for a in qs
    ]


def recent_patients(*, limit: int = 4) -> list[dict]:
    qs = Patient.objects.filter(status=PatientStatus.ACTIVE).order_by("-created_at")[:limit]
    return [
        {
            "id": p.id,
            "uhid": p.uhid,
            "name": p.name,
            "status": p.status,
            "condition": "Critical" if p.is_critical else p.get_admission_type_display(),
            "registered_at": p.created_at,
        }
        for p in qs
    ]


def quick_stats(*, today: date | None = None) -> dict:
    today = today or timezone.localdate()
    on_duty = (
        StaffSchedule.objects.filter(date=today, staff__is_active=True)
        .exclude(status=ScheduleStatus.CANCELLED)
        .values("staff_id")
        .distinct()
        .count()
    )
    return {
        "staff_on_duty": on_duty,
        "medicine_requests": pending_dispense_count(),
        "discharge_today": BedAllocation.objects.filter(
            status=AllocationStatus.DISCHARGED, discharge_date__date=today
        ).count(),
        "low_stock_medications": low_stock().count(),
    }


def day_over_day(*, today: date | None = None) -> list[dict]:
    """Today against yesterday for appointments, registrations and pharmacy revenue."""
    today = today or timezone.localdate()
    yesterday = today - timedelta(days=1)

    pairs = {
        "appointments": (
            Appointment.objects.filter(appointment_date=today).count(),
            Appointment.objects.filter(appointment_date=yesterday).count(),
        ),
        "registrations": (
            Patient.objects.filter(created_at__date=today).count(),
            Patient.objects.filter(created_at__date=yesterday).count(),
        ),
        "revenue": (revenue_on(today), revenue_on(yesterday)),
    }
    return [
        {
            "metric": metric,
            "current": current,
            "previous": previous,
            "change": percentage_change(current, previous),
            "trend": trend(current, previous),
        }
        for metric, (current, previous) in pairs.items()
    ]


def section(name: str, *, today: date | None = None):
    if name == "stats":
        return dashboard_stats(today=today)
    if name == "recent_appointments":
        return recent_appointments(today=today)
    if name == "recent_patients":
        return recent_patients()
    if name == "bed_status":
        return occupancy_by_type()
    if name == "department_status":
        return department_status()
    if name == "quick_stats":
        return quick_stats(today=today)
    if name == "trends":
        return day_over_day(today=today)
    raise KeyError(name)


def dashboard_data(*, today: date | None = None) -> dict:
    today = today or timezone.localdate()
    return {name: section(name, today=today) for name in SECTIONS}
