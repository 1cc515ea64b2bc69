# hms_core/dashboard/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.beds.api.serializers import DepartmentOccupancySerializer, TypeOccupancySerializer


class DashboardStatsSerializer(serializers.Serializer):
    total_patients = serializers.IntegerField()
    outpatient_patients = serializers.IntegerField()
    admitted_patients = serializers.IntegerField()
    total_appointments = serializers.IntegerField()
    today_appointments = serializers.IntegerField()
    upcoming_appointments = serializers.IntegerField()
    completed_appointments = serializers.IntegerField()
    cancelled_appointments = serializers.IntegerField()
    total_doctors = serializers.IntegerField()
    available_doctors = serializers.IntegerField()
    total_beds = serializers.IntegerField()
    occupied_beds = serializers.IntegerField()
    available_beds = serializers.IntegerField()
    bed_occupancy_rate = serializers.IntegerField()
    critical_patients = serializers.IntegerField()
    emergency_admissions = serializers.IntegerField()
    total_staff = serializers.IntegerField()
    pending_bills = serializers.IntegerField()
    revenue_today = serializers.DecimalField(max_digits=14, decimal_places=2)
    revenue_month = serializers.DecimalField(max_digits=14, decimal_places=2)


class RecentAppointmentSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    patient_name = serializers.CharField()
    patient_initials = serializers.CharField()
    appointment_date = serializers.DateField()
    appointment_time = serializers.TimeField()
    type = serializers.CharField()
    status = serializers.CharField()
    doctor_name = serializers.CharField()


class RecentPatientSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    uhid = serializers.CharField()
    name = serializers.CharField()
    status = serializers.CharField()
    condition = serializers.CharField()
    registered_at = serializers.DateTimeField()


class QuickStatsSerializer(serializers.Serializer):
    staff_on_duty = serializers.IntegerField()
    medicine_requests = serializers.IntegerField()
    discharge_today = serializers.IntegerField()
    low_stock_medications = serializers.IntegerField()


class TrendSerializer(serializers.Serializer):
    metric = serializers.CharField()
    # counts for appointments/registrations, rupees for revenue
    current = serializers.DecimalField(max_digits=14, decimal_places=2, coerce_to_string=False)
    previous = serializers.DecimalField(max_digits=14, decimal_places=2, coerce_to_string=False)
    change = serializers.CharField()
    trend = serializers.ChoiceField(choices=["up", "down", "stable"])


class DashboardSerializer(serializers.Serializer):
    stats = DashboardStatsSerializer()
    recent_appointments = RecentAppointmentSerializer(many=True)
    recent_patients = RecentPatientSerializer(many=True)
    bed_status = TypeOccupancySerializer(many=True)
    department_status = DepartmentOccupancySerializer(many=True)
    quick_stats = QuickStatsSerializer()
    trends = TrendSerializer(many=True)


SECTION_SERIALIZERS = {
    "stats": DashboardStatsSerializer,
    "recent_appointments": lambda data: RecentAppointmentSerializer(data, many=True),
    "recent_patients": lambda data: RecentPatientSerializer(data, many=True),
    "bed_status": lambda data: TypeOccupancySerializer(data, many=True),
    "department_status": lambda data: DepartmentOccupancySerializer(data, many=True),
    "quick_stats": QuickStatsSerializer,
    "trends": lambda data: TrendSerializer(data, many=True),
}
