# hms_core/doctors/admin.py
from django.contrib import admin

from hms_core.doctors.models import Appointment, Doctor


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ("doctor_id", "name", "specialization", "department", "consultation_fee", "status")
    list_filter = ("status", "specialization")
    search_fields = ("doctor_id", "name", "email", "license_number")
    readonly_fields = ("doctor_id", "created_at", "updated_at")


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ("appointment_id", "appointment_date", "appointment_time", "doctor", "patient", "type", "status")
    list_filter = ("status", "type", "is_emergency", "appointment_date")
    search_fields = ("appointment_id", "patient__uhid", "patient__name", "doctor__name")
    raw_id_fields = ("patient", "doctor")
    ordering = ("-appointment_date", "-appointment_time")
