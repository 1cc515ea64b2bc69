# hms_core/patients/admin.py
from django.contrib import admin

from hms_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ("uhid", "name", "phone", "gender", "age", "admission_type", "status", "created_at")
    list_filter = ("status", "admission_type", "gender", "is_critical")
    search_fields = ("uhid", "name", "phone", "email")
    readonly_fields = ("uhid", "created_at", "updated_at")
    ordering = ("-created_at",)
