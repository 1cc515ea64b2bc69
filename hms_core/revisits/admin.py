# hms_core/revisits/admin.py
from django.contrib import admin

from hms_core.revisits.models import PatientRevisit


@admin.register(PatientRevisit)
class PatientRevisitAdmin(admin.ModelAdmin):
    list_display = ("uhid", "patient", "visit_date", "visit_time", "department", "visit_type", "payment_status")
    list_filter = ("visit_type", "payment_status", "visit_date")
    search_fields = ("uhid", "patient__name", "department")
    raw_id_fields = ("patient", "doctor", "staff")
