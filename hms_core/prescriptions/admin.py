# hms_core/prescriptions/admin.py
from django.contrib import admin

from hms_core.prescriptions.models import Prescription, PrescriptionItem


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0
    raw_id_fields = ("medication",)
    readonly_fields = ("dispensed_quantity",)


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ("prescription_id", "patient", "doctor", "issue_date", "status")
    list_filter = ("status", "issue_date")
    search_fields = ("prescription_id", "patient__uhid", "patient__name", "doctor__name")
    raw_id_fields = ("patient", "doctor", "appointment")
    inlines = [PrescriptionItemInline]
