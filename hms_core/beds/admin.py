# hms_core/beds/admin.py
from django.contrib import admin

from hms_core.beds.models import Bed, BedAllocation


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ("bed_number", "room_number", "floor_number", "bed_type", "daily_rate", "department", "status")
    list_filter = ("status", "bed_type", "floor_number")
    search_fields = ("bed_number", "room_number", "department")


@admin.register(BedAllocation)
class BedAllocationAdmin(admin.ModelAdmin):
    list_display = ("allocation_number", "ip_number", "bed", "patient", "admission_date", "discharge_date", "status")
    list_filter = ("status", "admission_type")
    search_fields = ("allocation_number", "ip_number", "patient__uhid", "patient__name", "bed__bed_number")
    raw_id_fields = ("bed", "patient", "doctor", "allocated_by")
    readonly_fields = ("allocation_number", "ip_number", "created_at", "updated_at")
