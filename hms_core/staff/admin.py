# hms_core/staff/admin.py
from django.contrib import admin

from hms_core.staff.models import Department, Staff, StaffSchedule


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("name", "status", "created_at")
    search_fields = ("name",)


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ("employee_id", "first_name", "last_name", "role", "department", "is_active")
    list_filter = ("is_active", "role", "department")
    search_fields = ("employee_id", "first_name", "last_name", "email", "phone")
    readonly_fields = ("employee_id", "created_at", "updated_at")


@admin.register(StaffSchedule)
class StaffScheduleAdmin(admin.ModelAdmin):
    list_display = ("staff", "date", "shift_type", "shift_start", "shift_end", "status")
    list_filter = ("shift_type", "status", "date")
