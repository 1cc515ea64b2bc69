# hms_core/staff/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.staff.models import Department, ScheduleStatus, ShiftType, Staff, StaffSchedule


class DepartmentSerializer(serializers.ModelSerializer):
    staff_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Department
        fields = ["id", "name", "description", "status", "staff_count", "created_at"]
        read_only_fields = fields


class DepartmentCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=128)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class StaffWriteSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=128, required=False)
    last_name = serializers.CharField(max_length=128, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    role = serializers.CharField(max_length=64, required=False)
    department = serializers.PrimaryKeyRelatedField(
        queryset=Department.objects.all(), required=False, allow_null=True
    )
    specialization = serializers.CharField(max_length=128, required=False, allow_blank=True)
    hire_date = serializers.DateField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if self.partial:
            if not attrs:
                raise serializers.ValidationError("At least one field is required.")
            return attrs

        missing = {f: "This field is required." for f in ("first_name", "role") if not attrs.get(f)}
        if missing:
            raise serializers.ValidationError(missing)
        return attrs


class StaffSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    department_name = serializers.CharField(source="department.name", read_only=True, default=None)

    class Meta:
        model = Staff
        fields = [
            "id",
            "employee_id",
            "first_name",
            "last_name",
            "full_name",
            "email",
            "phone",
            "role",
            "department",
            "department_name",
            "specialization",
            "hire_date",
            "is_active",
            "user",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BulkUpdateSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    data = serializers.DictField()

    def validate_data(self, value):
        if "department" in value and value["department"]:
            try:
                value["department"] = Department.objects.get(id=value["department"])
            except (Department.DoesNotExist, ValueError, TypeError):
                raise serializers.ValidationError({"department": "Unknown department."})
        return value


class BulkDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class BulkResultSerializer(serializers.Serializer):
    count = serializers.IntegerField()


class StaffStatsSerializer(serializers.Serializer):
    total_staff = serializers.IntegerField()
    active_staff = serializers.IntegerField()
    on_leave_staff = serializers.IntegerField()
    department_counts = serializers.DictField(child=serializers.IntegerField())
    role_counts = serializers.DictField(child=serializers.IntegerField())


class ScheduleCreateSerializer(serializers.Serializer):
    staff = serializers.UUIDField()
    date = serializers.DateField()
    shift_start = serializers.TimeField()
    shift_end = serializers.TimeField()
    shift_type = serializers.ChoiceField(choices=ShiftType.choices, default=ShiftType.MORNING)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ScheduleUpdateSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    shift_start = serializers.TimeField(required=False)
    shift_end = serializers.TimeField(required=False)
    shift_type = serializers.ChoiceField(choices=ShiftType.choices, required=False)
    status = serializers.ChoiceField(choices=ScheduleStatus.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class StaffScheduleSerializer(serializers.ModelSerializer):
    staff_name = serializers.CharField(source="staff.full_name", read_only=True)

    class Meta:
        model = StaffSchedule
        fields = [
            "id",
            "staff",
            "staff_name",
            "date",
            "shift_start",
            "shift_end",
            "shift_type",
            "status",
            "notes",
            "created_at",
        ]
        read_only_fields = fields
