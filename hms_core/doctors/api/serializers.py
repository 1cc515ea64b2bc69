# hms_core/doctors/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.doctors.models import Appointment, AppointmentType, Doctor, DoctorStatus
from hms_core.patients.api.serializers import PatientMiniSerializer


class DoctorWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    specialization = serializers.CharField(max_length=128, required=False)
    department = serializers.CharField(max_length=128, required=False, allow_blank=True)
    qualification = serializers.CharField(max_length=255, required=False, allow_blank=True)
    experience_years = serializers.IntegerField(required=False, min_value=0, max_value=80)
    consultation_fee = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    license_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    room_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    availability_hours = serializers.JSONField(required=False)
    status = serializers.ChoiceField(choices=DoctorStatus.choices, required=False)

    def validate(self, attrs):
        if self.partial:
            if not attrs:
                raise serializers.ValidationError("At least one field is required.")
            return attrs

        missing = {f: "This field is required." for f in ("name", "specialization") if not attrs.get(f)}
        if missing:
            raise serializers.ValidationError(missing)
        return attrs


class AvailabilitySerializer(serializers.Serializer):
    availability_hours = serializers.JSONField()


class DoctorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Doctor
        fields = [
            "id",
            "doctor_id",
            "user",
            "name",
            "email",
            "phone",
            "specialization",
            "department",
            "qualification",
            "experience_years",
            "consultation_fee",
            "license_number",
            "room_number",
            "availability_hours",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class DoctorMiniSerializer(serializers.ModelSerializer):
    class Meta:
        model = Doctor
        fields = ["id", "doctor_id", "name", "specialization", "department", "consultation_fee"]
        read_only_fields = fields


class SessionSlotsSerializer(serializers.Serializer):
    morning = serializers.ListField(child=serializers.CharField())
    afternoon = serializers.ListField(child=serializers.CharField())
    evening = serializers.ListField(child=serializers.CharField())


class DoctorWithSlotsSerializer(serializers.Serializer):
    doctor = DoctorMiniSerializer()
    slots = SessionSlotsSerializer()


class AppointmentStatsSerializer(serializers.Serializer):
    total_appointments = serializers.IntegerField()
    today_appointments = serializers.IntegerField()
    completed_appointments = serializers.IntegerField()
    pending_appointments = serializers.IntegerField()


class AppointmentRequestSerializer(serializers.Serializer):
    patient = serializers.UUIDField()
    doctor = serializers.UUIDField()
    appointment_date = serializers.DateField()
    appointment_time = serializers.TimeField()
    duration_minutes = serializers.IntegerField(required=False, default=30)
    type = serializers.ChoiceField(choices=AppointmentType.choices, default=AppointmentType.CONSULTATION)
    is_emergency = serializers.BooleanField(required=False, default=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AlternativeSlotsRequestSerializer(serializers.Serializer):
    doctor = serializers.UUIDField()
    patient = serializers.UUIDField(required=False, allow_null=True)
    appointment_date = serializers.DateField()
    duration_minutes = serializers.IntegerField(required=False, default=30)
    is_emergency = serializers.BooleanField(required=False, default=False)
    limit = serializers.IntegerField(required=False, default=5, min_value=1, max_value=20)


class AlternativeSlotSerializer(serializers.Serializer):
    date = serializers.DateField()
    time = serializers.CharField()
    doctor_id = serializers.UUIDField()
    doctor_name = serializers.CharField()
    specialization = serializers.CharField()


class ValidationResultSerializer(serializers.Serializer):
    is_valid = serializers.BooleanField()
    errors = serializers.ListField(child=serializers.CharField())
    warnings = serializers.ListField(child=serializers.CharField())


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class RescheduleSerializer(serializers.Serializer):
    appointment_date = serializers.DateField()
    appointment_time = serializers.TimeField()


class AppointmentSerializer(serializers.ModelSerializer):
    patient = PatientMiniSerializer(read_only=True)
    doctor = DoctorMiniSerializer(read_only=True)

    class Meta:
        model = Appointment
        fields = [
            "id",
            "appointment_id",
            "patient",
            "doctor",
            "appointment_date",
            "appointment_time",
            "duration_minutes",
            "type",
            "is_emergency",
            "status",
            "reason",
            "notes",
            "cancellation_reason",
            "checked_in_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
