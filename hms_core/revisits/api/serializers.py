# hms_core/revisits/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.doctors.api.serializers import DoctorMiniSerializer
from hms_core.patients.api.serializers import PatientMiniSerializer
from hms_core.revisits.models import PatientRevisit, RevisitPaymentStatus, VisitType


class RevisitWriteSerializer(serializers.Serializer):
    patient = serializers.UUIDField(required=False)
    visit_date = serializers.DateField(required=False)
    visit_time = serializers.TimeField(required=False)
    department = serializers.CharField(max_length=128, required=False, allow_blank=True)
    doctor = serializers.UUIDField(required=False, allow_null=True)
    reason_for_visit = serializers.CharField(required=False, allow_blank=True)
    symptoms = serializers.CharField(required=False, allow_blank=True)
    previous_diagnosis = serializers.CharField(required=False, allow_blank=True)
    current_diagnosis = serializers.CharField(required=False, allow_blank=True)
    consultation_fee = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    payment_mode = serializers.CharField(max_length=16, required=False, allow_blank=True)
    payment_status = serializers.ChoiceField(choices=RevisitPaymentStatus.choices, required=False)
    visit_type = serializers.ChoiceField(choices=VisitType.choices, required=False)
    staff = serializers.UUIDField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if self.partial:
            if not attrs:
                raise serializers.ValidationError("At least one field is required.")
            if "patient" in attrs:
                raise serializers.ValidationError({"patient": "A revisit cannot be moved to another patient."})
            return attrs
        if not attrs.get("patient"):
            raise serializers.ValidationError({"patient": "This field is required."})
        return attrs


class PatientRevisitSerializer(serializers.ModelSerializer):
    patient = PatientMiniSerializer(read_only=True)
    doctor = DoctorMiniSerializer(read_only=True)
    staff_name = serializers.SerializerMethodField()

    class Meta:
        model = PatientRevisit
        fields = [
            "id",
            "patient",
            "uhid",
            "visit_date",
            "visit_time",
            "department",
            "doctor",
            "reason_for_visit",
            "symptoms",
            "previous_diagnosis",
            "current_diagnosis",
            "consultation_fee",
            "payment_mode",
            "payment_status",
            "visit_type",
            "staff",
            "staff_name",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_staff_name(self, obj: PatientRevisit) -> str | None:
        return obj.staff.full_name if obj.staff_id else None


class RevisitStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    today = serializers.IntegerField()
    this_month = serializers.IntegerField()


class PatientLookupSerializer(serializers.Serializer):
    patient = PatientMiniSerializer()
    last_visit = PatientRevisitSerializer(allow_null=True)
    total_visits = serializers.IntegerField()
