# hms_core/patients/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.patients.models import AdmissionType, Gender, Patient, PatientStatus


class PatientCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    gender = serializers.ChoiceField(choices=Gender.choices, required=False, allow_blank=True, default="")
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    address = serializers.CharField(required=False, allow_blank=True, default="")
    blood_group = serializers.CharField(max_length=8, required=False, allow_blank=True, default="")
    allergies = serializers.CharField(required=False, allow_blank=True, default="")
    medical_history = serializers.CharField(required=False, allow_blank=True, default="")
    emergency_contact_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    emergency_contact_phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    is_critical = serializers.BooleanField(required=False, default=False)

    # Optional: quote registration charges alongside the new record
    admission_type = serializers.ChoiceField(
        choices=AdmissionType.choices, required=False, default=AdmissionType.OUTPATIENT
    )
    doctor = serializers.UUIDField(required=False, allow_null=True)
    bed = serializers.UUIDField(required=False, allow_null=True)

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Name is required.")
        return value


class PatientUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH). UHID is not updatable.
    """
    name = serializers.CharField(max_length=255, required=False)
    gender = serializers.ChoiceField(choices=Gender.choices, required=False, allow_blank=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    blood_group = serializers.CharField(max_length=8, required=False, allow_blank=True)
    allergies = serializers.CharField(required=False, allow_blank=True)
    medical_history = serializers.CharField(required=False, allow_blank=True)
    emergency_contact_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    emergency_contact_phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    is_critical = serializers.BooleanField(required=False)
    status = serializers.ChoiceField(choices=PatientStatus.choices, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class RegistrationChargesRequestSerializer(serializers.Serializer):
    admission_type = serializers.ChoiceField(choices=AdmissionType.choices, default=AdmissionType.OUTPATIENT)
    doctor = serializers.UUIDField(required=False, allow_null=True)
    bed = serializers.UUIDField(required=False, allow_null=True)


class ChargeLineSerializer(serializers.Serializer):
    item = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class RegistrationChargesSerializer(serializers.Serializer):
    registration_fee = serializers.DecimalField(max_digits=12, decimal_places=2)
    consultation_fee = serializers.DecimalField(max_digits=12, decimal_places=2)
    bed_charges = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    breakdown = ChargeLineSerializer(many=True)


class PatientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = [
            "id",
            "uhid",
            "name",
            "gender",
            "date_of_birth",
            "age",
            "phone",
            "email",
            "address",
            "blood_group",
            "allergies",
            "medical_history",
            "emergency_contact_name",
            "emergency_contact_phone",
            "admission_type",
            "is_critical",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PatientMiniSerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = ["id", "uhid", "name", "phone", "gender", "age"]
        read_only_fields = fields
