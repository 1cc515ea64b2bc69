# hms_core/prescriptions/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.doctors.api.serializers import DoctorMiniSerializer
from hms_core.patients.api.serializers import PatientMiniSerializer
from hms_core.pharmacy.api.serializers import MedicationMiniSerializer
from hms_core.prescriptions.models import Prescription, PrescriptionItem, PrescriptionStatus


class PrescriptionItemInputSerializer(serializers.Serializer):
    medication = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    dosage = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    frequency = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    duration = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    instructions = serializers.CharField(required=False, allow_blank=True, default="")


class PrescriptionCreateSerializer(serializers.Serializer):
    patient = serializers.UUIDField()
    doctor = serializers.UUIDField()
    appointment = serializers.UUIDField(required=False, allow_null=True)
    issue_date = serializers.DateField(required=False, allow_null=True)
    instructions = serializers.CharField(required=False, allow_blank=True, default="")
    items = PrescriptionItemInputSerializer(many=True, allow_empty=False)


class PrescriptionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PrescriptionStatus.choices)


class PrescriptionMedicinesSerializer(serializers.Serializer):
    items = PrescriptionItemInputSerializer(many=True, allow_empty=False)


class PrescriptionItemSerializer(serializers.ModelSerializer):
    medication = MedicationMiniSerializer(read_only=True)

    class Meta:
        model = PrescriptionItem
        fields = [
            "id",
            "medication",
            "quantity",
            "dosage",
            "frequency",
            "duration",
            "instructions",
            "status",
            "dispensed_quantity",
        ]
        read_only_fields = fields


class PrescriptionSerializer(serializers.ModelSerializer):
    patient = PatientMiniSerializer(read_only=True)
    doctor = DoctorMiniSerializer(read_only=True)
    items = PrescriptionItemSerializer(many=True, read_only=True)

    class Meta:
        model = Prescription
        fields = [
            "id",
            "prescription_id",
            "patient",
            "doctor",
            "appointment",
            "issue_date",
            "instructions",
            "status",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PrescriptionStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    active = serializers.IntegerField()
    completed = serializers.IntegerField()
    today = serializers.IntegerField()
