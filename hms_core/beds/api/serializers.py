# hms_core/beds/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hms_core.beds.models import AdmissionType, Bed, BedAllocation, BedStatus, BedType
from hms_core.beds.selectors import display_status
from hms_core.doctors.api.serializers import DoctorMiniSerializer
from hms_core.patients.api.serializers import PatientMiniSerializer


class BedWriteSerializer(serializers.Serializer):
    bed_number = serializers.CharField(max_length=32, required=False)
    room_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    floor_number = serializers.IntegerField(required=False)
    bed_type = serializers.ChoiceField(choices=BedType.choices, required=False)
    daily_rate = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    department = serializers.CharField(max_length=128, required=False, allow_blank=True)
    features = serializers.ListField(child=serializers.CharField(max_length=64), required=False)
    status = serializers.ChoiceField(choices=BedStatus.choices, required=False)

    def validate(self, attrs):
        if self.partial:
            if not attrs:
                raise serializers.ValidationError("At least one field is required.")
            return attrs
        if not (attrs.get("bed_number") or "").strip():
            raise serializers.ValidationError({"bed_number": "This field is required."})
        return attrs


class BedMiniSerializer(serializers.ModelSerializer):
    class Meta:
        model = Bed
        fields = ["id", "bed_number", "room_number", "floor_number", "bed_type", "daily_rate", "department"]
        read_only_fields = fields


class BedAllocationSerializer(serializers.ModelSerializer):
    bed = BedMiniSerializer(read_only=True)
    patient = PatientMiniSerializer(read_only=True)
    doctor = DoctorMiniSerializer(read_only=True)
    length_of_stay_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = BedAllocation
        fields = [
            "id",
            "allocation_number",
            "ip_number",
            "bed",
            "patient",
            "doctor",
            "admission_date",
            "discharge_date",
            "admission_type",
            "admission_category",
            "reason",
            "status",
            "transfer_reason",
            "discharge_notes",
            "length_of_stay_days",
            "allocated_by",
            "created_at",
        ]
        read_only_fields = fields


class ActiveAllocationSerializer(serializers.ModelSerializer):
    patient = PatientMiniSerializer(read_only=True)
    doctor = DoctorMiniSerializer(read_only=True)

    class Meta:
        model = BedAllocation
        fields = ["id", "allocation_number", "ip_number", "patient", "doctor", "admission_date", "admission_type"]
        read_only_fields = fields


class BedSerializer(serializers.ModelSerializer):
    display_status = serializers.SerializerMethodField()
    active_allocation = serializers.SerializerMethodField()

    class Meta:
        model = Bed
        fields = [
            "id",
            "bed_number",
            "room_number",
            "floor_number",
            "bed_type",
            "daily_rate",
            "department",
            "features",
            "status",
            "display_status",
            "active_allocation",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def _active(self, obj: Bed):
        prefetched = getattr(obj, "active_allocations", None)
        if prefetched is not None:
            return prefetched[0] if prefetched else None
        return obj.allocations.filter(status="active").select_related("patient", "doctor").first()

    def get_display_status(self, obj: Bed) -> str:
        annotated = getattr(obj, "display_status", None)
        if annotated:
            return annotated
        return display_status(obj.status, self._active(obj) is not None)

    def get_active_allocation(self, obj: Bed):
        active = self._active(obj)
        return ActiveAllocationSerializer(active).data if active else None


class AllocateSerializer(serializers.Serializer):
    bed = serializers.UUIDField()
    patient = serializers.UUIDField()
    doctor = serializers.UUIDField(required=False, allow_null=True)
    admission_date = serializers.DateTimeField(required=False, allow_null=True)
    admission_type = serializers.ChoiceField(choices=AdmissionType.choices, default=AdmissionType.INPATIENT)
    admission_category = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class DischargeSerializer(serializers.Serializer):
    discharge_date = serializers.DateTimeField(required=False, allow_null=True)
    discharge_notes = serializers.CharField(required=False, allow_blank=True, default="")


class TransferSerializer(serializers.Serializer):
    new_bed = serializers.UUIDField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BedStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    available = serializers.IntegerField()
    occupied = serializers.IntegerField()
    maintenance = serializers.IntegerField()
    reserved = serializers.IntegerField()
    occupancy_rate = serializers.FloatField()


class TypeOccupancySerializer(serializers.Serializer):
    bed_type = serializers.CharField()
    label = serializers.CharField()
    total = serializers.IntegerField()
    occupied = serializers.IntegerField()
    available = serializers.IntegerField()
    occupancy_rate = serializers.IntegerField()


class DepartmentOccupancySerializer(serializers.Serializer):
    department = serializers.CharField()
    total = serializers.IntegerField()
    occupied = serializers.IntegerField()
    available = serializers.IntegerField()


class OccupancySerializer(serializers.Serializer):
    by_type = TypeOccupancySerializer(many=True)
    by_department = DepartmentOccupancySerializer(many=True)
