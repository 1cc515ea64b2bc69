# hms_core/beds/services.py
from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.beds.models import AdmissionType, AllocationStatus, Bed, BedAllocation, BedStatus
from hms_core.beds.selectors import display_status
from hms_core.common.api.exceptions import ConflictError
from hms_core.common.numbering import next_sequence_number
from hms_core.doctors.models import Doctor
from hms_core.patients.models import AdmissionType as PatientAdmissionType
from hms_core.patients.models import Patient

logger = logging.getLogger(__name__)


def _has_active_allocation(bed: Bed) -> bool:
    return bed.allocations.filter(status=AllocationStatus.ACTIVE).exists()


def _ensure_bed_free(bed: Bed) -> None:
    """Bed must read as available (the occupied-without-allocation correction applies)."""
    active = _has_active_allocation(bed)
    if active or display_status(bed.status, active) != BedStatus.AVAILABLE:
        raise ConflictError(f"Bed {bed.bed_number} is not available.")


class BedService:
    UPDATABLE_FIELDS = {
        "bed_number",
        "room_number",
        "floor_number",
        "bed_type",
        "daily_rate",
        "department",
        "features",
        "status",
    }

    @staticmethod
    @transaction.atomic
    def create_bed(*, actor_user_id: int | None, bed_number: str, **fields) -> Bed:
        bed_number = bed_number.strip()
        if Bed.objects.filter(bed_number__iexact=bed_number).exists():
            raise ValidationError({"bed_number": f"Bed {bed_number} already exists."})

        fields = {k: v for k, v in fields.items() if k in BedService.UPDATABLE_FIELDS}
        bed = Bed.objects.create(bed_number=bed_number, **fields)

        AuditService.log(
            event_code="bed.created",
            entity_type="Bed",
            entity_id=bed.id,
            actor_user_id=actor_user_id,
            metadata={"bed_number": bed.bed_number},
        )
        return bed

    @staticmethod
    @transaction.atomic
    def update_bed(*, actor_user_id: int | None, bed_id: UUID, data: dict) -> Bed:
        bed = Bed.objects.select_for_update().get(id=bed_id)
        updates = {k: v for k, v in (data or {}).items() if k in BedService.UPDATABLE_FIELDS}

        new_number = updates.get("bed_number")
        if new_number and Bed.objects.filter(bed_number__iexact=new_number).exclude(id=bed.id).exists():
            raise ValidationError({"bed_number": f"Bed {new_number} already exists."})

        for k, v in updates.items():
            setattr(bed, k, v)
        bed.save()

        AuditService.log(
            event_code="bed.updated",
            entity_type="Bed",
            entity_id=bed.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return bed

    @staticmethod
    @transaction.atomic
    def delete_bed(*, actor_user_id: int | None, bed_id: UUID) -> None:
        bed = Bed.objects.select_for_update().get(id=bed_id)
        if _has_active_allocation(bed):
            raise ConflictError(f"Bed {bed.bed_number} has an active allocation.")
        if bed.allocations.exists():
            raise ConflictError(f"Bed {bed.bed_number} has allocation history; set it to maintenance instead.")

        AuditService.log(
            event_code="bed.deleted",
            entity_type="Bed",
            entity_id=bed.id,
            actor_user_id=actor_user_id,
            metadata={"bed_number": bed.bed_number},
        )
        bed.delete()


class AllocationService:
    @staticmethod
    def _next_allocation_number_locked() -> str:
        prefix = f"BA{timezone.localdate():%Y%m%d}"
        return next_sequence_number(model=BedAllocation, field="allocation_number", prefix=prefix, width=4)

    @staticmethod
    def _next_ip_number_locked() -> str:
        prefix = f"IP{timezone.localdate():%y%m}"
        return next_sequence_number(model=BedAllocation, field="ip_number", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def allocate(
        *,
        actor_user_id: int | None,
        bed_id: UUID,
        patient_id: UUID,
        doctor_id: UUID | None = None,
        admission_date: datetime | None = None,
        admission_type: str = AdmissionType.INPATIENT,
        admission_category: str = "",
        reason: str = "",
    ) -> BedAllocation:
        bed = Bed.objects.select_for_update().get(id=bed_id)
        patient = Patient.objects.select_for_update().get(id=patient_id)
        doctor = Doctor.objects.get(id=doctor_id) if doctor_id else None

        _ensure_bed_free(bed)
        if patient.bed_allocations.filter(status=AllocationStatus.ACTIVE).exists():
            raise ConflictError(f"Patient {patient.uhid} already has an active bed allocation.")

        try:
            # savepoint: the partial unique constraints back up the checks above
            with transaction.atomic():
                allocation = BedAllocation.objects.create(
                    allocation_number=AllocationService._next_allocation_number_locked(),
                    ip_number=AllocationService._next_ip_number_locked(),
                    bed=bed,
                    patient=patient,
                    doctor=doctor,
                    admission_date=admission_date or timezone.now(),
                    admission_type=admission_type,
                    admission_category=admission_category or "",
                    reason=reason or "",
                    allocated_by_id=actor_user_id,
                )
        except IntegrityError:
            raise ConflictError("Bed or patient already has an active allocation.")

        bed.status = BedStatus.OCCUPIED
        bed.save(update_fields=["status", "updated_at"])

        patient.admission_type = PatientAdmissionType.INPATIENT
        patient.save(update_fields=["admission_type", "updated_at"])

        AuditService.log(
            event_code="bed.allocated",
            entity_type="BedAllocation",
            entity_id=allocation.id,
            actor_user_id=actor_user_id,
            metadata={
                "allocation_number": allocation.allocation_number,
                "ip_number": allocation.ip_number,
                "bed_number": bed.bed_number,
                "uhid": patient.uhid,
            },
        )
        logger.info("allocated bed %s to %s (%s)", bed.bed_number, patient.uhid, allocation.ip_number)
        return allocation

    @staticmethod
    @transaction.atomic
    def discharge(
        *,
        actor_user_id: int | None,
        allocation_id: UUID,
        discharge_date: datetime | None = None,
        discharge_notes: str = "",
    ) -> BedAllocation:
        allocation = BedAllocation.objects.select_for_update().select_related("bed", "patient").get(id=allocation_id)
        if allocation.status != AllocationStatus.ACTIVE:
            raise ConflictError(f"Allocation {allocation.allocation_number} is {allocation.status}.")

        discharged_at = discharge_date or timezone.now()
        if discharged_at < allocation.admission_date:
            raise ValidationError({"discharge_date": "Discharge cannot precede admission."})

        allocation.discharge_date = discharged_at
        allocation.discharge_notes = discharge_notes or ""
        allocation.status = AllocationStatus.DISCHARGED
        allocation.save(update_fields=["discharge_date", "discharge_notes", "status", "updated_at"])

        bed = allocation.bed
        bed.status = BedStatus.AVAILABLE
        bed.save(update_fields=["status", "updated_at"])

        patient = allocation.patient
        patient.admission_type = PatientAdmissionType.OUTPATIENT
        patient.save(update_fields=["admission_type", "updated_at"])

        AuditService.log(
            event_code="bed.discharged",
            entity_type="BedAllocation",
            entity_id=allocation.id,
            actor_user_id=actor_user_id,
            metadata={
                "ip_number": allocation.ip_number,
                "bed_number": bed.bed_number,
                "length_of_stay_days": allocation.length_of_stay_days,
            },
        )
        return allocation

    @staticmethod
    @transaction.atomic
    def transfer(
        *,
        actor_user_id: int | None,
        allocation_id: UUID,
        new_bed_id: UUID,
        reason: str = "",
    ) -> BedAllocation:
        current = BedAllocation.objects.select_for_update().select_related("bed", "patient").get(id=allocation_id)
        if current.status != AllocationStatus.ACTIVE:
            raise ConflictError(f"Allocation {current.allocation_number} is {current.status}.")
        if current.bed_id == new_bed_id:
            raise ValidationError({"new_bed": "Patient is already in this bed."})

        new_bed = Bed.objects.select_for_update().get(id=new_bed_id)
        _ensure_bed_free(new_bed)

        now = timezone.now()

        # close the old allocation first so the per-patient active constraint holds
        current.status = AllocationStatus.TRANSFERRED
        current.transfer_reason = reason or ""
        current.discharge_date = now
        current.save(update_fields=["status", "transfer_reason", "discharge_date", "updated_at"])

        new_allocation = BedAllocation.objects.create(
            allocation_number=AllocationService._next_allocation_number_locked(),
            ip_number=current.ip_number,
            bed=new_bed,
            patient=current.patient,
            doctor_id=current.doctor_id,
            admission_date=now,
            admission_type=current.admission_type,
            admission_category=current.admission_category,
            reason=reason or current.reason,
            allocated_by_id=actor_user_id,
        )

        old_bed = current.bed
        old_bed.status = BedStatus.AVAILABLE
        old_bed.save(update_fields=["status", "updated_at"])

        new_bed.status = BedStatus.OCCUPIED
        new_bed.save(update_fields=["status", "updated_at"])

        AuditService.log(
            event_code="bed.transferred",
            entity_type="BedAllocation",
            entity_id=new_allocation.id,
            actor_user_id=actor_user_id,
            metadata={
                "ip_number": current.ip_number,
                "from_bed": old_bed.bed_number,
                "to_bed": new_bed.bed_number,
                "previous_allocation_id": str(current.id),
            },
        )
        return new_allocation
