# hms_core/revisits/services.py
from __future__ import annotations

from uuid import UUID

from django.db import transaction
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.doctors.models import Doctor
from hms_core.patients.models import Patient, PatientStatus
from hms_core.revisits.models import PatientRevisit
from hms_core.staff.models import Staff


class RevisitService:
    UPDATABLE_FIELDS = {
        "visit_date",
        "visit_time",
        "department",
        "reason_for_visit",
        "symptoms",
        "previous_diagnosis",
        "current_diagnosis",
        "consultation_fee",
        "payment_mode",
        "payment_status",
        "visit_type",
        "notes",
    }

    @staticmethod
    def _resolve_refs(fields: dict, *, doctor_id, staff_id) -> dict:
        if doctor_id is not None:
            doctor = Doctor.objects.get(id=doctor_id)
            fields["doctor"] = doctor
            if not fields.get("department"):
                fields["department"] = doctor.department or doctor.specialization
        if staff_id is not None:
            fields["staff"] = Staff.objects.get(id=staff_id)
        return fields

    @staticmethod
    @transaction.atomic
    def create_revisit(
        *,
        actor_user_id: int | None,
        patient_id: UUID,
        doctor_id: UUID | None = None,
        staff_id: UUID | None = None,
        **fields,
    ) -> PatientRevisit:
        patient = Patient.objects.get(id=patient_id)
        if patient.status != PatientStatus.ACTIVE:
            raise ValidationError({"patient": f"Patient {patient.uhid} is {patient.status}."})

        fields = {k: v for k, v in fields.items() if k in RevisitService.UPDATABLE_FIELDS and v is not None}
        fields = RevisitService._resolve_refs(fields, doctor_id=doctor_id, staff_id=staff_id)

        if "consultation_fee" not in fields and fields.get("doctor") is not None:
            fields["consultation_fee"] = fields["doctor"].consultation_fee

        revisit = PatientRevisit.objects.create(patient=patient, uhid=patient.uhid, **fields)

        AuditService.log(
            event_code="revisit.created",
            entity_type="PatientRevisit",
            entity_id=revisit.id,
            actor_user_id=actor_user_id,
            metadata={"uhid": patient.uhid, "visit_type": revisit.visit_type, "visit_date": revisit.visit_date},
        )
        return revisit

    @staticmethod
    @transaction.atomic
    def update_revisit(
        *,
        actor_user_id: int | None,
        revisit_id: UUID,
        data: dict,
    ) -> PatientRevisit:
        revisit = PatientRevisit.objects.select_for_update().get(id=revisit_id)

        data = dict(data or {})
        doctor_id = data.pop("doctor", None)
        staff_id = data.pop("staff", None)
        updates = {k: v for k, v in data.items() if k in RevisitService.UPDATABLE_FIELDS}
        updates = RevisitService._resolve_refs(updates, doctor_id=doctor_id, staff_id=staff_id)

        for k, v in updates.items():
            setattr(revisit, k, v)
        revisit.save()

        AuditService.log(
            event_code="revisit.updated",
            entity_type="PatientRevisit",
            entity_id=revisit.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return revisit
