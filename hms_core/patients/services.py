# hms_core/patients/services.py
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from hms_core.audit.services import AuditService
from hms_core.beds.models import Bed
from hms_core.common.money import ZERO, q2
from hms_core.common.numbering import next_sequence_number
from hms_core.doctors.models import Doctor
from hms_core.patients.models import AdmissionType, Patient

logger = logging.getLogger(__name__)


def age_from_dob(dob: date, today: date | None = None) -> int:
    today = today or timezone.localdate()
    years = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        years -= 1
    return max(years, 0)


def compute_registration_charges(
    *,
    registration_fee: Decimal,
    consultation_fee: Decimal = ZERO,
    bed_daily_rate: Decimal = ZERO,
    is_inpatient: bool = False,
) -> dict:
    """
    Registration fee + doctor's consultation fee + one day of bed charges (inpatients only).
    """
    registration_fee = q2(registration_fee)
    consultation_fee = q2(consultation_fee or ZERO)
    bed_charges = q2(bed_daily_rate or ZERO) if is_inpatient else ZERO

    breakdown = [{"item": "Registration Fee", "amount": registration_fee}]
    if consultation_fee > 0:
        breakdown.append({"item": "Consultation Fee", "amount": consultation_fee})
    if bed_charges > 0:
        breakdown.append({"item": "Bed Charges (per day)", "amount": bed_charges})

    return {
        "registration_fee": registration_fee,
        "consultation_fee": consultation_fee,
        "bed_charges": bed_charges,
        "total_amount": q2(registration_fee + consultation_fee + bed_charges),
        "breakdown": breakdown,
    }


class PatientService:
    UPDATABLE_FIELDS = {
        "name",
        "admission_type",
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
        "is_critical",
        "status",
    }

    @staticmethod
    def _next_uhid_locked() -> str:
        prefix = f"{settings.HMS_UHID_PREFIX}{timezone.localdate():%y%m}"
        return next_sequence_number(model=Patient, field="uhid", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def register(*, actor_user_id: int | None, name: str, **fields) -> Patient:
        fields = {k: v for k, v in fields.items() if k in PatientService.UPDATABLE_FIELDS}
        if fields.get("date_of_birth") and fields.get("age") is None:
            fields["age"] = age_from_dob(fields["date_of_birth"])

        patient = Patient.objects.create(
            uhid=PatientService._next_uhid_locked(),
            name=name.strip(),
            **fields,
        )

        AuditService.log(
            event_code="patient.registered",
            entity_type="Patient",
            entity_id=patient.id,
            actor_user_id=actor_user_id,
            metadata={"uhid": patient.uhid},
        )
        logger.info("registered patient %s", patient.uhid)
        return patient

    @staticmethod
    @transaction.atomic
    def update_patient(
        *,
        actor_user_id: int | None,
        patient_id: UUID,
        data: dict,
    ) -> Patient:
        patient = Patient.objects.select_for_update().get(id=patient_id)

        updates = {k: v for k, v in (data or {}).items() if k in PatientService.UPDATABLE_FIELDS}
        if updates.get("date_of_birth") and "age" not in updates:
            updates["age"] = age_from_dob(updates["date_of_birth"])

        for k, v in updates.items():
            setattr(patient, k, v)
        patient.save()

        AuditService.log(
            event_code="patient.updated",
            entity_type="Patient",
            entity_id=patient.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return patient

    @staticmethod
    def registration_charges(
        *,
        admission_type: str = AdmissionType.OUTPATIENT,
        doctor_id: UUID | None = None,
        bed_id: UUID | None = None,
    ) -> dict:
        consultation_fee = ZERO
        if doctor_id:
            consultation_fee = Doctor.objects.only("consultation_fee").get(id=doctor_id).consultation_fee

        bed_rate = ZERO
        is_inpatient = admission_type == AdmissionType.INPATIENT
        if bed_id and is_inpatient:
            bed_rate = Bed.objects.only("daily_rate").get(id=bed_id).daily_rate

        return compute_registration_charges(
            registration_fee=settings.HMS_REGISTRATION_FEE,
            consultation_fee=consultation_fee,
            bed_daily_rate=bed_rate,
            is_inpatient=is_inpatient,
        )
