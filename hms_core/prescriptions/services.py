# hms_core/prescriptions/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.common.api.exceptions import ConflictError
from hms_core.common.numbering import next_sequence_number
from hms_core.doctors.models import Appointment, Doctor
from hms_core.patients.models import Patient
from hms_core.pharmacy.models import Medication
from hms_core.prescriptions.models import ItemStatus, Prescription, PrescriptionItem, PrescriptionStatus

logger = logging.getLogger(__name__)

ITEM_TEXT_FIELDS = ("dosage", "frequency", "duration", "instructions")

# status -> statuses it may move to
STATUS_TRANSITIONS = {
    PrescriptionStatus.ACTIVE: {PrescriptionStatus.COMPLETED, PrescriptionStatus.CANCELLED},
    PrescriptionStatus.COMPLETED: set(),
    PrescriptionStatus.CANCELLED: set(),
}


def _build_items(prescription: Prescription, items: list[dict]) -> list[PrescriptionItem]:
    if not items:
        raise ValidationError({"items": "At least one medicine is required."})

    med_ids = {item.get("medication") for item in items}
    meds = {m.id: m for m in Medication.objects.filter(id__in=[m for m in med_ids if m])}

    rows = []
    for idx, item in enumerate(items):
        med = meds.get(item.get("medication"))
        if med is None:
            raise ValidationError({f"items[{idx}].medication": "Medication not found."})
        if int(item.get("quantity") or 0) <= 0:
            raise ValidationError({f"items[{idx}].quantity": "Quantity must be > 0."})
        rows.append(
            PrescriptionItem(
                prescription=prescription,
                medication=med,
                quantity=int(item["quantity"]),
                **{k: item.get(k) or "" for k in ITEM_TEXT_FIELDS},
            )
        )
    return rows


class PrescriptionService:
    @staticmethod
    def _next_prescription_id_locked() -> str:
        prefix = f"RX{timezone.localdate():%Y%m%d}"
        return next_sequence_number(model=Prescription, field="prescription_id", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def create_prescription(
        *,
        actor_user_id: int | None,
        patient_id: UUID,
        doctor_id: UUID,
        items: list[dict],
        appointment_id: UUID | None = None,
        issue_date=None,
        instructions: str = "",
    ) -> Prescription:
        patient = Patient.objects.get(id=patient_id)
        doctor = Doctor.objects.get(id=doctor_id)
        appointment = None
        if appointment_id:
            appointment = Appointment.objects.get(id=appointment_id)
            if appointment.patient_id != patient.id:
                raise ValidationError({"appointment": "Appointment belongs to a different patient."})

        rx = Prescription.objects.create(
            prescription_id=PrescriptionService._next_prescription_id_locked(),
            patient=patient,
            doctor=doctor,
            appointment=appointment,
            issue_date=issue_date or timezone.localdate(),
            instructions=instructions or "",
        )
        PrescriptionItem.objects.bulk_create(_build_items(rx, items))

        AuditService.log(
            event_code="prescription.created",
            entity_type="Prescription",
            entity_id=rx.id,
            actor_user_id=actor_user_id,
            metadata={"prescription_id": rx.prescription_id, "uhid": patient.uhid, "items": len(items)},
        )
        logger.info("prescription %s for %s (%d items)", rx.prescription_id, patient.uhid, len(items))
        return rx

    @staticmethod
    @transaction.atomic
    def update_status(*, actor_user_id: int | None, prescription_id: UUID, status: str) -> Prescription:
        rx = Prescription.objects.select_for_update().get(id=prescription_id)
        if status == rx.status:
            return rx
        if status not in STATUS_TRANSITIONS.get(rx.status, set()):
            raise ConflictError(f"Prescription {rx.prescription_id} cannot move from {rx.status} to {status}.")

        previous = rx.status
        rx.status = status
        rx.save(update_fields=["status", "updated_at"])

        AuditService.log(
            event_code="prescription.status_changed",
            entity_type="Prescription",
            entity_id=rx.id,
            actor_user_id=actor_user_id,
            metadata={"from": previous, "to": status},
        )
        return rx

    @staticmethod
    @transaction.atomic
    def replace_medicines(*, actor_user_id: int | None, prescription_id: UUID, items: list[dict]) -> Prescription:
        rx = Prescription.objects.select_for_update().get(id=prescription_id)
        if rx.status != PrescriptionStatus.ACTIVE:
            raise ConflictError(f"Prescription {rx.prescription_id} is {rx.status}; medicines are locked.")
        if rx.items.filter(dispensed_quantity__gt=0).exists():
            raise ConflictError(f"Prescription {rx.prescription_id} has dispensed medicines.")

        new_items = _build_items(rx, items)
        rx.items.all().delete()
        PrescriptionItem.objects.bulk_create(new_items)
        rx.save(update_fields=["updated_at"])

        AuditService.log(
            event_code="prescription.medicines_replaced",
            entity_type="Prescription",
            entity_id=rx.id,
            actor_user_id=actor_user_id,
            metadata={"items": len(new_items)},
        )
        return rx

    @staticmethod
    @transaction.atomic
    def delete_prescription(*, actor_user_id: int | None, prescription_id: UUID) -> None:
        rx = Prescription.objects.select_for_update().get(id=prescription_id)
        if rx.items.filter(dispensed_quantity__gt=0).exists():
            raise ConflictError(f"Prescription {rx.prescription_id} has dispensed medicines and cannot be deleted.")

        AuditService.log(
            event_code="prescription.deleted",
            entity_type="Prescription",
            entity_id=rx.id,
            actor_user_id=actor_user_id,
            metadata={"prescription_id": rx.prescription_id},
        )
        rx.delete()

    @staticmethod
    @transaction.atomic
    def record_dispensed(
        *,
        prescription_id: UUID,
        quantities: dict[UUID, int],
        bill_id: str | None = None,
    ) -> Prescription | None:
        """
        Add dispensed quantities (medication id -> units) to the matching pending items.
        An item is dispensed once it reaches its prescribed quantity; the prescription
        completes when every item is dispensed.
        """
        rx = Prescription.objects.select_for_update().filter(id=prescription_id).first()
        if rx is None:
            logger.warning("dispense for unknown prescription %s (bill %s)", prescription_id, bill_id)
            return None
        if rx.status != PrescriptionStatus.ACTIVE:
            logger.info("dispense ignored: prescription %s is %s", rx.prescription_id, rx.status)
            return rx

        remaining = {UUID(str(k)): int(v) for k, v in quantities.items() if int(v) > 0}
        items = list(rx.items.select_for_update().order_by("created_at", "id"))

        for item in items:
            left = remaining.get(item.medication_id, 0)
            if left <= 0 or item.status == ItemStatus.DISPENSED:
                continue
            need = item.quantity - item.dispensed_quantity
            take = min(need, left)
            item.dispensed_quantity += take
            remaining[item.medication_id] = left - take
            if item.dispensed_quantity >= item.quantity:
                item.status = ItemStatus.DISPENSED
            item.save(update_fields=["dispensed_quantity", "status", "updated_at"])

        if items and all(i.status == ItemStatus.DISPENSED for i in items):
            rx.status = PrescriptionStatus.COMPLETED
            rx.save(update_fields=["status", "updated_at"])

        AuditService.log(
            event_code="prescription.dispensed",
            entity_type="Prescription",
            entity_id=rx.id,
            actor_user_id=None,
            metadata={"bill_id": bill_id, "status": rx.status},
        )
        return rx
