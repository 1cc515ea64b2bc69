# hms_core/pharmacy/services/inventory.py
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.common.api.exceptions import ConflictError
from hms_core.common.numbering import next_sequence_number
from hms_core.pharmacy.importers import medication_code_prefix
from hms_core.pharmacy.models import (
    Medication,
    MedicineBatch,
    StockTransaction,
    StockTransactionType,
    Supplier,
)

logger = logging.getLogger(__name__)


def record_stock_movement(
    *,
    medication_id: UUID,
    batch_id: UUID | None,
    transaction_type: str,
    quantity: int,
    reference: str = "",
    notes: str = "",
    actor_user_id: int | None = None,
) -> StockTransaction:
    return StockTransaction.objects.create(
        medication_id=medication_id,
        batch_id=batch_id,
        transaction_type=transaction_type,
        quantity=quantity,
        reference=reference or "",
        notes=notes or "",
        performed_by_id=actor_user_id,
    )


def apply_batch_stock(batch_id: UUID, *, delta: int) -> None:
    """Same as apply_medication_stock for one batch; callers check availability first."""
    MedicineBatch.objects.filter(id=batch_id).update(
        current_quantity=F("current_quantity") + delta,
        updated_at=timezone.now(),
    )


def apply_medication_stock(medication_id: UUID, *, available_delta: int, received_delta: int = 0) -> None:
    """Counter update in SQL so concurrent sales do not overwrite each other."""
    updates = {"available_stock": F("available_stock") + available_delta}
    if received_delta:
        updates["total_stock"] = F("total_stock") + received_delta
    Medication.objects.filter(id=medication_id).update(**updates)


class MedicationService:
    UPDATABLE_FIELDS = {
        "name",
        "generic_name",
        "manufacturer",
        "category",
        "dosage_form",
        "strength",
        "combination",
        "route",
        "unit",
        "purchase_price",
        "selling_price",
        "mrp",
        "minimum_stock_level",
        "prescription_required",
        "hsn_code",
        "gst_percent",
        "status",
    }

    @staticmethod
    def next_code_locked(name: str) -> str:
        prefix = f"MED-{medication_code_prefix(name)}-"
        return next_sequence_number(model=Medication, field="medication_code", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def create_medication(*, actor_user_id: int | None, name: str, **fields) -> Medication:
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "This field is required."})

        code = (fields.pop("medication_code", None) or "").strip() or MedicationService.next_code_locked(name)
        fields = {k: v for k, v in fields.items() if k in MedicationService.UPDATABLE_FIELDS}
        if Medication.objects.filter(medication_code=code).exists():
            raise ValidationError({"medication_code": f"Medication code {code} already exists."})

        med = Medication.objects.create(medication_code=code, name=name, **fields)

        AuditService.log(
            event_code="medication.created",
            entity_type="Medication",
            entity_id=med.id,
            actor_user_id=actor_user_id,
            metadata={"medication_code": med.medication_code, "name": med.name},
        )
        return med

    @staticmethod
    @transaction.atomic
    def update_medication(*, actor_user_id: int | None, medication_id: UUID, data: dict) -> Medication:
        med = Medication.objects.select_for_update().get(id=medication_id)
        updates = {k: v for k, v in (data or {}).items() if k in MedicationService.UPDATABLE_FIELDS}
        if "name" in updates and not (updates["name"] or "").strip():
            raise ValidationError({"name": "Name cannot be blank."})

        for k, v in updates.items():
            setattr(med, k, v)
        med.save()

        AuditService.log(
            event_code="medication.updated",
            entity_type="Medication",
            entity_id=med.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return med

    @staticmethod
    @transaction.atomic
    def delete_medication(*, actor_user_id: int | None, medication_id: UUID) -> None:
        med = Medication.objects.select_for_update().get(id=medication_id)
        if med.bill_items.exists() or med.purchase_items.exists() or med.prescription_items.exists():
            raise ConflictError(f"{med.name} has bills, purchases or prescriptions; mark it inactive instead.")

        AuditService.log(
            event_code="medication.deleted",
            entity_type="Medication",
            entity_id=med.id,
            actor_user_id=actor_user_id,
            metadata={"medication_code": med.medication_code},
        )
        med.delete()


class BatchService:
    @staticmethod
    def exists(*, medication_id: UUID, batch_number: str, expiry_date: date) -> bool:
        return MedicineBatch.objects.filter(
            medication_id=medication_id,
            batch_number=batch_number,
            expiry_date=expiry_date,
        ).exists()

    @staticmethod
    @transaction.atomic
    def create_batch(
        *,
        actor_user_id: int | None,
        medication_id: UUID,
        batch_number: str,
        expiry_date: date,
        quantity: int,
        received_quantity: int | None = None,
        purchase_price: Decimal | None = None,
        selling_price: Decimal | None = None,
        mrp: Decimal | None = None,
        manufacturing_date: date | None = None,
        supplier_id: UUID | None = None,
        received_date: date | None = None,
        reference: str = "",
    ) -> MedicineBatch:
        """
        Receive a new lot holding `quantity` units. `received_quantity` defaults to the same
        figure and is what the lifetime total_stock counter grows by.
        """
        med = Medication.objects.select_for_update().get(id=medication_id)
        batch_number = (batch_number or "").strip()
        if not batch_number:
            raise ValidationError({"batch_number": "This field is required."})
        received = quantity if received_quantity is None else received_quantity
        if quantity < 0 or received < 0:
            raise ValidationError({"quantity": "Must not be negative."})
        if manufacturing_date and manufacturing_date > expiry_date:
            raise ValidationError({"manufacturing_date": "Manufacturing date is after expiry."})

        if BatchService.exists(medication_id=med.id, batch_number=batch_number, expiry_date=expiry_date):
            raise ConflictError(f"Batch {batch_number} (exp {expiry_date}) already exists for {med.name}.")

        fields = {
            "medication": med,
            "batch_number": batch_number,
            "expiry_date": expiry_date,
            "manufacturing_date": manufacturing_date,
            "received_quantity": received,
            "current_quantity": quantity,
            "purchase_price": purchase_price if purchase_price is not None else med.purchase_price,
            "selling_price": selling_price if selling_price is not None else med.selling_price,
            "mrp": mrp if mrp is not None else med.mrp,
            "supplier_id": supplier_id,
        }
        if received_date:
            fields["received_date"] = received_date

        try:
            with transaction.atomic():
                batch = MedicineBatch.objects.create(**fields)
        except IntegrityError:
            raise ConflictError(f"Batch {batch_number} (exp {expiry_date}) already exists for {med.name}.")

        apply_medication_stock(med.id, available_delta=quantity, received_delta=received)
        record_stock_movement(
            medication_id=med.id,
            batch_id=batch.id,
            transaction_type=StockTransactionType.PURCHASE,
            quantity=quantity,
            reference=reference or batch_number,
            actor_user_id=actor_user_id,
        )

        AuditService.log(
            event_code="pharmacy.batch.created",
            entity_type="MedicineBatch",
            entity_id=batch.id,
            actor_user_id=actor_user_id,
            metadata={
                "medication_code": med.medication_code,
                "batch_number": batch.batch_number,
                "expiry_date": batch.expiry_date.isoformat(),
                "quantity": quantity,
            },
        )
        return batch


class StockService:
    @staticmethod
    @transaction.atomic
    def adjust(
        *,
        actor_user_id: int | None,
        batch_id: UUID,
        quantity: int,
        reason: str = "",
        transaction_type: str = StockTransactionType.ADJUSTMENT,
    ) -> MedicineBatch:
        """Apply a signed quantity to a batch and its medication; a batch never goes below zero."""
        if quantity == 0:
            raise ValidationError({"quantity": "Quantity must not be zero."})

        batch = MedicineBatch.objects.select_for_update().select_related("medication").get(id=batch_id)
        if batch.current_quantity + quantity < 0:
            raise ConflictError(
                f"Batch {batch.batch_number} has {batch.current_quantity} units; cannot remove {-quantity}."
            )

        batch.current_quantity += quantity
        batch.save(update_fields=["current_quantity", "updated_at"])
        apply_medication_stock(batch.medication_id, available_delta=quantity)

        record_stock_movement(
            medication_id=batch.medication_id,
            batch_id=batch.id,
            transaction_type=transaction_type,
            quantity=quantity,
            reference=batch.batch_number,
            notes=reason,
            actor_user_id=actor_user_id,
        )

        AuditService.log(
            event_code="pharmacy.stock.adjusted",
            entity_type="MedicineBatch",
            entity_id=batch.id,
            actor_user_id=actor_user_id,
            metadata={"quantity": quantity, "reason": reason or "", "type": transaction_type},
        )
        logger.info("stock %+d on batch %s (%s)", quantity, batch.batch_number, transaction_type)
        batch.medication.refresh_from_db(fields=["available_stock", "total_stock"])
        return batch


class SupplierService:
    UPDATABLE_FIELDS = {"name", "contact_person", "phone", "email", "gstin", "address", "is_active"}

    @staticmethod
    @transaction.atomic
    def create_supplier(*, actor_user_id: int | None, name: str, **fields) -> Supplier:
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "This field is required."})
        if Supplier.objects.filter(name__iexact=name).exists():
            raise ValidationError({"name": f"Supplier {name} already exists."})

        fields = {k: v for k, v in fields.items() if k in SupplierService.UPDATABLE_FIELDS}
        supplier = Supplier.objects.create(
            supplier_code=next_sequence_number(model=Supplier, field="supplier_code", prefix="SUP", width=4),
            name=name,
            **fields,
        )

        AuditService.log(
            event_code="pharmacy.supplier.created",
            entity_type="Supplier",
            entity_id=supplier.id,
            actor_user_id=actor_user_id,
            metadata={"supplier_code": supplier.supplier_code},
        )
        return supplier

    @staticmethod
    @transaction.atomic
    def update_supplier(*, actor_user_id: int | None, supplier_id: UUID, data: dict) -> Supplier:
        supplier = Supplier.objects.select_for_update().get(id=supplier_id)
        updates = {k: v for k, v in (data or {}).items() if k in SupplierService.UPDATABLE_FIELDS}

        new_name = (updates.get("name") or "").strip()
        if "name" in updates and not new_name:
            raise ValidationError({"name": "Name cannot be blank."})
        if new_name and Supplier.objects.filter(name__iexact=new_name).exclude(id=supplier.id).exists():
            raise ValidationError({"name": f"Supplier {new_name} already exists."})

        for k, v in updates.items():
            setattr(supplier, k, v)
        supplier.save()

        AuditService.log(
            event_code="pharmacy.supplier.updated",
            entity_type="Supplier",
            entity_id=supplier.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return supplier

    @staticmethod
    @transaction.atomic
    def delete_supplier(*, actor_user_id: int | None, supplier_id: UUID) -> None:
        supplier = Supplier.objects.select_for_update().get(id=supplier_id)
        if supplier.purchases.exists():
            raise ConflictError(f"Supplier {supplier.name} has purchases; deactivate it instead.")

        AuditService.log(
            event_code="pharmacy.supplier.deleted",
            entity_type="Supplier",
            entity_id=supplier.id,
            actor_user_id=actor_user_id,
            metadata={"supplier_code": supplier.supplier_code},
        )
        supplier.delete()
