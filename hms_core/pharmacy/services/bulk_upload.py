# hms_core/pharmacy/services/bulk_upload.py
"""
Bulk inventory imports. Each row commits in its own savepoint, so one bad row is
reported and skipped without undoing the rows before it.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from rest_framework.exceptions import APIException, ValidationError

from hms_core.audit.services import AuditService
from hms_core.pharmacy.importers import (
    DEFAULT_EXPIRY,
    batch_key,
    dosage_form_category,
    normalize_medication_name,
    parse_bool,
    parse_expiry,
    parse_int,
    parse_number,
    parse_stock_report,
    read_medication_csv,
    read_stock_workbook,
    therapeutic_category,
)
from hms_core.pharmacy.models import Medication
from hms_core.pharmacy.services.inventory import BatchService, MedicationService

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
SKIPPED = "skipped"

# per-row failures that are reported instead of aborting the upload
ROW_ERRORS = (APIException, ObjectDoesNotExist, DjangoValidationError, DatabaseError, ValueError)

PREVIEW_RESULTS = 100
PREVIEW_ERRORS = 10


def _error_text(exc: Exception) -> str:
    detail = getattr(exc, "detail", None)
    if isinstance(detail, dict):
        return "; ".join(f"{k}: {v[0] if isinstance(v, list) else v}" for k, v in detail.items())
    if isinstance(detail, list):
        return "; ".join(str(d) for d in detail)
    if detail is not None:
        return str(detail)
    return str(exc)


@dataclass
class UploadReport:
    results: list[dict[str, Any]] = field(default_factory=list)

    def add(self, *, row: int, status: str, message: str, sheet: str | None = None, **extra) -> None:
        entry: dict[str, Any] = {"row": row, "status": status, "message": message}
        if sheet is not None:
            entry["sheet"] = sheet
        entry.update({k: v for k, v in extra.items() if v not in (None, "")})
        self.results.append(entry)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r["status"] == status)

    @property
    def errors(self) -> list[str]:
        out = []
        for r in self.results:
            if r["status"] == ERROR:
                where = f"{r['sheet']} row {r['row']}" if r.get("sheet") else f"Row {r['row']}"
                out.append(f"{where}: {r['message']}")
        return out


def _audit_upload(kind: str, actor_user_id: int | None, summary: dict) -> dict:
    """Audit the run under a fresh upload id and return the summary carrying that id."""
    upload_id = uuid.uuid4()
    AuditService.log(
        event_code="pharmacy.bulk_upload",
        entity_type="BulkUpload",
        entity_id=upload_id,
        actor_user_id=actor_user_id,
        metadata={"kind": kind, **summary},
    )
    logger.info("bulk upload %s %s: %s", kind, upload_id, summary)
    return {"upload_id": str(upload_id), **summary}


def _update_prices(med: Medication, *, purchase_price: Decimal, mrp: Decimal) -> None:
    updates = {}
    if purchase_price > 0:
        updates["purchase_price"] = purchase_price
    if mrp > 0:
        updates["mrp"] = mrp
        updates["selling_price"] = mrp
    if updates:
        Medication.objects.filter(id=med.id).update(**updates)
        for k, v in updates.items():
            setattr(med, k, v)


class BulkUploadService:
    @staticmethod
    def import_stock_workbook(*, actor_user_id: int | None, content: bytes) -> dict:
        """Excel stock sheet: one row per medicine batch, medicines created on first sight."""
        report = UploadReport()
        cache: dict[str, Medication] = {}
        seen: set[tuple[str, str]] = set()

        try:
            sheets = read_stock_workbook(content)
        except ValueError as exc:
            raise ValidationError({"file": str(exc)})

        for sheet in sheets:
            if not sheet.has_medicine_column:
                report.add(row=1, sheet=sheet.name, status=ERROR, message="No medicine column found in header row.")
                continue

            for row_no, record in sheet.rows:
                name = normalize_medication_name(str(record.get("medicine") or ""))
                if not name:
                    report.add(row=row_no, sheet=sheet.name, status=SKIPPED, message="Empty medicine name.")
                    continue

                batch_number = str(record.get("batch") or "").strip()
                try:
                    with transaction.atomic():
                        status, message = BulkUploadService._workbook_row(
                            actor_user_id=actor_user_id,
                            name=name,
                            batch_number=batch_number,
                            record=record,
                            cache=cache,
                            seen=seen,
                        )
                except ROW_ERRORS as exc:
                    cache.pop(name.lower(), None)
                    status, message = ERROR, _error_text(exc)

                report.add(
                    row=row_no,
                    sheet=sheet.name,
                    status=status,
                    message=message,
                    medicine=name,
                    batch=batch_number,
                )

        summary = {
            "total_processed": len(report.results),
            "success_count": report.count(SUCCESS),
            "error_count": report.count(ERROR),
            "skipped_count": report.count(SKIPPED),
        }
        summary = _audit_upload("stock_workbook", actor_user_id, summary)
        return {**summary, "results": report.results[:PREVIEW_RESULTS], "all_results": report.results}

    @staticmethod
    def _workbook_row(
        *,
        actor_user_id: int | None,
        name: str,
        batch_number: str,
        record: dict,
        cache: dict[str, Medication],
        seen: set[tuple[str, str]],
    ) -> tuple[str, str]:
        purchase_rate = max(parse_number(record.get("purchase_rate")), Decimal("0"))
        mrp = max(parse_number(record.get("mrp")), Decimal("0"))

        key = name.lower()
        med = cache.get(key) or Medication.objects.filter(name__iexact=name).first()
        if med is None:
            combination = str(record.get("combination") or "").strip()
            product = str(record.get("product") or "").strip()
            med = MedicationService.create_medication(
                actor_user_id=actor_user_id,
                name=name,
                category=dosage_form_category(name, combination, product),
                combination=combination,
                dosage_form=product,
                route=str(record.get("route") or "").strip(),
                manufacturer=str(record.get("brand") or "").strip(),
                purchase_price=purchase_rate,
                selling_price=mrp,
                mrp=mrp,
            )
        cache[key] = med

        if not batch_number:
            _update_prices(med, purchase_price=purchase_rate, mrp=mrp)
            return SUCCESS, "Prices updated (no batch number)."

        expiry = parse_expiry(record.get("expiry")) or DEFAULT_EXPIRY
        dup_key = (str(med.id), batch_key(batch_number, expiry))
        if dup_key in seen or BatchService.exists(
            medication_id=med.id, batch_number=batch_number, expiry_date=expiry
        ):
            return SKIPPED, "Batch already exists"

        BatchService.create_batch(
            actor_user_id=actor_user_id,
            medication_id=med.id,
            batch_number=batch_number,
            expiry_date=expiry,
            quantity=max(parse_int(record.get("quantity")), 0),
            purchase_price=purchase_rate,
            selling_price=mrp,
            mrp=mrp,
            reference="stock upload",
        )
        seen.add(dup_key)
        _update_prices(med, purchase_price=purchase_rate, mrp=mrp)
        return SUCCESS, f"Batch {batch_number} added."

    @staticmethod
    def import_medications_csv(*, actor_user_id: int | None, content: bytes | str) -> dict:
        try:
            _columns, rows = read_medication_csv(content)
        except ValueError as exc:
            raise ValidationError({"file": str(exc)})

        report = UploadReport()
        seen: set[str] = set()
        duplicates = 0

        for line_no, row in rows:
            name = normalize_medication_name(row.get("name", ""))
            if not name:
                report.add(row=line_no, status=ERROR, message="Name is required.")
                continue

            if name.lower() in seen or Medication.objects.filter(name__iexact=name).exists():
                duplicates += 1
                report.add(row=line_no, status=SKIPPED, message="Duplicate medication name.", medicine=name)
                continue

            try:
                with transaction.atomic():
                    med = MedicationService.create_medication(
                        actor_user_id=actor_user_id,
                        name=name,
                        generic_name=row.get("generic_name", ""),
                        category=row.get("category") or therapeutic_category(name, row.get("generic_name", "")),
                        manufacturer=row.get("manufacturer", ""),
                        dosage_form=row.get("dosage_form", ""),
                        strength=row.get("strength", ""),
                        unit=row.get("unit", ""),
                        purchase_price=max(parse_number(row.get("purchase_price")), Decimal("0")),
                        selling_price=max(parse_number(row.get("selling_price")), Decimal("0")),
                        mrp=max(parse_number(row.get("mrp")), Decimal("0")),
                        minimum_stock_level=max(parse_int(row.get("minimum_stock_level"), 10), 0),
                        prescription_required=parse_bool(row.get("prescription_required"), False),
                        hsn_code=row.get("hsn_code", ""),
                        gst_percent=max(parse_number(row.get("gst_percent"), Decimal("5")), Decimal("0")),
                    )
            except ROW_ERRORS as exc:
                report.add(row=line_no, status=ERROR, message=_error_text(exc), medicine=name)
                continue

            seen.add(name.lower())
            report.add(row=line_no, status=SUCCESS, message=f"Created {med.medication_code}.", medicine=name)

        summary = {
            "total_rows": len(report.results),
            "success_count": report.count(SUCCESS),
            "error_count": report.count(ERROR),
            "duplicate_count": duplicates,
        }
        summary = _audit_upload("medications_csv", actor_user_id, summary)
        return {**summary, "errors": report.errors[:PREVIEW_ERRORS], "results": report.results}

    @staticmethod
    def import_batches(*, actor_user_id: int | None, rows: list[dict]) -> dict:
        """JSON rows: {medication_id, batch_number, expiry_date?, quantity, prices?, supplier_id?}."""
        report = UploadReport()
        seen: set[tuple[str, str]] = set()

        for idx, row in enumerate(rows or [], start=1):
            medication_id = row.get("medication_id")
            batch_number = str(row.get("batch_number") or "").strip()
            if not medication_id or not batch_number:
                report.add(row=idx, status=ERROR, message="medication_id and batch_number are required.")
                continue

            expiry = parse_expiry(row.get("expiry_date")) or DEFAULT_EXPIRY
            dup_key = (str(medication_id), batch_key(batch_number, expiry))

            try:
                with transaction.atomic():
                    if dup_key in seen or BatchService.exists(
                        medication_id=medication_id, batch_number=batch_number, expiry_date=expiry
                    ):
                        report.add(row=idx, status=SKIPPED, message="Batch already exists", batch=batch_number)
                        continue

                    def price(name: str) -> Decimal | None:
                        value = row.get(name)
                        return None if value in (None, "") else max(parse_number(value), Decimal("0"))

                    batch = BatchService.create_batch(
                        actor_user_id=actor_user_id,
                        medication_id=medication_id,
                        batch_number=batch_number,
                        expiry_date=expiry,
                        quantity=max(parse_int(row.get("quantity")), 0),
                        purchase_price=price("purchase_price"),
                        selling_price=price("selling_price"),
                        mrp=price("mrp"),
                        manufacturing_date=parse_expiry(row.get("manufacturing_date")),
                        supplier_id=row.get("supplier_id") or None,
                        reference="batch upload",
                    )
            except ROW_ERRORS as exc:
                report.add(row=idx, status=ERROR, message=_error_text(exc), batch=batch_number)
                continue

            seen.add(dup_key)
            report.add(
                row=idx,
                status=SUCCESS,
                message="Batch added.",
                medicine=batch.medication.name,
                batch=batch_number,
            )

        summary = {
            "total_rows": len(report.results),
            "success_count": report.count(SUCCESS),
            "error_count": report.count(ERROR),
            "skipped_count": report.count(SKIPPED),
        }
        summary = _audit_upload("batches", actor_user_id, summary)
        return {**summary, "errors": report.errors[:PREVIEW_ERRORS], "results": report.results}

    @staticmethod
    def import_stock_report(*, actor_user_id: int | None, content: bytes | str) -> dict:
        """Drug-wise stock report export: medicine sections with batch rows."""
        medicines, parse_errors = parse_stock_report(content)
        report = UploadReport()

        for batches in medicines.values():
            for b in batches:
                try:
                    with transaction.atomic():
                        med = Medication.objects.filter(name__iexact=b.medication_name).first()
                        if med is None:
                            med = MedicationService.create_medication(
                                actor_user_id=actor_user_id,
                                name=b.medication_name,
                                category=therapeutic_category(b.medication_name),
                                purchase_price=b.purchase_price,
                                selling_price=b.selling_price,
                                mrp=b.selling_price,
                            )

                        if BatchService.exists(
                            medication_id=med.id, batch_number=b.batch_number, expiry_date=b.expiry_date
                        ):
                            report.add(
                                row=b.line,
                                status=SKIPPED,
                                message="Batch already exists",
                                medicine=b.medication_name,
                                batch=b.batch_number,
                            )
                            continue

                        BatchService.create_batch(
                            actor_user_id=actor_user_id,
                            medication_id=med.id,
                            batch_number=b.batch_number,
                            expiry_date=b.expiry_date,
                            quantity=b.current_quantity,
                            received_quantity=b.received_quantity,
                            purchase_price=b.purchase_price,
                            selling_price=b.selling_price,
                            mrp=b.selling_price,
                            reference="stock report",
                        )
                        _update_prices(med, purchase_price=b.purchase_price, mrp=b.selling_price)
                except ROW_ERRORS as exc:
                    report.add(
                        row=b.line,
                        status=ERROR,
                        message=_error_text(exc),
                        medicine=b.medication_name,
                        batch=b.batch_number,
                    )
                    continue

                report.add(
                    row=b.line,
                    status=SUCCESS,
                    message="Batch added.",
                    medicine=b.medication_name,
                    batch=b.batch_number,
                )

        summary = {
            "total_medicines": len(medicines),
            "success_count": report.count(SUCCESS),
            "error_count": report.count(ERROR) + len(parse_errors),
            "skipped_count": report.count(SKIPPED),
        }
        summary = _audit_upload("stock_report", actor_user_id, summary)
        return {
            **summary,
            "errors": (parse_errors + report.errors)[:PREVIEW_ERRORS],
            "results": report.results,
        }
