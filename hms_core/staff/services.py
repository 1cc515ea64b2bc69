# hms_core/staff/services.py
from __future__ import annotations

import logging
from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.common.numbering import next_sequence_number
from hms_core.staff.models import Department, ShiftType, Staff, StaffSchedule

logger = logging.getLogger(__name__)


class StaffService:
    UPDATABLE_FIELDS = {
        "first_name",
        "last_name",
        "email",
        "phone",
        "role",
        "department",
        "specialization",
        "hire_date",
        "is_active",
        "user",
    }
    BULK_UPDATABLE_FIELDS = {"role", "department", "is_active", "specialization"}

    @staticmethod
    def _next_employee_id_locked() -> str:
        prefix = f"EMP{timezone.localdate():%y%m}"
        return next_sequence_number(model=Staff, field="employee_id", prefix=prefix, width=4)

    @staticmethod
    @transaction.atomic
    def create_staff(*, actor_user_id: int | None, first_name: str, role: str, **fields) -> Staff:
        fields = {k: v for k, v in fields.items() if k in StaffService.UPDATABLE_FIELDS}
        staff = Staff.objects.create(
            employee_id=StaffService._next_employee_id_locked(),
            first_name=first_name.strip(),
            role=role.strip(),
            **fields,
        )

        AuditService.log(
            event_code="staff.created",
            entity_type="Staff",
            entity_id=staff.id,
            actor_user_id=actor_user_id,
            metadata={"employee_id": staff.employee_id, "role": staff.role},
        )
        return staff

    @staticmethod
    @transaction.atomic
    def update_staff(*, actor_user_id: int | None, staff_id: UUID, data: dict) -> Staff:
        staff = Staff.objects.select_for_update().get(id=staff_id)
        updates = {k: v for k, v in (data or {}).items() if k in StaffService.UPDATABLE_FIELDS}
        for k, v in updates.items():
            setattr(staff, k, v)
        staff.save()

        AuditService.log(
            event_code="staff.updated",
            entity_type="Staff",
            entity_id=staff.id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return staff

    @staticmethod
    @transaction.atomic
    def delete_staff(*, actor_user_id: int | None, staff_id: UUID) -> None:
        staff = Staff.objects.get(id=staff_id)
        AuditService.log(
            event_code="staff.deleted",
            entity_type="Staff",
            entity_id=staff.id,
            actor_user_id=actor_user_id,
            metadata={"employee_id": staff.employee_id},
        )
        staff.delete()

    @staticmethod
    @transaction.atomic
    def bulk_update(*, actor_user_id: int | None, staff_ids: list[UUID], data: dict) -> int:
        updates = {k: v for k, v in (data or {}).items() if k in StaffService.BULK_UPDATABLE_FIELDS}
        if not updates:
            raise ValidationError({"data": f"Nothing to update. Allowed: {sorted(StaffService.BULK_UPDATABLE_FIELDS)}"})

        updated = Staff.objects.filter(id__in=staff_ids).update(**updates, updated_at=timezone.now())
        logger.info("bulk staff update: %d row(s), fields=%s", updated, sorted(updates))
        return updated

    @staticmethod
    @transaction.atomic
    def bulk_delete(*, actor_user_id: int | None, staff_ids: list[UUID]) -> int:
        deleted, _ = Staff.objects.filter(id__in=staff_ids).delete()
        # cascade counts schedules too; report staff rows only
        logger.info("bulk staff delete requested for %d id(s)", len(staff_ids))
        return min(deleted, len(staff_ids))


class DepartmentService:
    @staticmethod
    @transaction.atomic
    def create_department(*, name: str, description: str = "") -> Department:
        name = name.strip()
        if Department.objects.filter(name__iexact=name).exists():
            raise ValidationError({"name": "Department already exists."})
        return Department.objects.create(name=name, description=description or "")


class ScheduleService:
    @staticmethod
    def _validate_times(*, shift_start, shift_end, shift_type: str) -> None:
        # night shifts run past midnight
        if shift_type != ShiftType.NIGHT and shift_end <= shift_start:
            raise ValidationError({"shift_end": "Shift end must be after shift start."})

    @staticmethod
    @transaction.atomic
    def create_schedule(
        *,
        staff_id: UUID,
        date,
        shift_start,
        shift_end,
        shift_type: str = ShiftType.MORNING,
        notes: str = "",
    ) -> StaffSchedule:
        staff = Staff.objects.get(id=staff_id)
        ScheduleService._validate_times(shift_start=shift_start, shift_end=shift_end, shift_type=shift_type)
        return StaffSchedule.objects.create(
            staff=staff,
            date=date,
            shift_start=shift_start,
            shift_end=shift_end,
            shift_type=shift_type,
            notes=notes or "",
        )

    @staticmethod
    @transaction.atomic
    def update_schedule(*, schedule_id: UUID, data: dict) -> StaffSchedule:
        schedule = StaffSchedule.objects.select_for_update().get(id=schedule_id)
        for k in ("date", "shift_start", "shift_end", "shift_type", "status", "notes"):
            if k in data:
                setattr(schedule, k, data[k])

        ScheduleService._validate_times(
            shift_start=schedule.shift_start,
            shift_end=schedule.shift_end,
            shift_type=schedule.shift_type,
        )
        schedule.save()
        return schedule
