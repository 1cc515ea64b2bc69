# hms_core/common/permissions.py

from __future__ import annotations

from typing import Set

from rest_framework.permissions import BasePermission, SAFE_METHODS

# Group/role names (Django auth Group names)
ROLE_ADMIN = "ADMIN"
ROLE_DOCTOR = "DOCTOR"
ROLE_NURSE = "NURSE"
ROLE_RECEPTION = "RECEPTION"
ROLE_PHARMACIST = "PHARMACIST"
ROLE_BILLING = "BILLING"
ROLE_LAB = "LAB"
ROLE_READONLY = "READONLY"

ALL_ROLES = (
    ROLE_ADMIN,
    ROLE_DOCTOR,
    ROLE_NURSE,
    ROLE_RECEPTION,
    ROLE_PHARMACIST,
    ROLE_BILLING,
    ROLE_LAB,
    ROLE_READONLY,
)

EVERYONE = set(ALL_ROLES)
CLINICAL = {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE}
FRONT_DESK = {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION}
PHARMACY_DESK = {ROLE_ADMIN, ROLE_PHARMACIST, ROLE_BILLING}


def user_roles(user) -> Set[str]:
    """
    Resolve roles from Django groups.

    - Superuser is treated as ADMIN.
    - An authenticated user with no groups is treated as READONLY.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    if not roles:
        roles.add(ROLE_READONLY)

    return roles


class BaseRolePermission(BasePermission):
    """
    Base permission class for role-based access control.

    - Requires authentication.
    - ADMIN bypass.
    - Uses allowed_roles_per_action for strict RBAC.
    - If the action is unknown and the request is SAFE, fall back to list/retrieve
      instead of denying (custom @action GET endpoints).
    """
    message = "You do not have permission to perform this action."

    # Override in subclasses: dict of action -> set of allowed roles
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": {ROLE_ADMIN},
        "update": {ROLE_ADMIN},
        "partial_update": {ROLE_ADMIN},
        "destroy": {ROLE_ADMIN},
    }

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs or "id" in kwargs

        method = request.method.upper()
        if method in ("GET", "HEAD", "OPTIONS"):
            return "retrieve" if is_detail else "list"
        if method == "POST":
            return "create"
        if method == "PUT":
            return "update"
        if method == "PATCH":
            return "partial_update"
        if method == "DELETE":
            return "destroy"
        return None

    @classmethod
    def allows(cls, roles: Set[str], action: str) -> bool:
        if ROLE_ADMIN in roles:
            return True
        allowed = cls.allowed_roles_per_action.get(action)
        return bool(allowed and roles & allowed)

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        roles = user_roles(user)

        if ROLE_ADMIN in roles:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            is_detail = "pk" in kwargs or "id" in kwargs
            read_action = "retrieve" if is_detail else "list"
            allowed = self.allowed_roles_per_action.get(read_action)

        if allowed is not None:
            return bool(roles & allowed)

        # Unknown action => deny by default
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


# Specific permission classes for each module

class PatientPermission(BaseRolePermission):
    """Permissions for Patient registration and records"""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": FRONT_DESK,
        "update": FRONT_DESK,
        "partial_update": FRONT_DESK,
        "destroy": {ROLE_ADMIN},
        "by_uhid": EVERYONE,
        "summary": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION, ROLE_BILLING, ROLE_PHARMACIST},
        "registration_charges": FRONT_DESK | {ROLE_BILLING},
    }


class StaffPermission(BaseRolePermission):
    """Permissions for Staff, departments and schedules"""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": {ROLE_ADMIN},
        "update": {ROLE_ADMIN},
        "partial_update": {ROLE_ADMIN},
        "destroy": {ROLE_ADMIN},
        "stats": EVERYONE,
        "roles": EVERYONE,
        "bulk_update": {ROLE_ADMIN},
        "bulk_delete": {ROLE_ADMIN},
        "schedules": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION},
        "add_schedule": {ROLE_ADMIN},
        "update_schedule": {ROLE_ADMIN},
    }


class DoctorPermission(BaseRolePermission):
    """Permissions for Doctor master data and availability"""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": {ROLE_ADMIN},
        "update": {ROLE_ADMIN},
        "partial_update": {ROLE_ADMIN},
        "destroy": {ROLE_ADMIN},
        "availability": {ROLE_ADMIN, ROLE_DOCTOR},
        "available_slots": EVERYONE,
        "with_slots": EVERYONE,
        "specializations": EVERYONE,
        "stats": EVERYONE,
    }


class AppointmentPermission(BaseRolePermission):
    """Permissions for Appointment management"""
    allowed_roles_per_action = {
        "list": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION, ROLE_READONLY},
        "retrieve": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION, ROLE_READONLY},
        "create": FRONT_DESK,
        "validate": FRONT_DESK,
        "alternatives": FRONT_DESK,
        "confirm": FRONT_DESK,
        "cancel": FRONT_DESK,
        "checkin": FRONT_DESK,
        "no_show": FRONT_DESK,
        "start": CLINICAL,
        "complete": CLINICAL,
        "reschedule": FRONT_DESK,
        "stats": EVERYONE,
    }


class IPDPermission(BaseRolePermission):
    """Permissions for beds and inpatient allocations"""
    allowed_roles_per_action = {
        "list": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION, ROLE_BILLING, ROLE_READONLY},
        "retrieve": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTION, ROLE_BILLING, ROLE_READONLY},
        "create": {ROLE_ADMIN},
        "update": {ROLE_ADMIN, ROLE_NURSE},
        "partial_update": {ROLE_ADMIN, ROLE_NURSE},
        "destroy": {ROLE_ADMIN},
        "available": EVERYONE,
        "stats": EVERYONE,
        "occupancy": EVERYONE,
        "allocate": FRONT_DESK,
        "discharge": CLINICAL,
        "transfer": CLINICAL,
        "patient_history": EVERYONE,
    }


class PharmacyPermission(BaseRolePermission):
    """Permissions for medicines, batches and stock"""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": {ROLE_ADMIN, ROLE_PHARMACIST},
        "update": {ROLE_ADMIN, ROLE_PHARMACIST},
        "partial_update": {ROLE_ADMIN, ROLE_PHARMACIST},
        "destroy": {ROLE_ADMIN},
        "search": EVERYONE,
        "categories": EVERYONE,
        "low_stock": {ROLE_ADMIN, ROLE_PHARMACIST, ROLE_BILLING, ROLE_DOCTOR, ROLE_NURSE},
        "expiry_alerts": {ROLE_ADMIN, ROLE_PHARMACIST, ROLE_BILLING, ROLE_DOCTOR, ROLE_NURSE},
        "batches": EVERYONE,
        "add_batch": {ROLE_ADMIN, ROLE_PHARMACIST},
        "adjust_stock": {ROLE_ADMIN, ROLE_PHARMACIST},
        "sales_history": PHARMACY_DESK,
        "purchase_history": PHARMACY_DESK,
    }


class PharmacyBillingPermission(BaseRolePermission):
    """Permissions for pharmacy bills"""
    allowed_roles_per_action = {
        "list": PHARMACY_DESK | {ROLE_READONLY},
        "retrieve": PHARMACY_DESK | {ROLE_READONLY},
        "create": PHARMACY_DESK,
        "quote": PHARMACY_DESK | {ROLE_DOCTOR, ROLE_NURSE},
        "payments": PHARMACY_DESK,
        "cancel": {ROLE_ADMIN, ROLE_PHARMACIST},
        "returns": {ROLE_ADMIN, ROLE_PHARMACIST},
    }


class PurchasePermission(BaseRolePermission):
    """Permissions for supplier purchases"""
    allowed_roles_per_action = {
        "list": PHARMACY_DESK,
        "retrieve": PHARMACY_DESK,
        "create": {ROLE_ADMIN, ROLE_PHARMACIST},
        "update": {ROLE_ADMIN, ROLE_PHARMACIST},
        "partial_update": {ROLE_ADMIN, ROLE_PHARMACIST},
        "destroy": {ROLE_ADMIN},
        "recalculate": PHARMACY_DESK,
        "receive": {ROLE_ADMIN, ROLE_PHARMACIST},
        "search": PHARMACY_DESK,
    }


class BulkUploadPermission(BaseRolePermission):
    """Permissions for bulk inventory imports"""
    allowed_roles_per_action = {
        "stock_workbook": {ROLE_ADMIN, ROLE_PHARMACIST},
        "medications_csv": {ROLE_ADMIN, ROLE_PHARMACIST},
        "batches": {ROLE_ADMIN, ROLE_PHARMACIST},
        "stock_report": {ROLE_ADMIN, ROLE_PHARMACIST},
    }


class PrescriptionPermission(BaseRolePermission):
    """Permissions for prescriptions"""
    allowed_roles_per_action = {
        "list": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_PHARMACIST, ROLE_READONLY},
        "retrieve": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_PHARMACIST, ROLE_READONLY},
        "create": {ROLE_ADMIN, ROLE_DOCTOR},
        "destroy": {ROLE_ADMIN, ROLE_DOCTOR},
        "status": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_PHARMACIST},
        "medicines": {ROLE_ADMIN, ROLE_DOCTOR},
        "medicine_search": {ROLE_ADMIN, ROLE_DOCTOR, ROLE_NURSE, ROLE_PHARMACIST},
        "stats": EVERYONE,
    }


class RevisitPermission(BaseRolePermission):
    """Permissions for patient revisits"""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": FRONT_DESK,
        "update": FRONT_DESK,
        "partial_update": FRONT_DESK,
        "search_patient": EVERYONE,
        "history": EVERYONE,
        "recent": EVERYONE,
        "stats": EVERYONE,
    }


class AccountPermission(BaseRolePermission):
    """Login accounts for staff and doctors"""
    allowed_roles_per_action = {
        "create": {ROLE_ADMIN},
    }


class DashboardPermission(BaseRolePermission):
    """Dashboard is read-only for every role"""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
    }


class AuditPermission(BaseRolePermission):
    """Permissions for Audit log access"""
    allowed_roles_per_action = {
        "list": {ROLE_ADMIN},
        "retrieve": {ROLE_ADMIN},
        "timeline": {ROLE_ADMIN},
        "event_codes": {ROLE_ADMIN},
        "create": set(),
        "update": set(),
        "partial_update": set(),
        "destroy": set(),
    }


# module name -> permission class (capability list for session bootstrap)
MODULE_PERMISSIONS: dict[str, type[BaseRolePermission]] = {
    "patients": PatientPermission,
    "staff": StaffPermission,
    "doctors": DoctorPermission,
    "appointments": AppointmentPermission,
    "beds": IPDPermission,
    "pharmacy": PharmacyPermission,
    "pharmacy_bills": PharmacyBillingPermission,
    "purchases": PurchasePermission,
    "bulk_upload": BulkUploadPermission,
    "prescriptions": PrescriptionPermission,
    "revisits": RevisitPermission,
    "dashboard": DashboardPermission,
    "audit": AuditPermission,
    "accounts": AccountPermission,
}


def capabilities_for(user) -> list[str]:
    roles = user_roles(user)
    caps: list[str] = []
    for module, perm_cls in MODULE_PERMISSIONS.items():
        for action in perm_cls.allowed_roles_per_action:
            if perm_cls.allows(roles, action):
                caps.append(f"{module}.{action}")
    return sorted(caps)
