# hms_core/iam/services.py
from __future__ import annotations

import logging
import re
from uuid import UUID

from django.conf import settings
from django.contrib.auth import get_user_model, password_validation
from django.contrib.auth.models import Group
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from rest_framework.exceptions import ValidationError

from hms_core.audit.services import AuditService
from hms_core.common.api.exceptions import ConflictError
from hms_core.common.permissions import (
    ALL_ROLES,
    ROLE_ADMIN,
    ROLE_BILLING,
    ROLE_DOCTOR,
    ROLE_LAB,
    ROLE_NURSE,
    ROLE_PHARMACIST,
    ROLE_RECEPTION,
)
from hms_core.doctors.models import Doctor, DoctorStatus
from hms_core.staff.models import Staff

logger = logging.getLogger(__name__)

# staff role labels as typed on the HR screens -> auth group
ROLE_LABELS = {
    "administrator": ROLE_ADMIN,
    "admin": ROLE_ADMIN,
    "doctor": ROLE_DOCTOR,
    "md": ROLE_DOCTOR,
    "nurse": ROLE_NURSE,
    "receptionist": ROLE_RECEPTION,
    "reception": ROLE_RECEPTION,
    "pharmacist": ROLE_PHARMACIST,
    "billing": ROLE_BILLING,
    "accountant": ROLE_BILLING,
    "lab technician": ROLE_LAB,
    "technician": ROLE_LAB,
}

_MOBILE = re.compile(r"^\+?\d{6,15}$")


def login_email(value: str) -> str:
    """
    Staff sign in with an email or a bare mobile number; a number becomes
    "<digits>@<HMS_LOGIN_EMAIL_DOMAIN>".
    """
    value = (value or "").strip()
    if _MOBILE.match(value):
        return f"{value.lstrip('+')}@{settings.HMS_LOGIN_EMAIL_DOMAIN}".lower()
    return value.lower()


def group_for_role(label: str) -> str:
    key = (label or "").strip().lower()
    if key in ROLE_LABELS:
        return ROLE_LABELS[key]
    if key.upper() in ALL_ROLES:
        return key.upper()
    raise ValidationError({"role": f"Unknown role '{label}'."})


def resolve_username(login: str) -> str:
    """Username for a login identifier: a username as-is, else the user owning that email."""
    login = (login or "").strip()
    User = get_user_model()
    if User.objects.filter(username=login).exists():
        return login

    email = login_email(login)
    username = (
        User.objects.filter(email__iexact=email).order_by("id").values_list("username", flat=True).first()
    )
    return username or login


def is_account_disabled(user) -> bool:
    """Deactivated staff and inactive doctors lose API access with their profile."""
    staff = getattr(user, "staff_profile", None)
    if staff is not None and not staff.is_active:
        return True
    doctor = getattr(user, "doctor_profile", None)
    if doctor is not None and doctor.status == DoctorStatus.INACTIVE:
        return True
    return False


class AccountService:
    ENTITY_TYPES = ("staff", "doctor")

    @staticmethod
    def _profile(entity_type: str, entity_id: UUID):
        if entity_type == "staff":
            return Staff.objects.select_for_update().get(id=entity_id)
        if entity_type == "doctor":
            return Doctor.objects.select_for_update().get(id=entity_id)
        raise ValidationError({"entity_type": f"Expected one of {list(AccountService.ENTITY_TYPES)}."})

    @staticmethod
    @transaction.atomic
    def create_account(
        *,
        actor_user_id: int | None,
        entity_type: str,
        entity_id: UUID,
        login: str,
        password: str,
        role: str = "",
    ):
        """
        Give a staff member or doctor a login.

        Username is the employee / doctor id, the role label maps onto an auth group
        (doctors default to DOCTOR, staff to their HR role) and the new user is linked
        back to the profile.
        """
        profile = AccountService._profile(entity_type, entity_id)
        if profile.user_id:
            raise ConflictError("This profile already has a login account.")

        email = login_email(login)
        try:
            validate_email(email)
        except DjangoValidationError:
            raise ValidationError({"login": "Enter an email address or a mobile number."})

        User = get_user_model()
        if entity_type == "staff":
            username = profile.employee_id
            first_name, last_name = profile.first_name, profile.last_name
            group_name = group_for_role(role or profile.role)
        else:
            username = profile.doctor_id
            first_name, _, last_name = profile.name.partition(" ")
            group_name = group_for_role(role or "doctor")

        if User.objects.filter(username=username).exists() or User.objects.filter(email__iexact=email).exists():
            raise ConflictError(f"A login for {username} / {email} already exists.")

        user = User(username=username, email=email, first_name=first_name, last_name=last_name)
        try:
            password_validation.validate_password(password, user)
        except DjangoValidationError as e:
            raise ValidationError({"password": e.messages})
        user.set_password(password)
        user.save()

        group, _ = Group.objects.get_or_create(name=group_name)
        user.groups.add(group)

        profile.user = user
        profile.save(update_fields=["user", "updated_at"])

        AuditService.log(
            event_code="iam.account.created",
            entity_type=type(profile).__name__,
            entity_id=profile.id,
            actor_user_id=actor_user_id,
            metadata={"username": username, "email": email, "role": group_name},
        )
        logger.info("login account %s created for %s %s", username, entity_type, profile.id)
        return user
