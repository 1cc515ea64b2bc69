# hms_core/iam/api/me.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from hms_core.common.permissions import user_roles
from hms_core.iam.api.schema_serializers import MeResponseSerializer


def user_payload(user) -> dict:
    return {
        "id": user.id,
        "username": user.get_username(),
        "email": user.email or None,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_superuser": user.is_superuser,
    }


def profile_payload(user) -> dict | None:
    """The staff or doctor record linked to this login, if any."""
    staff = getattr(user, "staff_profile", None)
    if staff is not None:
        return {
            "type": "staff",
            "id": staff.id,
            "code": staff.employee_id,
            "name": staff.full_name,
            "department": staff.department.name if staff.department_id else None,
        }
    doctor = getattr(user, "doctor_profile", None)
    if doctor is not None:
        return {
            "type": "doctor",
            "id": doctor.id,
            "code": doctor.doctor_id,
            "name": doctor.name,
            "department": doctor.department or None,
        }
    return None


def identity_payload(user) -> dict:
    return {
        "user": user_payload(user),
        "roles": sorted(user_roles(user)),
        "profile": profile_payload(user),
    }


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeResponseSerializer}, tags=["IAM"])
    def get(self, request):
        return Response(identity_payload(request.user), status=status.HTTP_200_OK)
