# hms_core/iam/api/accounts.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from hms_core.common.permissions import AccountPermission
from hms_core.iam.api.me import identity_payload
from hms_core.iam.api.schema_serializers import AccountCreateSerializer, AccountResponseSerializer
from hms_core.iam.services import AccountService


class AccountView(APIView):
    """POST /accounts/: create a login for an existing staff member or doctor (ADMIN)."""

    permission_classes = [AccountPermission]

    @extend_schema(request=AccountCreateSerializer, responses={201: AccountResponseSerializer}, tags=["IAM"])
    def post(self, request):
        ser = AccountCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        user = AccountService.create_account(actor_user_id=request.user.id, **ser.validated_data)
        return Response(identity_payload(user), status=status.HTTP_201_CREATED)
