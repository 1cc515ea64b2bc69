# hms_core/iam/api/session.py
from __future__ import annotations

from django.conf import settings
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from hms_core.common.permissions import capabilities_for
from hms_core.iam.api.me import identity_payload
from hms_core.iam.api.schema_serializers import SessionBootstrapResponseSerializer


class SessionBootstrapView(APIView):
    """
    First call the frontend makes after login: who am I, which staff/doctor
    record am I, and which module actions may I use.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: SessionBootstrapResponseSerializer}, tags=["IAM"])
    def get(self, request):
        payload = identity_payload(request.user)
        payload.update(
            permissions=capabilities_for(request.user),
            server_time=timezone.now(),
            api_version=settings.HMS_API_VERSION,
        )
        return Response(payload)
