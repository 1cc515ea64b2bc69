# hms_core/dashboard/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from hms_core.common.permissions import DashboardPermission
from hms_core.dashboard.api.serializers import SECTION_SERIALIZERS, DashboardSerializer
from hms_core.dashboard.selectors import SECTIONS, dashboard_data, section


class DashboardViewSet(viewsets.ViewSet):
    """
    GET /dashboard/            everything the landing page needs in one payload
    GET /dashboard/<section>/  one block, e.g. /dashboard/quick-stats/
    """

    permission_classes = [DashboardPermission]
    lookup_value_regex = r"[a-z_-]+"

    serializer_class = DashboardSerializer

    @extend_schema(tags=["Dashboard"], responses={200: DashboardSerializer})
    def list(self, request):
        return Response(DashboardSerializer(dashboard_data()).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Dashboard"],
        responses={200: OpenApiTypes.OBJECT},
        parameters=[
            OpenApiParameter(
                name="id",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.PATH,
                enum=[s.replace("_", "-") for s in SECTIONS],
            ),
        ],
    )
    def retrieve(self, request, pk=None):
        name = str(pk).replace("-", "_")
        if name not in SECTIONS:
            raise NotFound(f"Unknown dashboard section '{pk}'.")

        ser = SECTION_SERIALIZERS[name](section(name))
        return Response(ser.data, status=status.HTTP_200_OK)
