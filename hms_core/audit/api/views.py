# hms_core/audit/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from hms_core.audit.api.serializers import AuditEventSerializer, EventCodesSerializer
from hms_core.audit.models import AuditEvent
from hms_core.audit.selectors import distinct_event_codes, entity_timeline, list_audit_events
from hms_core.common.api.pagination import clamp_limit
from hms_core.common.api.params import UUID_LOOKUP_REGEX, query_date, query_uuid
from hms_core.common.permissions import AuditPermission


class AuditEventViewSet(viewsets.ViewSet):
    """
    Read-only access to the audit log (ADMIN).
    """
    permission_classes = [AuditPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="entity_type",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Model name, e.g. Patient, BedAllocation, PharmacyBill.",
            ),
            OpenApiParameter(name="entity_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="event_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description='Exact code (bed.allocated) or a prefix ending in "*" (pharmacy.*).',
            ),
            OpenApiParameter(name="actor_user_id", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Max records to return (default 200, max 500).",
            ),
        ],
    )
    def list(self, request):
        actor_raw = request.query_params.get("actor_user_id") or ""
        actor_user_id = None
        if actor_raw:
            try:
                actor_user_id = int(actor_raw)
            except ValueError:
                raise ValidationError({"actor_user_id": "Invalid actor_user_id (int expected)"})

        qs = list_audit_events(
            entity_type=request.query_params.get("entity_type") or None,
            entity_id=query_uuid(request, "entity_id"),
            event_code=(request.query_params.get("event_code") or "").strip() or None,
            actor_user_id=actor_user_id,
            occurred_from=query_date(request, "date_from"),
            occurred_to=query_date(request, "date_to"),
        )
        limit = clamp_limit(request.query_params.get("limit"), default=200, maximum=500)
        return Response(AuditEventSerializer(qs[:limit], many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], responses={200: AuditEventSerializer})
    def retrieve(self, request, pk=None):
        event = AuditEvent.objects.select_related("actor_user").get(id=UUID(str(pk)))
        return Response(AuditEventSerializer(event).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], responses={200: AuditEventSerializer(many=True)})
    @action(
        detail=False,
        methods=["get"],
        url_path=rf"timeline/(?P<entity_type>[A-Za-z]+)/(?P<entity_id>{UUID_LOOKUP_REGEX})",
    )
    def timeline(self, request, entity_type=None, entity_id=None):
        """Everything that happened to one record, oldest first."""
        qs = entity_timeline(entity_type=entity_type, entity_id=UUID(str(entity_id)))
        return Response(AuditEventSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], responses={200: EventCodesSerializer})
    @action(detail=False, methods=["get"], url_path="event-codes")
    def event_codes(self, request):
        return Response({"event_codes": distinct_event_codes()}, status=status.HTTP_200_OK)
