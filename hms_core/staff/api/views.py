# hms_core/staff/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from hms_core.common.api.pagination import paginate
from hms_core.common.api.params import UUID_LOOKUP_REGEX, query_bool, query_date, query_uuid
from hms_core.common.permissions import StaffPermission
from hms_core.staff.api.serializers import (
    BulkDeleteSerializer,
    BulkResultSerializer,
    BulkUpdateSerializer,
    DepartmentCreateSerializer,
    DepartmentSerializer,
    ScheduleCreateSerializer,
    ScheduleUpdateSerializer,
    StaffScheduleSerializer,
    StaffSerializer,
    StaffStatsSerializer,
    StaffWriteSerializer,
)
from hms_core.staff.models import Department, Staff
from hms_core.staff.selectors import distinct_roles, list_departments, list_schedules, list_staff, staff_stats
from hms_core.staff.services import DepartmentService, ScheduleService, StaffService


def _actor(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


class StaffViewSet(viewsets.ViewSet):
    permission_classes = [StaffPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = StaffSerializer
    queryset = Staff.objects.none()

    @extend_schema(
        tags=["Staff"],
        responses={200: StaffSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="role", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="department", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False
            ),
            OpenApiParameter(
                name="is_active", type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY, required=False
            ),
            OpenApiParameter(name="q", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_staff(
            role=request.query_params.get("role") or None,
            department_id=query_uuid(request, "department"),
            is_active=query_bool(request, "is_active"),
            q=request.query_params.get("q", ""),
        )
        return paginate(request, qs, StaffSerializer)

    @extend_schema(tags=["Staff"], request=StaffWriteSerializer, responses={201: StaffSerializer})
    def create(self, request):
        ser = StaffWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        staff = StaffService.create_staff(actor_user_id=_actor(request), **ser.validated_data)
        return Response(StaffSerializer(staff).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Staff"], responses={200: StaffSerializer})
    def retrieve(self, request, pk=None):
        staff = Staff.objects.select_related("department").get(id=UUID(str(pk)))
        return Response(StaffSerializer(staff).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Staff"], request=StaffWriteSerializer, responses={200: StaffSerializer})
    def partial_update(self, request, pk=None):
        ser = StaffWriteSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        staff = StaffService.update_staff(
            actor_user_id=_actor(request),
            staff_id=UUID(str(pk)),
            data=ser.validated_data,
        )
        return Response(StaffSerializer(staff).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Staff"], request=StaffWriteSerializer, responses={200: StaffSerializer})
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Staff"], responses={204: None})
    def destroy(self, request, pk=None):
        StaffService.delete_staff(actor_user_id=_actor(request), staff_id=UUID(str(pk)))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Staff"], responses={200: StaffStatsSerializer})
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(StaffStatsSerializer(staff_stats()).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Staff"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=False, methods=["get"], url_path="roles")
    def roles(self, request):
        return Response({"roles": distinct_roles()}, status=status.HTTP_200_OK)

    @extend_schema(tags=["Staff"], request=BulkUpdateSerializer, responses={200: BulkResultSerializer})
    @action(detail=False, methods=["post"], url_path="bulk-update")
    def bulk_update(self, request):
        ser = BulkUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        count = StaffService.bulk_update(
            actor_user_id=_actor(request),
            staff_ids=ser.validated_data["ids"],
            data=ser.validated_data["data"],
        )
        return Response({"count": count}, status=status.HTTP_200_OK)

    @extend_schema(tags=["Staff"], request=BulkDeleteSerializer, responses={200: BulkResultSerializer})
    @action(detail=False, methods=["post"], url_path="bulk-delete")
    def bulk_delete(self, request):
        ser = BulkDeleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        count = StaffService.bulk_delete(actor_user_id=_actor(request), staff_ids=ser.validated_data["ids"])
        return Response({"count": count}, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Staff"],
        responses={200: StaffScheduleSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="staff", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="date_from", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False
            ),
            OpenApiParameter(name="date_to", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    @action(detail=False, methods=["get"], url_path="schedules")
    def schedules(self, request):
        qs = list_schedules(
            staff_id=query_uuid(request, "staff"),
            date_from=query_date(request, "date_from"),
            date_to=query_date(request, "date_to"),
        )
        return paginate(request, qs, StaffScheduleSerializer)

    @extend_schema(tags=["Staff"], request=ScheduleCreateSerializer, responses={201: StaffScheduleSerializer})
    @schedules.mapping.post
    def add_schedule(self, request):
        ser = ScheduleCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        schedule = ScheduleService.create_schedule(staff_id=data.pop("staff"), **data)
        return Response(StaffScheduleSerializer(schedule).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Staff"], request=ScheduleUpdateSerializer, responses={200: StaffScheduleSerializer})
    @action(detail=False, methods=["patch"], url_path=r"schedules/(?P<schedule_id>[^/.]+)")
    def update_schedule(self, request, schedule_id=None):
        ser = ScheduleUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        schedule = ScheduleService.update_schedule(schedule_id=UUID(str(schedule_id)), data=ser.validated_data)
        return Response(StaffScheduleSerializer(schedule).data, status=status.HTTP_200_OK)


class DepartmentViewSet(viewsets.ViewSet):
    permission_classes = [StaffPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = DepartmentSerializer
    queryset = Department.objects.none()

    @extend_schema(tags=["Staff"], responses={200: DepartmentSerializer(many=True)})
    def list(self, request):
        qs = list_departments(status=request.query_params.get("status") or None)
        return Response(DepartmentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Staff"], request=DepartmentCreateSerializer, responses={201: DepartmentSerializer})
    def create(self, request):
        ser = DepartmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        dept = DepartmentService.create_department(**ser.validated_data)
        return Response(DepartmentSerializer(dept).data, status=status.HTTP_201_CREATED)
