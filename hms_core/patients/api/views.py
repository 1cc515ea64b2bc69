# hms_core/patients/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from hms_core.beds.api.serializers import BedAllocationSerializer
from hms_core.common.api.pagination import paginate
from hms_core.common.api.params import UUID_LOOKUP_REGEX
from hms_core.common.permissions import PatientPermission
from hms_core.patients.api.serializers import (
    PatientCreateSerializer,
    PatientSerializer,
    PatientUpdateSerializer,
    RegistrationChargesRequestSerializer,
    RegistrationChargesSerializer,
)
from hms_core.patients.models import Patient
from hms_core.patients.selectors import get_patient_by_uhid, patient_summary, search_patients
from hms_core.patients.services import PatientService
from hms_core.pharmacy.api.serializers import PharmacyBillSerializer
from hms_core.prescriptions.api.serializers import PrescriptionSerializer
from hms_core.revisits.api.serializers import PatientRevisitSerializer


def _actor(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


class PatientViewSet(viewsets.ViewSet):
    permission_classes = [PatientPermission]
    lookup_value_regex = UUID_LOOKUP_REGEX

    serializer_class = PatientSerializer
    queryset = Patient.objects.none()

    @extend_schema(
        tags=["Patients"],
        responses={200: PatientSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Search name, UHID, phone or email.",
            ),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = search_patients(
            q=request.query_params.get("q", ""),
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, PatientSerializer)

    @extend_schema(tags=["Patients"], request=PatientCreateSerializer, responses={201: PatientSerializer})
    def create(self, request):
        ser = PatientCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        data = dict(ser.validated_data)
        admission_type = data["admission_type"]
        doctor_id = data.pop("doctor", None)
        bed_id = data.pop("bed", None)

        patient = PatientService.register(actor_user_id=_actor(request), **data)

        body = PatientSerializer(patient).data
        if doctor_id or bed_id:
            charges = PatientService.registration_charges(
                admission_type=admission_type,
                doctor_id=doctor_id,
                bed_id=bed_id,
            )
            body["registration_charges"] = RegistrationChargesSerializer(charges).data

        return Response(body, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Patients"], responses={200: PatientSerializer})
    def retrieve(self, request, pk=None):
        patient = Patient.objects.get(id=UUID(str(pk)))
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Patients"], request=PatientUpdateSerializer, responses={200: PatientSerializer})
    def partial_update(self, request, pk=None):
        ser = PatientUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        patient = PatientService.update_patient(
            actor_user_id=_actor(request),
            patient_id=UUID(str(pk)),
            data=ser.validated_data,
        )
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Patients"], request=PatientUpdateSerializer, responses={200: PatientSerializer})
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Patients"], responses={200: PatientSerializer})
    @action(detail=False, methods=["get"], url_path=r"by-uhid/(?P<uhid>[^/]+)")
    def by_uhid(self, request, uhid=None):
        patient = get_patient_by_uhid(uhid)
        return Response(PatientSerializer(patient).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Patients"], responses={200: OpenApiTypes.OBJECT})
    @action(detail=True, methods=["get"], url_path="summary")
    def summary(self, request, pk=None):
        patient = Patient.objects.get(id=UUID(str(pk)))
        s = patient_summary(patient)

        current = s["current_allocation"]
        return Response(
            {
                "patient": PatientSerializer(s["patient"]).data,
                "current_allocation": BedAllocationSerializer(current).data if current else None,
                "bed_allocations": BedAllocationSerializer(s["bed_allocations"], many=True).data,
                "prescriptions": PrescriptionSerializer(s["prescriptions"], many=True).data,
                "revisits": PatientRevisitSerializer(s["revisits"], many=True).data,
                "pharmacy_bills": PharmacyBillSerializer(s["pharmacy_bills"], many=True).data,
            },
            status=status.HTTP_200_OK,
        )

    @extend_schema(
        tags=["Patients"],
        request=RegistrationChargesRequestSerializer,
        responses={200: RegistrationChargesSerializer},
    )
    @action(detail=False, methods=["post"], url_path="registration-charges")
    def registration_charges(self, request):
        ser = RegistrationChargesRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        charges = PatientService.registration_charges(
            admission_type=ser.validated_data["admission_type"],
            doctor_id=ser.validated_data.get("doctor"),
            bed_id=ser.validated_data.get("bed"),
        )
        return Response(RegistrationChargesSerializer(charges).data, status=status.HTTP_200_OK)
