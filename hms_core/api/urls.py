# hms_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from hms_core.audit.api.views import AuditEventViewSet
from hms_core.beds.api.views import BedAllocationViewSet, BedViewSet
from hms_core.common.api.health import HealthView
from hms_core.dashboard.api.views import DashboardViewSet
from hms_core.doctors.api.views import AppointmentViewSet, DoctorViewSet
from hms_core.iam.api.accounts import AccountView
from hms_core.iam.api.auth import LoginView, LogoutView, RefreshView
from hms_core.iam.api.me import MeView
from hms_core.iam.api.session import SessionBootstrapView
from hms_core.patients.api.views import PatientViewSet
from hms_core.pharmacy.api.views import (
    BulkUploadViewSet,
    DrugPurchaseViewSet,
    MedicationViewSet,
    PharmacyBillViewSet,
    SupplierViewSet,
)
from hms_core.prescriptions.api.views import PrescriptionViewSet
from hms_core.revisits.api.views import RevisitViewSet
from hms_core.staff.api.views import DepartmentViewSet, StaffViewSet

router = DefaultRouter()

router.register(r"patients", PatientViewSet, basename="patients")
router.register(r"revisits", RevisitViewSet, basename="revisits")

router.register(r"doctors", DoctorViewSet, basename="doctors")
router.register(r"appointments", AppointmentViewSet, basename="appointments")

router.register(r"staff", StaffViewSet, basename="staff")
router.register(r"departments", DepartmentViewSet, basename="departments")

router.register(r"beds", BedViewSet, basename="beds")
router.register(r"bed-allocations", BedAllocationViewSet, basename="bed-allocations")

# Pharmacy
router.register(r"pharmacy/medications", MedicationViewSet, basename="pharmacy-medications")
router.register(r"pharmacy/bills", PharmacyBillViewSet, basename="pharmacy-bills")
router.register(r"pharmacy/suppliers", SupplierViewSet, basename="pharmacy-suppliers")
router.register(r"pharmacy/purchases", DrugPurchaseViewSet, basename="pharmacy-purchases")
router.register(r"pharmacy/bulk-upload", BulkUploadViewSet, basename="pharmacy-bulk-upload")

router.register(r"prescriptions", PrescriptionViewSet, basename="prescriptions")
router.register(r"dashboard", DashboardViewSet, basename="dashboard")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    # Auth + /me + session bootstrap
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),
    path("session/bootstrap/", SessionBootstrapView.as_view(), name="session-bootstrap"),
    path("accounts/", AccountView.as_view(), name="accounts"),
    path("health/", HealthView.as_view(), name="health"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
