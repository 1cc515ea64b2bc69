# hms_core/prescriptions/apps.py
from __future__ import annotations

from django.apps import AppConfig


class PrescriptionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hms_core.prescriptions"

    def ready(self) -> None:
        # registers the pharmacy.bill.created handler
        from hms_core.prescriptions import subscribers  # noqa: F401
