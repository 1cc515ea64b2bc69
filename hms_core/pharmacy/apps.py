# hms_core/pharmacy/apps.py
from django.apps import AppConfig


class PharmacyConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hms_core.pharmacy"
