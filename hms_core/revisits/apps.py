# hms_core/revisits/apps.py
from django.apps import AppConfig


class RevisitsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hms_core.revisits"
