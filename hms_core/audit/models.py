# hms_core/audit/models.py
from django.conf import settings
from django.db import models

from hms_core.common.models import UUIDModel


class AuditEvent(UUIDModel):
    """
    One state change on a clinical or financial record.

    Rows are written by AuditService.log inside the same transaction as the change
    they describe and are never edited afterwards. `request_id` ties the row to the
    access log line of the request that caused it.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # "<module>.<what happened>"
    entity_type = models.CharField(max_length=128, db_index=True)  # model name, e.g. "PharmacyBill"
    entity_id = models.UUIDField(db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )
    request_id = models.CharField(max_length=64, blank=True, db_index=True)

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_event"
        ordering = ["-occurred_at"]
        indexes = [
            models.Index(fields=["entity_type", "entity_id", "occurred_at"]),
            models.Index(fields=["event_code", "occurred_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"

    @property
    def module(self) -> str:
        return self.event_code.split(".", 1)[0]
