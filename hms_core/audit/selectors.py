# hms_core/audit/selectors.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from django.db.models import QuerySet

from hms_core.audit.models import AuditEvent


def list_audit_events(
    *,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    event_code: str | None = None,
    actor_user_id: int | None = None,
    occurred_from: date | None = None,
    occurred_to: date | None = None,
) -> QuerySet[AuditEvent]:
    """
    Newest first. `event_code` ending in "*" matches a prefix, so "pharmacy.*"
    returns every pharmacy event.
    """
    qs = AuditEvent.objects.select_related("actor_user")

    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=entity_id)
    if event_code:
        if event_code.endswith("*"):
            qs = qs.filter(event_code__startswith=event_code[:-1])
        else:
            qs = qs.filter(event_code=event_code)
    if actor_user_id is not None:
        qs = qs.filter(actor_user_id=actor_user_id)
    if occurred_from:
        qs = qs.filter(occurred_at__date__gte=occurred_from)
    if occurred_to:
        qs = qs.filter(occurred_at__date__lte=occurred_to)

    return qs.order_by("-occurred_at")


def entity_timeline(*, entity_type: str, entity_id: UUID) -> QuerySet[AuditEvent]:
    return (
        AuditEvent.objects.select_related("actor_user")
        .filter(entity_type=entity_type, entity_id=entity_id)
        .order_by("occurred_at")
    )


def distinct_event_codes() -> list[str]:
    return list(AuditEvent.objects.order_by("event_code").values_list("event_code", flat=True).distinct())
