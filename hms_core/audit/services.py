# hms_core/audit/services.py
from __future__ import annotations

import json
import logging
from typing import Any
from uuid import UUID

from django.core.serializers.json import DjangoJSONEncoder

from hms_core.audit.models import AuditEvent
from hms_core.common.log_context import get_request_id

logger = logging.getLogger(__name__)


class AuditService:
    @staticmethod
    def log(
        *,
        event_code: str,
        entity_type: str,
        entity_id: UUID,
        actor_user_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """
        Record one change. Call it from inside the service transaction so the
        entry rolls back together with the change it describes.

        Metadata may carry dates, decimals and UUIDs; they are stored as strings.
        """
        rid = get_request_id()
        event = AuditEvent.objects.create(
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            request_id="" if rid == "-" else rid,
            metadata=json.loads(json.dumps(metadata or {}, cls=DjangoJSONEncoder)),
        )
        logger.debug("audit %s %s:%s", event_code, entity_type, entity_id)
        return event
