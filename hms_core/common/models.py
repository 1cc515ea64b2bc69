# hms_core/common/models.py
from __future__ import annotations

import uuid

from django.db import models


class UUIDModel(models.Model):
    """
    Base for every hospital record: UUID primary key plus created/updated stamps.

    Human readable identifiers (UHID, IP number, bill and purchase numbers) are
    separate unique columns filled by hms_core.common.numbering.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
