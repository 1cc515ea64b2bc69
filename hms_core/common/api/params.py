from __future__ import annotations

from datetime import date
from uuid import UUID

from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

# router lookup for UUID primary keys; anything else 404s before reaching the view
UUID_LOOKUP_REGEX = r"[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}"


def query_uuid(request, name: str) -> UUID | None:
    raw = request.query_params.get(name) or None
    if raw is None:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError({name: f"Invalid {name} (UUID expected)"})


def query_date(request, name: str) -> date | None:
    raw = request.query_params.get(name) or None
    if raw is None:
        return None
    try:
        parsed = parse_date(raw)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({name: f"Invalid {name} (YYYY-MM-DD expected)"})
    return parsed


def query_bool(request, name: str) -> bool | None:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in ("1", "true", "yes"):
        return True
    if value in ("0", "false", "no"):
        return False
    raise ValidationError({name: f"Invalid {name} (true/false expected)"})
