# hms_core/common/numbering.py
from __future__ import annotations

import re

from django.db.models import Model
from django.db.models.functions import Length


def next_sequence_number(*, model: type[Model], field: str, prefix: str, width: int = 4) -> str:
    """
    "<prefix><n+1>" where n is the highest number already issued under that prefix.

    Must be called inside the creating transaction: the latest row is read with
    select_for_update so two writers cannot hand out the same number (on Postgres).
    Ordering by length first keeps 10000 after 9999 once the width overflows.
    """
    latest = (
        model.objects.select_for_update()
        .filter(**{f"{field}__startswith": prefix})
        .order_by(Length(field).desc(), f"-{field}")
        .values_list(field, flat=True)
        .first()
    )

    n = 0
    if latest:
        m = re.match(rf"^{re.escape(prefix)}(\d+)$", latest.strip())
        if m:
            n = int(m.group(1))

    return f"{prefix}{n + 1:0{width}d}"
