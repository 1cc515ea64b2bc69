# hms_core/prescriptions/subscribers.py
from __future__ import annotations

import logging
from typing import Any, Dict

from hms_core.common.events import subscribe
from hms_core.prescriptions.services import PrescriptionService

logger = logging.getLogger(__name__)


@subscribe("pharmacy.bill.created")
def on_pharmacy_bill_created(payload: Dict[str, Any]) -> None:
    """Mark prescribed medicines as dispensed when a bill is raised against the prescription."""
    prescription_id = payload.get("prescription_id")
    if not prescription_id:
        return

    quantities = {row["medication_id"]: int(row["quantity"]) for row in payload.get("items") or []}
    PrescriptionService.record_dispensed(
        prescription_id=prescription_id,
        quantities=quantities,
        bill_id=payload.get("bill_id"),
    )
    logger.debug("dispense recorded for prescription %s", prescription_id)
