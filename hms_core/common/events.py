# hms_core/common/events.py
"""
In-process domain events between apps that must not import each other.

    pharmacy.bill.created  {"bill_id", "prescription_id", "items": [{"medication_id", "quantity"}]}
        -> prescriptions.subscribers marks prescription lines as dispensed

Handlers run synchronously in the publisher's transaction, so a failing handler
rolls the publishing change back as well.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], None]

_handlers: dict[str, list[Handler]] = defaultdict(list)


def subscribe(event_name: str) -> Callable[[Handler], Handler]:
    def register(fn: Handler) -> Handler:
        if fn not in _handlers[event_name]:
            _handlers[event_name].append(fn)
        return fn

    return register


def publish(event_name: str, payload: dict[str, Any]) -> None:
    handlers = list(_handlers.get(event_name, ()))
    logger.debug("event %s -> %d handler(s)", event_name, len(handlers))
    for handler in handlers:
        handler(payload)
