# hms_core/common/middleware.py
from __future__ import annotations

import logging
import re
import time
import uuid

from hms_core.common.log_context import reset_request_id, set_request_id

logger = logging.getLogger(__name__)

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9\-_.]{1,64}$")


class RequestIdMiddleware:
    """
    Attaches a request id to every request.

    - Accepts a client supplied X-Request-Id (if sane), else generates one.
    - Exposes it as request.request_id (the error envelope reads it from there).
    - Echoes it back in the X-Request-Id response header.
    - Logs one access line per /api/ request.
    """

    HEADER = "X-Request-Id"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        incoming = request.headers.get(self.HEADER, "")
        rid = incoming if _VALID_REQUEST_ID.match(incoming or "") else uuid.uuid4().hex
        request.request_id = rid

        token = set_request_id(rid)
        started = time.monotonic()
        try:
            response = self.get_response(request)
            response[self.HEADER] = rid

            if request.path.startswith("/api/"):
                elapsed_ms = (time.monotonic() - started) * 1000
                logger.info(
                    "%s %s -> %s (%.1fms)",
                    request.method,
                    request.path,
                    response.status_code,
                    elapsed_ms,
                )
            return response
        finally:
            reset_request_id(token)
