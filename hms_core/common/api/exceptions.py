# hms_core/common/api/exceptions.py
from __future__ import annotations

import logging
import uuid
from typing import Any

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.db.models import ProtectedError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ConflictError(APIException):
    """
    409: the request is valid but the record's current state forbids it
    (bed occupied, stock short, slot taken, bill already cancelled).
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)


def ensure_request_id(request) -> str:
    """request.request_id as set by RequestIdMiddleware, or a fresh one for bare test requests."""
    rid = getattr(request, "request_id", None) if request is not None else None
    if not rid:
        rid = uuid.uuid4().hex
        if request is not None:
            request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


def _translate(exc: Exception) -> Exception:
    """Django/ORM errors that escape a service become their HTTP equivalents."""
    if isinstance(exc, ObjectDoesNotExist):
        return NotFound(str(exc) or "Not found.")
    if isinstance(exc, ProtectedError):
        names = sorted({type(obj).__name__ for obj in exc.protected_objects})
        return ConflictError(f"Record is still referenced by {', '.join(names) or 'other records'}.")
    if isinstance(exc, IntegrityError):
        return ConflictError("Record conflicts with existing data.")
    if isinstance(exc, DjangoValidationError):
        if hasattr(exc, "message_dict"):
            return ValidationError(exc.message_dict)
        return ValidationError(exc.messages)
    return exc


def _code_for(exc: Exception, http_status: int) -> str:
    if isinstance(exc, ValidationError):
        return "validation_error"
    if isinstance(exc, NotAuthenticated):
        return "not_authenticated"
    if isinstance(exc, PermissionDenied):
        return "permission_denied"
    if isinstance(exc, (Http404, NotFound)):
        return "not_found"
    if isinstance(exc, APIException):
        return getattr(exc, "default_code", None) or "api_error"
    return "server_error" if http_status >= 500 else "error"


def _message_and_details(data: Any) -> tuple[str, Any]:
    """
    {"detail": "..."}            -> message=detail, details=None
    {"detail": "...", **rest}    -> message=detail, details=rest
    anything else (field errors) -> "Request failed.", details=data
    """
    if isinstance(data, dict) and "detail" in data:
        detail = data["detail"]
        message = str(detail[0] if isinstance(detail, list) and detail else detail)
        rest = {k: v for k, v in data.items() if k != "detail"}
        return message, rest or None
    return "Request failed.", data


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")
    exc = _translate(exc)

    response = drf_exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception(
            "Unhandled error in %s",
            type(view).__name__ if view is not None else "unknown view",
            exc_info=exc,
        )
        return Response(
            build_error_envelope(request=request, code="server_error", message="Unexpected server error."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    code = _code_for(exc, response.status_code)
    message, details = _message_and_details(response.data)

    if response.status_code == status.HTTP_409_CONFLICT:
        logger.warning("conflict: %s", message)

    return Response(
        build_error_envelope(request=request, code=code, message=message, details=details),
        status=response.status_code,
        headers=response.headers,
    )
