# hms_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter


class HMSAutoSchema(AutoSchema):
    """
    Global OpenAPI tweaks:

    - Documents the optional X-Request-Id header on every endpoint
      (echoed back by RequestIdMiddleware and carried in error envelopes).
    """

    REQUEST_ID_HEADER = OpenApiParameter(
        name="X-Request-Id",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.HEADER,
        required=False,
        description="Optional correlation id. Generated by the server when absent.",
    )

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])

        if not any(p.name.lower() == "x-request-id" for p in params):
            params.append(self.REQUEST_ID_HEADER)

        return params
