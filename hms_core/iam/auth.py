# hms_core/iam/auth.py
from __future__ import annotations

from django.conf import settings
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    Access token from `Authorization: Bearer ...`, falling back to the HttpOnly
    access cookie set at login. Users whose staff or doctor profile has been
    deactivated are refused even with a still-valid token.
    """

    def _raw_token(self, request):
        header = self.get_header(request)
        if header is not None:
            return self.get_raw_token(header)
        return request.COOKIES.get(settings.SIMPLE_JWT.get("AUTH_COOKIE", "hms_access")) or None

    def authenticate(self, request):
        raw_token = self._raw_token(request)
        if raw_token is None:
            return None

        validated_token = self.get_validated_token(raw_token)
        # module-level import would cycle back through rest_framework.views
        from hms_core.iam.services import is_account_disabled

        user = self.get_user(validated_token)
        if is_account_disabled(user):
            raise AuthenticationFailed("Account disabled.", code="account_disabled")
        return user, validated_token
