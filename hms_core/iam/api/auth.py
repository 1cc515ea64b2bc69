# hms_core/iam/api/auth.py
from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer

from hms_core.iam.api.me import identity_payload
from hms_core.iam.api.schema_serializers import (
    DetailSerializer,
    LoginRequestSerializer,
    LoginResponseSerializer,
)
from hms_core.iam.services import is_account_disabled, resolve_username

logger = logging.getLogger(__name__)


def _jwt(key: str, default=None):
    return settings.SIMPLE_JWT.get(key, default)


def _max_age(lifetime) -> int | None:
    return int(lifetime.total_seconds()) if isinstance(lifetime, timedelta) else None


def _set_auth_cookies(response: Response, *, access: str, refresh: str | None) -> None:
    common = {
        "httponly": True,
        "secure": bool(_jwt("AUTH_COOKIE_SECURE", False)),
        "samesite": _jwt("AUTH_COOKIE_SAMESITE", "Lax"),
        "path": "/",
    }
    response.set_cookie(
        _jwt("AUTH_COOKIE", "hms_access"),
        access,
        max_age=_max_age(_jwt("ACCESS_TOKEN_LIFETIME")),
        **common,
    )
    if refresh:
        response.set_cookie(
            _jwt("AUTH_COOKIE_REFRESH", "hms_refresh"),
            refresh,
            max_age=_max_age(_jwt("REFRESH_TOKEN_LIFETIME")),
            **common,
        )


class LoginView(APIView):
    """Username, email or mobile number plus password; tokens come back as HttpOnly cookies."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get_authenticate_header(self, request):
        # bad credentials answer 401, not the 403 DRF uses without an authenticator
        return 'Bearer realm="api"'

    @extend_schema(request=LoginRequestSerializer, responses={200: LoginResponseSerializer}, tags=["IAM"])
    def post(self, request):
        creds = LoginRequestSerializer(data=request.data)
        creds.is_valid(raise_exception=True)

        username = resolve_username(creds.validated_data["username"])
        tokens = TokenObtainPairSerializer(
            data={"username": username, "password": creds.validated_data["password"]}
        )
        tokens.is_valid(raise_exception=True)

        user = tokens.user
        if is_account_disabled(user):
            logger.warning("login refused for disabled account %s", username)
            raise AuthenticationFailed("Account disabled.", code="account_disabled")

        logger.info("login ok for %s", username)
        res = Response({"detail": "login ok", **identity_payload(user)}, status=status.HTTP_200_OK)
        _set_auth_cookies(res, access=tokens.validated_data["access"], refresh=tokens.validated_data["refresh"])
        return res


class RefreshView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(request=None, responses={200: DetailSerializer}, tags=["IAM"])
    def post(self, request):
        refresh = request.COOKIES.get(_jwt("AUTH_COOKIE_REFRESH", "hms_refresh")) or request.data.get("refresh")

        tokens = TokenRefreshSerializer(data={"refresh": refresh})
        tokens.is_valid(raise_exception=True)

        res = Response({"detail": "refreshed"}, status=status.HTTP_200_OK)
        # a new refresh token is only issued when rotation is on
        _set_auth_cookies(res, access=tokens.validated_data["access"], refresh=tokens.validated_data.get("refresh"))
        return res


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: DetailSerializer}, tags=["IAM"])
    def post(self, request):
        res = Response({"detail": "logged out"}, status=status.HTTP_200_OK)
        res.delete_cookie(_jwt("AUTH_COOKIE", "hms_access"), path="/")
        res.delete_cookie(_jwt("AUTH_COOKIE_REFRESH", "hms_refresh"), path="/")
        logger.info("logout for %s", request.user.get_username())
        return res
