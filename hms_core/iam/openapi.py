# hms_core/iam/openapi.py
from drf_spectacular.extensions import OpenApiAuthenticationExtension


class HospitalJWTScheme(OpenApiAuthenticationExtension):
    target_class = "hms_core.iam.auth.CookieOrHeaderJWTAuthentication"
    name = "hmsJWT"

    def get_security_definition(self, auto_schema):
        # shown as bearer so Swagger's "Authorize" button works; browsers use the cookie
        return {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Access token from /auth/login/. Also read from the hms_access cookie.",
        }
