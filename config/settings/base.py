# config/settings/base.py
from pathlib import Path
import os
from decimal import Decimal
from dotenv import load_dotenv
from datetime import timedelta


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",

    # Domain apps (modular monolith)
    "hms_core.common.apps.CommonConfig",
    "hms_core.iam.apps.IamConfig",
    "hms_core.audit.apps.AuditConfig",
    "hms_core.patients.apps.PatientsConfig",
    "hms_core.staff.apps.StaffConfig",
    "hms_core.doctors.apps.DoctorsConfig",
    "hms_core.beds.apps.BedsConfig",
    "hms_core.pharmacy.apps.PharmacyConfig",
    "hms_core.prescriptions.apps.PrescriptionsConfig",
    "hms_core.revisits.apps.RevisitsConfig",
    "hms_core.dashboard.apps.DashboardConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "hms_core.common.middleware.RequestIdMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "hms"),
        "USER": os.getenv("DB_USER", "hms"),
        "PASSWORD": os.getenv("DB_PASSWORD", "hms"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Bulk stock workbooks can be large
DATA_UPLOAD_MAX_MEMORY_SIZE = 20 * 1024 * 1024
FILE_UPLOAD_MAX_MEMORY_SIZE = 20 * 1024 * 1024

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "hms_core.iam.auth.CookieOrHeaderJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "hms_core.common.openapi.HMSAutoSchema",
    "EXCEPTION_HANDLER": "hms_core.common.api.exceptions.api_exception_handler",
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
        "rest_framework.filters.SearchFilter",
    ],
    "DEFAULT_PAGINATION_CLASS": "hms_core.common.api.pagination.DefaultPagination",
    "COERCE_DECIMAL_TO_STRING": True,
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Hospital Management API",
    "DESCRIPTION": "Patients, beds, pharmacy, doctor scheduling, prescriptions, staff and revisits",
    "VERSION": "0.1.0",
    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,

    # Auth scheme declared in hms_core/iam/openapi.py
    "SECURITY": [
        {"BearerOrCookieJWT": []}
    ],
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "10"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "14"))),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": False,
    "UPDATE_LAST_LOGIN": True,

    # Cookie settings
    "AUTH_COOKIE": "hms_access",
    "AUTH_COOKIE_REFRESH": "hms_refresh",
    "AUTH_COOKIE_SECURE": False,   # True in prod (HTTPS)
    "AUTH_COOKIE_HTTP_ONLY": True,
    "AUTH_COOKIE_SAMESITE": "Lax",
}

CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = True
CORS_EXPOSE_HEADERS = ["X-Request-Id"]

LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": "hms_core.common.log_context.RequestIdLogFilter"},
    },
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["request_id"],
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "hms_core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# -------------------------------------------------------------------
# Hospital business rules
# -------------------------------------------------------------------
HMS_UHID_PREFIX = os.getenv("HMS_UHID_PREFIX", "AH")
HMS_PHARMACY_BILL_PREFIX = os.getenv("HMS_PHARMACY_BILL_PREFIX", "PH")
HMS_DEFAULT_TAX_PERCENT = Decimal(os.getenv("HMS_DEFAULT_TAX_PERCENT", "18"))
HMS_REGISTRATION_FEE = Decimal(os.getenv("HMS_REGISTRATION_FEE", "100"))
HMS_EXPIRY_ALERT_DAYS = int(os.getenv("HMS_EXPIRY_ALERT_DAYS", "90"))
HMS_MAX_APPOINTMENTS_PER_DAY = int(os.getenv("HMS_MAX_APPOINTMENTS_PER_DAY", "50"))
HMS_MAX_ADVANCE_BOOKING_DAYS = int(os.getenv("HMS_MAX_ADVANCE_BOOKING_DAYS", "90"))
HMS_PAGE_SIZE = int(os.getenv("HMS_PAGE_SIZE", "20"))
HMS_MAX_PAGE_SIZE = int(os.getenv("HMS_MAX_PAGE_SIZE", "200"))
# mobile-number logins are stored as <digits>@<domain>
HMS_LOGIN_EMAIL_DOMAIN = os.getenv("HMS_LOGIN_EMAIL_DOMAIN", "annammultispecialityhospital.com")
HMS_API_VERSION = SPECTACULAR_SETTINGS["VERSION"]
