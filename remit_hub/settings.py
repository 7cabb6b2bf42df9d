import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths
BASE_DIR = Path(__file__).resolve().parent.parent

# Security settings
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "your-secret-key-here")
DEBUG = os.getenv("DJANGO_DEBUG", "True") == "True"

# When in DEBUG mode, allow all hosts for ease of development
if DEBUG:
    ALLOWED_HOSTS = ["*"]
else:
    ALLOWED_HOSTS = os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

# Application definition
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    # Third party apps
    "rest_framework",
    "corsheaders",
    "drf_spectacular",  # OpenAPI 3.0 schema generator
    # Local apps
    "apps.aggregator",
    "remit_hub",  # management commands
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "remit_hub.middleware.SecurityHeadersMiddleware",
    "remit_hub.middleware.RequestIDMiddleware",
    "remit_hub.middleware.RequestLoggingMiddleware",
]

# CORS settings
if DEBUG:
    CORS_ALLOW_ALL_ORIGINS = True  # Only in development
else:
    CORS_ALLOW_ALL_ORIGINS = False
    CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    CORS_ALLOW_METHODS = ["GET", "OPTIONS", "POST"]
    CORS_ALLOW_HEADERS = [
        "accept",
        "authorization",
        "content-type",
        "origin",
        "user-agent",
        "x-request-id",
    ]

ROOT_URLCONF = "remit_hub.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "remit_hub.wsgi.application"

# Transfers are not stored locally; the database only backs Django internals
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Cache settings: Redis when REDIS_URL is set, process memory otherwise
REDIS_URL = os.getenv("REDIS_URL")
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
                "SOCKET_CONNECT_TIMEOUT": 5,
                "SOCKET_TIMEOUT": 5,
                "IGNORE_EXCEPTIONS": True,  # Don't crash on Redis connection issues
                "PASSWORD": os.getenv("REDIS_PASSWORD", None),
            },
            "KEY_PREFIX": "remithub",
        },
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "remithub",
        },
    }

# Remittance providers: factory key -> constructor kwargs.
# A provider whose credentials are not set is left out of the hub.
REMITTANCE_PROVIDERS = {}

if os.getenv("WISE_API_KEY") and os.getenv("WISE_PROFILE_ID"):
    REMITTANCE_PROVIDERS["wise"] = {
        "api_key": os.getenv("WISE_API_KEY"),
        "profile_id": os.getenv("WISE_PROFILE_ID"),
        "sandbox": os.getenv("WISE_SANDBOX", "False") == "True",
    }

if os.getenv("REMITLY_API_KEY"):
    REMITTANCE_PROVIDERS["remitly"] = {
        "api_key": os.getenv("REMITLY_API_KEY"),
        "sandbox": os.getenv("REMITLY_SANDBOX", "False") == "True",
    }

if os.getenv("WORLDREMIT_API_KEY") and os.getenv("WORLDREMIT_API_SECRET"):
    REMITTANCE_PROVIDERS["worldremit"] = {
        "api_key": os.getenv("WORLDREMIT_API_KEY"),
        "api_secret": os.getenv("WORLDREMIT_API_SECRET"),
    }

REMITTANCE_HUB = {
    "QUOTE_TIMEOUT": float(os.getenv("REMITTANCE_QUOTE_TIMEOUT", "20")),
    "MAX_WORKERS": int(os.getenv("REMITTANCE_MAX_WORKERS", "10")),
    "RATE_CACHE_ALIAS": "default",
}

# REST Framework settings
REST_FRAMEWORK = {
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "EXCEPTION_HANDLER": "apps.aggregator.views.remittance_exception_handler",
    "COERCE_DECIMAL_TO_STRING": True,
}

# DRF Spectacular settings
SPECTACULAR_SETTINGS = {
    "TITLE": "Remittance Hub API",
    "DESCRIPTION": "Compare remittance quotes across providers and send through the one you pick",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SWAGGER_UI_SETTINGS": {
        "deepLinking": True,
        "displayOperationId": True,
        "docExpansion": "list",
        "filter": True,
    },
    "SORT_OPERATIONS": False,
}

# Logging configuration
LOG_FORMAT = os.getenv("LOG_FORMAT", "verbose")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "json": {
            "()": "json_log_formatter.JSONFormatter",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if LOG_FORMAT == "json" else "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
        },
        "django.request": {
            "handlers": ["console"],
            "level": "ERROR",
            "propagate": False,
        },
        "remit_hub": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console"],
            "level": os.getenv("REMITTANCE_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("DJANGO_LOG_LEVEL", "WARNING"),
    },
}

# Security settings for production
if not DEBUG:
    SECURE_SSL_REDIRECT = True
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"
