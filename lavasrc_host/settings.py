"""
Django settings for the lavasrc host project
Used for local runs (manage.py) and the test-suite
"""

from pathlib import Path
import os
import dj_database_url
from dotenv import load_dotenv

# -------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")  # read .env locally

# -------------------------------------------------------------------
# Security
# -------------------------------------------------------------------
SECRET_KEY = os.getenv("DJANGO_SECRET", "CHANGE_ME_FOR_PRODUCTION")
DEBUG = os.getenv("DJANGO_DEBUG", "False") == "True"

raw_hosts = os.getenv("DJANGO_ALLOWED_HOSTS", "*")
ALLOWED_HOSTS = [h.strip() for h in raw_hosts.split(",") if h.strip()]

# -------------------------------------------------------------------
# Installed apps
# -------------------------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "lavasrc",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "lavasrc_host.urls"

# -------------------------------------------------------------------
# Database
# -------------------------------------------------------------------
# If DATABASE_URL env var is present (e.g. MariaDB / Postgres) prefer it
if os.getenv("DATABASE_URL"):
    DATABASES = {
        "default": dj_database_url.parse(
            os.getenv("DATABASE_URL"), conn_max_age=600, ssl_require=False
        )
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.sqlite3"),
            "NAME": os.getenv("DB_NAME", BASE_DIR / "db.sqlite3"),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# -------------------------------------------------------------------
# Cache (loc-mem by default, Redis if REDIS_URL set)
# -------------------------------------------------------------------
if os.getenv("REDIS_URL"):
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": os.getenv("REDIS_URL"),
            "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
            "TIMEOUT": 60 * 60,  # 1 hour
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "lavasrc-cache",
            "TIMEOUT": 60 * 10,  # 10 minutes
        }
    }

# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "plain"}},
    "root": {
        "handlers": ["console"],
        "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "lavasrc": {
            "handlers": ["console"],
            "level": os.getenv("LAVASRC_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

# -------------------------------------------------------------------
# REST framework
# -------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
}

# -------------------------------------------------------------------
# lavasrc sources
# -------------------------------------------------------------------
def _flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


LAVASRC = {
    "PROVIDERS": [
        'ytsearch:"%ISRC%"',
        "ytsearch:%QUERY%",
    ],
    "SOURCES": {
        "spotify": _flag("LAVASRC_SPOTIFY"),
        "applemusic": _flag("LAVASRC_APPLEMUSIC"),
        "deezer": _flag("LAVASRC_DEEZER"),
    },
    "LYRICS_SOURCES": {
        "spotify": _flag("LAVASRC_SPOTIFY_LYRICS"),
        "lrclib": _flag("LAVASRC_LRCLIB_LYRICS"),
    },
    "SPOTIFY": {
        "CLIENT_ID": os.getenv("SPOTIFY_CLIENT_ID", ""),
        "CLIENT_SECRET": os.getenv("SPOTIFY_CLIENT_SECRET", ""),
        "SP_DC": os.getenv("SPOTIFY_SP_DC", ""),
        "COUNTRY_CODE": os.getenv("SPOTIFY_COUNTRY_CODE", "US"),
        "PLAYLIST_LOAD_LIMIT": 6,
        "ALBUM_LOAD_LIMIT": 6,
    },
    "APPLEMUSIC": {
        "MEDIA_API_TOKEN": os.getenv("APPLEMUSIC_MEDIA_API_TOKEN", ""),
        "COUNTRY_CODE": os.getenv("APPLEMUSIC_COUNTRY_CODE", "us"),
    },
    "DATABASE": {
        "ENABLED": _flag("LAVASRC_DATABASE"),
        "ALIAS": "default",
        "SPOTIFY_TRACKS_TABLE": os.getenv(
            "LAVASRC_SPOTIFY_TRACKS_TABLE", "spotify_track_metadata"
        ),
    },
    "CACHE": {
        "ALIAS": "default",
        "EXPIRE_AFTER_ACCESS": 60 * 10,  # 10 minutes
        "EXPIRE_AFTER_WRITE": 60 * 60,   # 1 hour
    },
    "ITEM_LOADER": os.getenv("LAVASRC_ITEM_LOADER") or None,
}
