# config/settings/local.py
import os

from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

# SQLite unless explicitly pointed at Postgres
if os.getenv("DB_ENGINE", "sqlite").lower() != "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
        }
    }
