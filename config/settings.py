"""
Ledgerline – Django Settings (Infrastructure Only)
===================================================
Django serves as the framework container for the ledger store.
The accounting core does not depend on Django; only core.ledger_store
and its tests do.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("LEDGERLINE_SECRET_KEY", "ledgerline-dev-key")

DEBUG = os.environ.get("LEDGERLINE_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # ── Ledgerline Modules ────────────────────────────────
    "core.ledger_store",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite for development and tests. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("LEDGERLINE_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "ledgerline": {
            "handlers": ["console"],
            "level": os.environ.get("LEDGERLINE_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

# ── Ledgerline ────────────────────────────────────────────────
# Optional overrides for core.config.rules.HierarchyConfig.from_mapping().
LEDGERLINE_HIERARCHY = {}
