import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "rest_framework",
    "reputation",
    "reports",
    "appeals",
    "moderation",
    "common",
]

if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {"plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}},
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "plain"}},
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
}

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "memory://")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", None)
CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "0") == "1"

# Trust & safety
SAFETY_EVENT_EMITTER = os.environ.get("SAFETY_EVENT_EMITTER", "")
SAFETY_CLASSIFIER_PROVIDER = os.environ.get("SAFETY_CLASSIFIER_PROVIDER", "dummy")
SAFETY_CLASSIFIER_URL = os.environ.get("SAFETY_CLASSIFIER_URL", "https://api.openai.com/v1/moderations")
SAFETY_CLASSIFIER_API_KEY = os.environ.get("SAFETY_CLASSIFIER_API_KEY", "")
SAFETY_CLASSIFIER_TIMEOUT = float(os.environ.get("SAFETY_CLASSIFIER_TIMEOUT", "10"))
SAFETY_INITIAL_REPUTATION = int(os.environ.get("SAFETY_INITIAL_REPUTATION", "75"))
SAFETY_APPEAL_WINDOW_DAYS = int(os.environ.get("SAFETY_APPEAL_WINDOW_DAYS", "7"))
SAFETY_APPEAL_REVIEW_DAYS = int(os.environ.get("SAFETY_APPEAL_REVIEW_DAYS", "30"))
SAFETY_APPEAL_AUTO_APPROVE = os.environ.get("SAFETY_APPEAL_AUTO_APPROVE", "1") == "1"
