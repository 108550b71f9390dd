from __future__ import annotations

import os
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

from sqlalchemy.engine import make_url

FIELD_TYPES = ("text", "email", "select", "checkbox", "radio", "textarea", "file")
FORM_STATUSES = ("draft", "published")
ALLOWED_UPLOAD_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.lower() in {"1", "true", "on", "yes"}


class Settings:
    def __init__(self) -> None:
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = _int_env("PORT", 5000)
        self.storage_backend = os.getenv("STORAGE_BACKEND", "sqlite").lower()
        self.database_url = os.getenv(
            "DATABASE_URL", "sqlite:///./data/formbuilder.db"
        )
        self.json_path = Path(os.getenv("JSON_PATH", "./data/formbuilder.json"))
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")
        self.app_env = os.getenv("APP_ENV", "development").lower()
        self.cloudinary_cloud_name = os.getenv("CLOUDINARY_CLOUD_NAME") or None
        self.cloudinary_api_key = os.getenv("CLOUDINARY_API_KEY") or None
        self.cloudinary_api_secret = os.getenv("CLOUDINARY_API_SECRET") or None
        self.cloudinary_folder = os.getenv("CLOUDINARY_FOLDER", "formbuilder")
        self.upload_max_bytes = _int_env("UPLOAD_MAX_BYTES", 10 * 1024 * 1024)
        self.upload_max_files = _int_env("UPLOAD_MAX_FILES", 10)
        self.upload_timeout = float(_int_env("UPLOAD_TIMEOUT", 30))
        self.reporting_timezone = os.getenv("REPORTING_TIMEZONE", "UTC")
        self.rate_limit_enabled = _bool_env("RATE_LIMIT_ENABLED", True)
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def reporting_tz(self) -> tzinfo:
        if self.reporting_timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.reporting_timezone)


def ensure_dirs(settings: Settings) -> None:
    if settings.storage_backend == "json":
        settings.json_path.parent.mkdir(parents=True, exist_ok=True)
        return
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
