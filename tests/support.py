from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from formbuilder.config import Settings
from formbuilder.errors import ConfigurationError, UploadError


def make_settings(tmp: str, backend: str = "sqlite", **overrides: Any) -> Settings:
    settings = Settings()
    settings.storage_backend = backend
    settings.database_url = f"sqlite:///{Path(tmp) / 'formbuilder.db'}"
    settings.json_path = Path(tmp) / "formbuilder.json"
    settings.app_env = "development"
    settings.rate_limit_enabled = False
    settings.reporting_timezone = "UTC"
    settings.cloudinary_cloud_name = None
    settings.cloudinary_api_key = None
    settings.cloudinary_api_secret = None
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


def form_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "title": "Contact Form",
        "description": "Customer inquiries",
        "fields": [
            {"id": "name", "type": "text", "label": "Full Name", "required": True},
            {"id": "email", "type": "email", "label": "Email", "required": True},
        ],
        "status": "published",
        "settings": {"thankYouMessage": "Thanks!", "submissionLimit": None},
    }
    payload.update(overrides)
    return payload


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeUploader:
    """Records uploads and hands back predictable URLs."""

    def __init__(self, fail_on: set[str] | None = None, configured: bool = True) -> None:
        self.fail_on = fail_on or set()
        self.configured = configured
        self.uploads: list[tuple[str, bytes, str | None]] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("Cloudinary not configured")

    async def upload(
        self, filename: str, content: bytes, content_type: str | None
    ) -> dict[str, Any]:
        self.ensure_configured()
        if filename in self.fail_on:
            raise UploadError(f"Upload of {filename!r} failed")
        self.uploads.append((filename, content, content_type))
        return {
            "url": f"https://media.example.com/{filename}",
            "publicId": f"formbuilder/{filename}",
        }
