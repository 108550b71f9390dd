from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Protocol

import httpx

from formbuilder.config import ALLOWED_UPLOAD_TYPES, Settings
from formbuilder.errors import ConfigurationError, UploadError

logger = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


class MediaUploader(Protocol):
    def ensure_configured(self) -> None: ...

    async def upload(
        self, filename: str, content: bytes, content_type: str | None
    ) -> dict[str, Any]: ...


def is_allowed_upload_type(content_type: str | None) -> bool:
    return (content_type or "") in ALLOWED_UPLOAD_TYPES


def sign_params(params: dict[str, Any], api_secret: str) -> str:
    payload = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{payload}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryUploader:
    def __init__(
        self,
        cloud_name: str | None,
        api_key: str | None,
        api_secret: str | None,
        folder: str = "formbuilder",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._folder = folder
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryUploader":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
            timeout=settings.upload_timeout,
        )

    def ensure_configured(self) -> None:
        if not (self._cloud_name and self._api_key and self._api_secret):
            raise ConfigurationError("Cloudinary not configured")

    async def upload(
        self, filename: str, content: bytes, content_type: str | None
    ) -> dict[str, Any]:
        self.ensure_configured()
        params: dict[str, Any] = {"timestamp": int(time.time())}
        if self._folder:
            params["folder"] = self._folder
        form = {
            **{key: str(value) for key, value in params.items()},
            "api_key": str(self._api_key),
            "signature": sign_params(params, str(self._api_secret)),
        }
        url = f"{CLOUDINARY_API_BASE}/{self._cloud_name}/auto/upload"
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, data=form, files=files)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as exc:
            raise UploadError(f"Upload of {filename!r} failed: {exc}") from exc
        except ValueError as exc:
            raise UploadError(f"Upload of {filename!r} returned invalid JSON") from exc

        if not body.get("secure_url"):
            raise UploadError(f"Upload of {filename!r} returned no URL")
        logger.info("Uploaded %s -> %s", filename, body["secure_url"])
        return {"url": body["secure_url"], "publicId": body.get("public_id")}
