from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from formbuilder.errors import BusinessRuleError, UploadError
from formbuilder.media import is_allowed_upload_type

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_upload(request: Request, upload: UploadFile) -> bytes:
    if not is_allowed_upload_type(upload.content_type):
        raise BusinessRuleError("File type not allowed")
    content = await upload.read()
    if len(content) > request.app.state.settings.upload_max_bytes:
        raise BusinessRuleError(f"File {upload.filename!r} is too large")
    return content


def _uploaded(upload: UploadFile, content: bytes, result: dict[str, Any]) -> dict[str, Any]:
    return {
        "url": result["url"],
        "publicId": result.get("publicId"),
        "filename": upload.filename,
        "size": len(content),
        "mimetype": upload.content_type,
    }


@router.post("/api/upload", tags=["api/upload"])
async def upload_file(request: Request) -> JSONResponse:
    uploader = request.app.state.uploader
    form_data = await request.form()
    upload = form_data.get("file")
    if not isinstance(upload, UploadFile) or not upload.filename:
        raise BusinessRuleError("No file uploaded")
    content = await _read_upload(request, upload)
    uploader.ensure_configured()
    try:
        result = await uploader.upload(upload.filename, content, upload.content_type)
    except UploadError:
        logger.exception("Upload of %s failed", upload.filename)
        return JSONResponse({"error": "Upload failed"}, status_code=500)
    finally:
        await form_data.close()
    return JSONResponse(_uploaded(upload, content, result))


@router.post("/api/upload/multiple", tags=["api/upload"])
async def upload_files(request: Request) -> JSONResponse:
    uploader = request.app.state.uploader
    max_files = request.app.state.settings.upload_max_files
    form_data = await request.form()
    uploads = [
        item
        for item in form_data.getlist("files")
        if isinstance(item, UploadFile) and item.filename
    ]
    if not uploads:
        raise BusinessRuleError("No files uploaded")
    if len(uploads) > max_files:
        raise BusinessRuleError(f"Too many files (maximum {max_files})")
    contents = [await _read_upload(request, upload) for upload in uploads]
    uploader.ensure_configured()

    results: list[dict[str, Any]] = []
    for upload, content in zip(uploads, contents):
        try:
            result = await uploader.upload(upload.filename, content, upload.content_type)
        except UploadError:
            logger.exception("Upload of %s failed", upload.filename)
            results.append({"filename": upload.filename, "error": "Upload failed"})
            continue
        results.append(_uploaded(upload, content, result))
    await form_data.close()
    return JSONResponse({"files": results})
