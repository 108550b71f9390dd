"""Submission intake: the path a response takes from request to stored record.

The steps are not transactional. Files are uploaded before the submission is
stored and the form's counter is incremented after it; a crash between the
insert and the increment leaves the counter one short. That window is
accepted: the increment itself is the only atomic guarantee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from formbuilder.errors import BusinessRuleError, NotFoundError, UploadError
from formbuilder.media import MediaUploader
from formbuilder.protocols import Storage

logger = logging.getLogger(__name__)

MAX_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 500


@dataclass
class IncomingFile:
    field_id: str
    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value[:limit]


def check_accepting(form: dict[str, Any]) -> None:
    if form.get("status") != "published":
        raise BusinessRuleError("Form is not published")
    limit = (form.get("settings") or {}).get("submissionLimit")
    if limit and form.get("submission_count", 0) >= limit:
        raise BusinessRuleError("Submission limit reached")


async def upload_files(
    uploader: MediaUploader, files: list[IncomingFile]
) -> list[dict[str, Any]]:
    uploaded: list[dict[str, Any]] = []
    if not files:
        return uploaded
    uploader.ensure_configured()
    for incoming in files:
        try:
            result = await uploader.upload(
                incoming.filename, incoming.content, incoming.content_type
            )
        except UploadError:
            logger.exception(
                "File upload failed for field %s (%s); skipping",
                incoming.field_id,
                incoming.filename,
            )
            continue
        uploaded.append(
            {
                "fieldId": incoming.field_id,
                "filename": incoming.filename,
                "url": result["url"],
                "size": incoming.size,
                "mimetype": incoming.content_type,
            }
        )
    return uploaded


async def submit(
    storage: Storage,
    uploader: MediaUploader,
    form_id: str,
    data: dict[str, Any],
    files: list[IncomingFile] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    max_files: int = 10,
    max_file_bytes: int = 10 * 1024 * 1024,
) -> dict[str, Any]:
    files = files or []
    # Attachments alone do not make a submission.
    if not data:
        raise BusinessRuleError("Submission data is required")
    form = storage.forms.get_form(form_id)
    if not form:
        raise NotFoundError("Form not found")
    check_accepting(form)

    if len(files) > max_files:
        raise BusinessRuleError(f"Too many files (maximum {max_files})")
    for incoming in files:
        if incoming.size > max_file_bytes:
            raise BusinessRuleError(f"File {incoming.filename!r} is too large")

    uploaded = await upload_files(uploader, files)
    submission = storage.submissions.create_submission(
        {
            "form_id": form["id"],
            "data": data,
            "files": uploaded,
            "ip_address": _truncate(ip_address, MAX_IP_LENGTH),
            "user_agent": _truncate(user_agent, MAX_USER_AGENT_LENGTH),
        }
    )
    storage.forms.increment_submission_count(form["id"])
    logger.info(
        "Stored submission %s for form %s (%d file(s))",
        submission["id"],
        form["id"],
        len(uploaded),
    )
    return submission
