from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile

from formbuilder.analytics import form_analytics
from formbuilder.errors import BusinessRuleError
from formbuilder.export import content_disposition, export_csv, export_filename
from formbuilder.intake import IncomingFile, submit
from formbuilder.ratelimit import SUBMIT_RATE_LIMIT, limiter
from formbuilder.routes.forms import get_form_or_404, pagination, positive_int
from formbuilder.schema import submission_output

router = APIRouter()


async def read_submission_body(request: Request) -> tuple[dict[str, Any], list[IncomingFile]]:
    """Split a submission request into plain values and uploaded files.

    JSON bodies carry values only. Multipart and urlencoded bodies may repeat a
    key, in which case the values are collected into a list in arrival order.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            raise BusinessRuleError("Submission data is required")
        if not isinstance(payload, dict):
            raise BusinessRuleError("Submission data is required")
        return payload, []

    data: dict[str, Any] = {}
    files: list[IncomingFile] = []
    form_data = await request.form()
    for key, value in form_data.multi_items():
        if isinstance(value, UploadFile):
            if value.filename:
                files.append(
                    IncomingFile(
                        field_id=key,
                        filename=value.filename,
                        content=await value.read(),
                        content_type=value.content_type,
                    )
                )
            continue
        if key not in data:
            data[key] = value
        elif isinstance(data[key], list):
            data[key].append(value)
        else:
            data[key] = [data[key], value]
    await form_data.close()
    return data, files


@router.get("/api/forms/{form_id}/submissions", tags=["api/submissions"])
async def list_submissions(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    get_form_or_404(storage, form_id)
    page = positive_int(request.query_params.get("page"), 1)
    limit = positive_int(request.query_params.get("limit"), 50)
    submissions, total = storage.submissions.list_submissions(
        form_id, page=page, page_size=limit
    )
    return JSONResponse(
        {
            "submissions": [submission_output(item) for item in submissions],
            "pagination": pagination(page, limit, total),
        }
    )


@router.post("/api/forms/{form_id}/submissions", tags=["api/submissions"])
@limiter.limit(SUBMIT_RATE_LIMIT)
async def submit_form(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    settings = request.app.state.settings
    data, files = await read_submission_body(request)
    submission = await submit(
        storage,
        request.app.state.uploader,
        form_id,
        data,
        files=files,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        max_files=settings.upload_max_files,
        max_file_bytes=settings.upload_max_bytes,
    )
    return JSONResponse(submission_output(submission), status_code=201)


@router.get("/api/forms/{form_id}/analytics", tags=["api/analytics"])
async def get_form_analytics(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    settings = request.app.state.settings
    return JSONResponse(form_analytics(storage, form_id, tz=settings.reporting_tz))


@router.get("/api/forms/{form_id}/export", tags=["api/submissions"])
async def export_submissions(request: Request, form_id: str) -> Response:
    storage = request.app.state.storage
    form = get_form_or_404(storage, form_id)
    csv_text = export_csv(form, storage.submissions.iter_submissions(form_id))
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": content_disposition(export_filename(form))},
    )
