from __future__ import annotations

import math
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from formbuilder.analytics import dashboard_analytics
from formbuilder.errors import NotFoundError, ValidationError
from formbuilder.schema import (
    copy_title,
    form_output,
    merge_form_update,
    normalize_form_payload,
)

router = APIRouter()


def positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


def get_form_or_404(storage: Any, form_id: str) -> dict[str, Any]:
    form = storage.forms.get_form(form_id)
    if not form:
        raise NotFoundError("Form not found")
    return form


async def read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise ValidationError([{"field": "", "message": "request body must be valid JSON"}])


@router.get("/api/forms", tags=["api/forms"])
async def list_forms(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    params = request.query_params
    page = positive_int(params.get("page"), 1)
    limit = positive_int(params.get("limit"), 20)
    forms, total = storage.forms.list_forms(
        status=params.get("status") or None,
        search=params.get("search") or None,
        page=page,
        page_size=limit,
    )
    return JSONResponse(
        {
            "forms": [form_output(form) for form in forms],
            "pagination": pagination(page, limit, total),
        }
    )


@router.get("/api/forms/dashboard/analytics", tags=["api/analytics"])
async def get_dashboard_analytics(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    settings = request.app.state.settings
    return JSONResponse(dashboard_analytics(storage, tz=settings.reporting_tz))


@router.get("/api/forms/{form_id}", tags=["api/forms"])
async def get_form(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    return JSONResponse(form_output(get_form_or_404(storage, form_id)))


@router.post("/api/forms", tags=["api/forms"])
async def create_form(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    payload = await read_json(request)
    form = storage.forms.create_form(normalize_form_payload(payload))
    return JSONResponse(form_output(form), status_code=201)


@router.put("/api/forms/{form_id}", tags=["api/forms"])
async def update_form(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    form = get_form_or_404(storage, form_id)
    payload = await read_json(request)
    updates = normalize_form_payload(payload, partial=True)
    merged = merge_form_update(form, updates)
    try:
        updated = storage.forms.update_form(form_id, merged)
    except KeyError:
        raise NotFoundError("Form not found")
    return JSONResponse(form_output(updated))


@router.delete("/api/forms/{form_id}", tags=["api/forms"])
async def delete_form(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    if not storage.forms.delete_form(form_id):
        raise NotFoundError("Form not found")
    storage.submissions.delete_for_form(form_id)
    return JSONResponse({"message": "Form deleted successfully"})


@router.post("/api/forms/{form_id}/duplicate", tags=["api/forms"])
async def duplicate_form(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    original = get_form_or_404(storage, form_id)
    duplicated = storage.forms.create_form(
        {
            "title": copy_title(original["title"]),
            "description": original.get("description", ""),
            "fields": original.get("fields", []),
            "status": "draft",
            "settings": original.get("settings", {}),
        }
    )
    return JSONResponse(form_output(duplicated), status_code=201)
