from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator

from formbuilder.config import FIELD_TYPES, FORM_STATUSES
from formbuilder.errors import ValidationError
from formbuilder.utils import to_iso

MAX_TITLE_LENGTH = 200
COPY_SUFFIX = " (Copy)"

SERVER_MAINTAINED_KEYS = {"id", "_id", "submissionCount", "createdAt", "updatedAt", "url"}

DEFAULT_SETTINGS: dict[str, Any] = {
    "thankYouMessage": "Thank you for your submission!",
    "submissionLimit": None,
    "allowFileUploads": False,
}

FIELD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "type", "label"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "type": {"enum": list(FIELD_TYPES)},
        "label": {"type": "string", "minLength": 1, "maxLength": 200},
        "placeholder": {"type": "string", "maxLength": 200},
        "required": {"type": "boolean"},
        "options": {"type": "array", "items": {"type": "string", "maxLength": 100}},
        "validation": {
            "type": ["object", "null"],
            "properties": {
                "minLength": {"type": "number", "minimum": 0, "maximum": 10000},
                "maxLength": {"type": "number", "minimum": 0, "maximum": 10000},
                "pattern": {"type": "string", "maxLength": 500},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
    "if": {"properties": {"type": {"enum": ["select", "radio"]}}, "required": ["type"]},
    "then": {"required": ["options"], "properties": {"options": {"minItems": 1}}},
}

SETTINGS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "thankYouMessage": {"type": "string", "maxLength": 1000},
        "submissionLimit": {"type": ["integer", "null"], "minimum": 1, "maximum": 10000},
        "allowFileUploads": {"type": "boolean"},
    },
    "additionalProperties": False,
}


def _form_schema(partial: bool) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "title": {"type": "string", "minLength": 1, "maxLength": MAX_TITLE_LENGTH},
            "description": {"type": "string", "maxLength": 1000},
            "fields": {"type": "array", "items": FIELD_SCHEMA},
            "status": {"enum": list(FORM_STATUSES)},
            "settings": SETTINGS_SCHEMA,
        },
        "additionalProperties": False,
    }
    if not partial:
        schema["required"] = ["title", "fields"]
    return schema


FORM_VALIDATOR = Draft7Validator(_form_schema(partial=False))
PARTIAL_FORM_VALIDATOR = Draft7Validator(_form_schema(partial=True))


def _error_location(error: Any) -> str:
    parts = [str(part) for part in error.absolute_path]
    if error.validator == "required" and isinstance(error.instance, dict):
        for name in error.validator_value:
            if name not in error.instance and repr(name) in error.message:
                parts.append(name)
                break
    return ".".join(parts)


def _duplicate_field_ids(fields: Any) -> list[dict[str, str]]:
    if not isinstance(fields, list):
        return []
    seen: set[str] = set()
    errors: list[dict[str, str]] = []
    for index, field in enumerate(fields):
        if not isinstance(field, dict) or not isinstance(field.get("id"), str):
            continue
        field_id = field["id"]
        if field_id in seen:
            errors.append(
                {"field": f"fields.{index}.id", "message": f"duplicate field id {field_id!r}"}
            )
        seen.add(field_id)
    return errors


def strip_server_keys(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in SERVER_MAINTAINED_KEYS}


def validate_form_payload(payload: Any, partial: bool = False) -> list[dict[str, str]]:
    """Return every violation in ``payload`` as ``{"field", "message"}`` dicts.

    Nothing short-circuits: a payload with a bad title and a bad field type
    reports both. ``partial`` drops the top-level required keys so that
    patches such as ``{"status": "published"}`` validate on their own.
    """
    if not isinstance(payload, dict):
        return [{"field": "", "message": "request body must be a JSON object"}]
    validator = PARTIAL_FORM_VALIDATOR if partial else FORM_VALIDATOR
    errors = sorted(
        validator.iter_errors(payload), key=lambda err: [str(p) for p in err.path]
    )
    details = [
        {"field": _error_location(error), "message": error.message} for error in errors
    ]
    details.extend(_duplicate_field_ids(payload.get("fields")))
    return details


def normalize_form_payload(payload: Any, partial: bool = False) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError(validate_form_payload(payload, partial))
    cleaned = strip_server_keys(payload)
    for key in ("title", "description"):
        if isinstance(cleaned.get(key), str):
            cleaned[key] = cleaned[key].strip()
    details = validate_form_payload(cleaned, partial)
    if details:
        raise ValidationError(details)

    updates: dict[str, Any] = {}
    for key in ("title", "description", "fields", "status"):
        if key in cleaned:
            updates[key] = cleaned[key]
    if "settings" in cleaned:
        updates["settings"] = cleaned["settings"]
    if not partial:
        updates.setdefault("description", "")
        updates.setdefault("status", "draft")
        updates["settings"] = {**DEFAULT_SETTINGS, **updates.get("settings", {})}
    return updates


def merge_form_update(form: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Apply a validated partial update to a stored form and re-validate it."""
    merged = {key: form[key] for key in ("title", "description", "fields", "status")}
    merged["settings"] = {**DEFAULT_SETTINGS, **form.get("settings", {})}
    for key, value in updates.items():
        if key == "settings":
            merged["settings"] = {**merged["settings"], **value}
        else:
            merged[key] = value
    details = validate_form_payload(merged)
    if details:
        raise ValidationError(details)
    return merged


def copy_title(title: str) -> str:
    """Title for a duplicated form, shortened so the suffix still fits."""
    return title[: MAX_TITLE_LENGTH - len(COPY_SUFFIX)] + COPY_SUFFIX


def form_output(form: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": form["id"],
        "title": form.get("title", ""),
        "description": form.get("description", ""),
        "fields": form.get("fields", []),
        "status": form.get("status", "draft"),
        "submissionCount": int(form.get("submission_count", 0)),
        "settings": {**DEFAULT_SETTINGS, **form.get("settings", {})},
        "createdAt": to_iso(form["created_at"]),
        "updatedAt": to_iso(form["updated_at"]),
        "url": f"/f/{form['id']}",
    }


def submission_output(submission: dict[str, Any]) -> dict[str, Any]:
    created_at = to_iso(submission["created_at"])
    return {
        "id": submission["id"],
        "formId": submission["form_id"],
        "data": submission.get("data", {}),
        "files": submission.get("files", []),
        "ipAddress": submission.get("ip_address"),
        "userAgent": submission.get("user_agent"),
        "createdAt": created_at,
        "submittedAt": created_at,
    }
