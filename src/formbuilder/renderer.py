from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from jsonschema import Draft7Validator, FormatChecker

from formbuilder.utils import dumps_json

# (filename, content, mimetype)
FileValue = tuple[str, bytes, str]


def _field_schema(field: dict[str, Any]) -> dict[str, Any]:
    if field["type"] == "file":
        return {}
    if field["type"] == "checkbox":
        # The selected options, in the order they were ticked.
        items: dict[str, Any] = {"type": "string"}
        if field.get("options"):
            items["enum"] = list(field["options"])
        selected: dict[str, Any] = {"type": "array", "items": items}
        if field.get("required"):
            selected["minItems"] = 1
        return selected
    schema: dict[str, Any] = {"type": "string"}
    if field["type"] == "email":
        schema["format"] = "email"
    validation = field.get("validation") or {}
    if validation.get("minLength"):
        schema["minLength"] = int(validation["minLength"])
    if validation.get("maxLength"):
        schema["maxLength"] = int(validation["maxLength"])
    if field.get("required") and "minLength" not in schema:
        schema["minLength"] = 1
    return schema


def build_submission_schema(fields: list[dict[str, Any]]) -> dict[str, Any]:
    """Build the JSON Schema a filled-in form is checked against before submit."""
    return {
        "type": "object",
        "properties": {field["id"]: _field_schema(field) for field in fields},
        "required": [field["id"] for field in fields if field.get("required")],
    }


def validate_submission(
    fields: list[dict[str, Any]], values: dict[str, Any]
) -> list[dict[str, str]]:
    required = {field["id"] for field in fields if field.get("required")}
    # Blank optional inputs count as not filled in.
    present = {
        key: value
        for key, value in values.items()
        if key in required or value not in ("", None, [])
    }
    validator = Draft7Validator(
        build_submission_schema(fields), format_checker=FormatChecker()
    )
    details = []
    for error in sorted(validator.iter_errors(present), key=lambda err: list(map(str, err.path))):
        if error.validator == "minItems":
            details.append({"field": str(error.path[0]), "message": "This field is required"})
        elif error.validator == "required":
            name = next(
                key
                for key in error.validator_value
                if key not in error.instance and repr(key) in error.message
            )
            details.append({"field": name, "message": "This field is required"})
        elif error.validator == "format":
            details.append({"field": str(error.path[0]), "message": "Invalid email address"})
        else:
            details.append({"field": ".".join(map(str, error.path)), "message": error.message})
    return details


@dataclass(frozen=True)
class LimitState:
    limit: int | None
    count: int
    reached: bool
    approaching: bool


def limit_state(form: dict[str, Any]) -> LimitState:
    limit = (form.get("settings") or {}).get("submissionLimit")
    count = int(form.get("submissionCount", 0))
    reached = bool(limit) and count >= limit
    approaching = bool(limit) and not reached and count >= limit * 0.9
    return LimitState(limit=limit, count=count, reached=reached, approaching=approaching)


def build_multipart(
    fields: list[dict[str, Any]], values: dict[str, Any]
) -> tuple[dict[str, Any], list[tuple[str, FileValue]]]:
    """Pack form values the way the submission endpoint reads them.

    Attachments for file fields become one multipart file part each. Other
    lists travel as a JSON string and everything else as text, with falsy
    values sent as an empty string.
    """
    file_fields = {field["id"] for field in fields if field["type"] == "file"}
    data: dict[str, Any] = {}
    files: list[tuple[str, FileValue]] = []
    for key, value in values.items():
        if key in file_fields and isinstance(value, list):
            files.extend((key, item) for item in value)
        elif isinstance(value, list):
            data[key] = dumps_json(value)
        elif isinstance(value, bool):
            data[key] = "true" if value else ""
        else:
            data[key] = str(value or "")
    return data, files
