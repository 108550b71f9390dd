from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

from formbuilder.utils import dumps_json, to_js_iso

_UNSAFE_FILENAME_CHARS = re.compile(r'[\x00-\x1f\x7f"\\/:*?<>|]')


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(_text(item) for item in value)
    if isinstance(value, dict):
        return dumps_json(value)
    return str(value)


def _cell_text(value: Any) -> str:
    # Falsy answers (False, 0, empty list) export as blank cells.
    return _text(value) if value else ""


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _describe_file(file_meta: dict[str, Any]) -> str:
    filename = file_meta.get("filename") or "Unknown file"
    size = file_meta.get("size")
    size_text = f"{size / 1024:.1f}KB" if size else "Unknown size"
    return f"{filename} ({size_text}): {file_meta.get('url', '')}"


def csv_headers(fields: list[dict[str, Any]]) -> list[str]:
    headers = ["Submitted At"]
    for field in fields:
        headers.append(field.get("label", ""))
        if field.get("type") == "file":
            headers.append(f"{field.get('label', '')} - File URLs")
    headers.append("All Uploaded Files")
    return headers


def csv_row(fields: list[dict[str, Any]], submission: dict[str, Any]) -> list[str]:
    data = submission.get("data") or {}
    files = submission.get("files") or []
    row = [to_js_iso(submission["created_at"])]
    for field in fields:
        row.append(_quote(_cell_text(data.get(field.get("id")))))
        if field.get("type") == "file":
            field_files = [f for f in files if f.get("fieldId") == field.get("id")]
            row.append(_quote(" | ".join(_describe_file(f) for f in field_files)))
    row.append(_quote(" | ".join(str(f.get("url", "")) for f in files)))
    return row


def export_csv(form: dict[str, Any], submissions: list[dict[str, Any]]) -> str:
    """Render submissions as CSV text.

    The header row is written as-is; every data cell after the timestamp is
    double-quoted with embedded quotes doubled.
    """
    fields = form.get("fields") or []
    lines = [",".join(csv_headers(fields))]
    lines.extend(",".join(csv_row(fields, submission)) for submission in submissions)
    return "".join(f"{line}\n" for line in lines)


def export_filename(form: dict[str, Any]) -> str:
    title = _UNSAFE_FILENAME_CHARS.sub("-", str(form.get("title") or "")).strip()
    return f"form-{title}-submissions.csv"


def content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
