"""Data sources used by the designer and renderer.

``RemoteDataSource`` talks to the REST API. ``InMemoryDataSource`` keeps forms
and submissions in process memory, seeded with two sample forms, for working
without a backend. :func:`open_data_source` picks one of them once, up front;
a source never falls back to the other on a per-call basis.
"""

from __future__ import annotations

import copy
import logging
from datetime import timedelta
from typing import Any, Protocol

import httpx

from formbuilder.analytics import WEEKDAYS, growth_percentage
from formbuilder.errors import (
    BusinessRuleError,
    FormBuilderError,
    NotFoundError,
    ValidationError,
)
from formbuilder.export import export_csv
from formbuilder.intake import check_accepting
from formbuilder.renderer import FileValue
from formbuilder.schema import (
    copy_title,
    form_output,
    merge_form_update,
    normalize_form_payload,
    submission_output,
)
from formbuilder.utils import new_ulid, now_utc

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"


class FormDataSource(Protocol):
    def list_forms(self) -> list[dict[str, Any]]: ...

    def get_form(self, form_id: str) -> dict[str, Any]: ...

    def create_form(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    def update_form(self, form_id: str, payload: dict[str, Any]) -> dict[str, Any]: ...

    def delete_form(self, form_id: str) -> None: ...

    def duplicate_form(self, form_id: str) -> dict[str, Any]: ...

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]: ...

    def submit_form(
        self,
        form_id: str,
        data: dict[str, Any],
        files: list[tuple[str, FileValue]] | None = None,
    ) -> dict[str, Any]: ...

    def get_analytics(self, form_id: str) -> dict[str, Any]: ...

    def get_dashboard_analytics(self) -> dict[str, Any]: ...

    def export_csv(self, form_id: str) -> str: ...

    def upload_file(self, filename: str, content: bytes, mimetype: str) -> dict[str, Any]: ...


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = body.get("error") or response.reason_phrase
    if response.status_code == 404:
        raise NotFoundError(message)
    if response.status_code == 400 and "details" in body:
        raise ValidationError(body["details"], message)
    if response.status_code == 400:
        raise BusinessRuleError(message)
    error = FormBuilderError(message)
    error.status_code = response.status_code
    raise error


class RemoteDataSource:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = self._client.request(method, path, **kwargs)
        _raise_for_error(response)
        return response

    def list_forms(self) -> list[dict[str, Any]]:
        return self._request("GET", "/api/forms").json()["forms"]

    def get_form(self, form_id: str) -> dict[str, Any]:
        return self._request("GET", f"/api/forms/{form_id}").json()

    def create_form(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/api/forms", json=payload).json()

    def update_form(self, form_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/api/forms/{form_id}", json=payload).json()

    def delete_form(self, form_id: str) -> None:
        self._request("DELETE", f"/api/forms/{form_id}")

    def duplicate_form(self, form_id: str) -> dict[str, Any]:
        return self._request("POST", f"/api/forms/{form_id}/duplicate").json()

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/api/forms/{form_id}/submissions").json()["submissions"]

    def submit_form(
        self,
        form_id: str,
        data: dict[str, Any],
        files: list[tuple[str, FileValue]] | None = None,
    ) -> dict[str, Any]:
        response = self._request(
            "POST", f"/api/forms/{form_id}/submissions", data=data, files=files or None
        )
        return response.json()

    def get_analytics(self, form_id: str) -> dict[str, Any]:
        return self._request("GET", f"/api/forms/{form_id}/analytics").json()

    def get_dashboard_analytics(self) -> dict[str, Any]:
        return self._request("GET", "/api/forms/dashboard/analytics").json()

    def export_csv(self, form_id: str) -> str:
        return self._request("GET", f"/api/forms/{form_id}/export").text

    def upload_file(self, filename: str, content: bytes, mimetype: str) -> dict[str, Any]:
        files = {"file": (filename, content, mimetype)}
        return self._request("POST", "/api/upload", files=files).json()


def sample_forms() -> list[dict[str, Any]]:
    now = now_utc()
    common = {"created_at": now, "updated_at": now}
    return [
        {
            "id": "1",
            "title": "Contact Form",
            "description": "A simple contact form for customer inquiries",
            "fields": [
                {
                    "id": "name",
                    "type": "text",
                    "label": "Full Name",
                    "placeholder": "Enter your full name",
                    "required": True,
                },
                {
                    "id": "email",
                    "type": "email",
                    "label": "Email Address",
                    "placeholder": "Enter your email",
                    "required": True,
                },
                {
                    "id": "message",
                    "type": "textarea",
                    "label": "Message",
                    "placeholder": "Enter your message",
                    "required": True,
                },
            ],
            "status": "published",
            "submission_count": 42,
            "settings": {
                "thankYouMessage": "Thank you for contacting us!",
                "allowFileUploads": False,
            },
            **common,
        },
        {
            "id": "2",
            "title": "Survey Form",
            "description": "Customer satisfaction survey",
            "fields": [
                {
                    "id": "rating",
                    "type": "select",
                    "label": "How would you rate our service?",
                    "required": True,
                    "options": ["Excellent", "Good", "Average", "Poor"],
                },
            ],
            "status": "draft",
            "submission_count": 15,
            "settings": {
                "thankYouMessage": "Thank you for your feedback!",
                "allowFileUploads": False,
            },
            **common,
        },
    ]


class InMemoryDataSource:
    """Process-local forms and submissions for offline use.

    Files passed to :meth:`submit_form` or :meth:`upload_file` are recorded
    by name and size only; nothing is uploaded.
    """

    def __init__(self, forms: list[dict[str, Any]] | None = None) -> None:
        seeded = sample_forms() if forms is None else copy.deepcopy(forms)
        self._forms: list[dict[str, Any]] = seeded
        self._submissions: list[dict[str, Any]] = []

    def _find(self, form_id: str) -> dict[str, Any]:
        for form in self._forms:
            if form["id"] == form_id:
                return form
        raise NotFoundError("Form not found")

    def list_forms(self) -> list[dict[str, Any]]:
        return [form_output(form) for form in self._forms]

    def get_form(self, form_id: str) -> dict[str, Any]:
        return form_output(self._find(form_id))

    def create_form(self, payload: dict[str, Any]) -> dict[str, Any]:
        now = now_utc()
        form = {
            **normalize_form_payload(payload),
            "id": new_ulid(),
            "submission_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        self._forms.insert(0, form)
        return form_output(form)

    def update_form(self, form_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        form = self._find(form_id)
        updates = normalize_form_payload(payload, partial=True)
        form.update(merge_form_update(form, updates))
        form["updated_at"] = now_utc()
        return form_output(form)

    def delete_form(self, form_id: str) -> None:
        form = self._find(form_id)
        self._forms.remove(form)
        self._submissions = [s for s in self._submissions if s["form_id"] != form_id]

    def duplicate_form(self, form_id: str) -> dict[str, Any]:
        original = self._find(form_id)
        now = now_utc()
        duplicated = {
            **copy.deepcopy(original),
            "id": new_ulid(),
            "title": copy_title(original["title"]),
            "status": "draft",
            "submission_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        self._forms.insert(0, duplicated)
        return form_output(duplicated)

    def _form_submissions(self, form_id: str) -> list[dict[str, Any]]:
        return [s for s in reversed(self._submissions) if s["form_id"] == form_id]

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]:
        self._find(form_id)
        return [submission_output(s) for s in self._form_submissions(form_id)]

    def submit_form(
        self,
        form_id: str,
        data: dict[str, Any],
        files: list[tuple[str, FileValue]] | None = None,
    ) -> dict[str, Any]:
        if not data:
            raise BusinessRuleError("Submission data is required")
        form = self._find(form_id)
        check_accepting(form)
        submission = {
            "id": new_ulid(),
            "form_id": form_id,
            "data": dict(data),
            "files": [
                {
                    "fieldId": field_id,
                    "filename": filename,
                    "url": "",
                    "size": len(content),
                    "mimetype": mimetype,
                }
                for field_id, (filename, content, mimetype) in files or []
            ],
            "ip_address": None,
            "user_agent": None,
            "created_at": now_utc(),
        }
        self._submissions.append(submission)
        form["submission_count"] = form.get("submission_count", 0) + 1
        return submission_output(submission)

    def get_analytics(self, form_id: str) -> dict[str, Any]:
        raise FormBuilderError("Analytics are only available from the API server")

    def get_dashboard_analytics(self) -> dict[str, Any]:
        today = now_utc().date()
        days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
        counts = {day: 0 for day in days}
        previous_week = 0
        for submission in self._submissions:
            day = submission["created_at"].date()
            if day in counts:
                counts[day] += 1
            elif days[0] - timedelta(days=7) <= day < days[0]:
                previous_week += 1
        chart_data = [
            {"name": WEEKDAYS[day.weekday()], "submissions": counts[day], "date": day.isoformat()}
            for day in days
        ]
        total = sum(counts.values())
        return {
            "chartData": chart_data,
            "totalThisWeek": total,
            "previousWeek": previous_week,
            "growthPercentage": growth_percentage(total, previous_week),
        }

    def export_csv(self, form_id: str) -> str:
        return export_csv(self._find(form_id), self._form_submissions(form_id))

    def upload_file(self, filename: str, content: bytes, mimetype: str) -> dict[str, Any]:
        return {
            "url": "",
            "publicId": None,
            "filename": filename,
            "size": len(content),
            "mimetype": mimetype,
        }


def open_data_source(
    base_url: str = DEFAULT_BASE_URL,
    client: httpx.Client | None = None,
    timeout: float = 5.0,
) -> FormDataSource:
    """Return a remote source if the API answers its health check, else an in-memory one."""
    remote = RemoteDataSource(base_url, client=client, timeout=timeout)
    try:
        remote._request("GET", "/api/health")
    except (httpx.HTTPError, FormBuilderError) as exc:
        logger.warning("API at %s is not reachable (%s); using in-memory data", base_url, exc)
        if client is None:
            remote.close()
        return InMemoryDataSource()
    return remote
