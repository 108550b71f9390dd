from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Any, Protocol


class FormRepository(Protocol):
    def create_form(self, form: dict[str, Any]) -> dict[str, Any]: ...

    def get_form(self, form_id: str) -> dict[str, Any] | None: ...

    def list_forms(
        self,
        status: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict[str, Any]], int]: ...

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]: ...

    def delete_form(self, form_id: str) -> bool: ...

    def increment_submission_count(self, form_id: str) -> None: ...


class SubmissionRepository(Protocol):
    def create_submission(self, submission: dict[str, Any]) -> dict[str, Any]: ...

    def list_submissions(
        self, form_id: str, page: int = 1, page_size: int = 50
    ) -> tuple[list[dict[str, Any]], int]: ...

    def iter_submissions(self, form_id: str) -> list[dict[str, Any]]: ...

    def count_submissions(
        self,
        form_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int: ...

    def count_by_day(
        self,
        tz: tzinfo,
        form_id: str | None = None,
        since: datetime | None = None,
    ) -> dict[str, int]: ...

    def list_user_agents(self, form_id: str) -> list[str | None]: ...

    def delete_for_form(self, form_id: str) -> int: ...


class Storage(Protocol):
    forms: FormRepository
    submissions: SubmissionRepository
