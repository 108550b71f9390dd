from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock
from tinydb import Query, TinyDB

from formbuilder.utils import day_key, ensure_aware, new_ulid, now_utc, parse_dt, to_iso


def _newest_first(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(items, key=lambda x: (x["created_at"], x["id"]), reverse=True)


def _page(items: list[Any], page: int, page_size: int) -> list[Any]:
    start = (page - 1) * page_size
    return items[start : start + page_size]


class JSONRepoBase:
    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _db(self) -> Iterator[TinyDB]:
        with self._lock:
            db = TinyDB(self._path)
            try:
                yield db
            finally:
                db.close()


class JSONFormRepo(JSONRepoBase):
    def create_form(self, form: dict[str, Any]) -> dict[str, Any]:
        now = now_utc()
        record = self._to_record(
            {
                "description": "",
                "fields": [],
                "status": "draft",
                "submission_count": 0,
                "settings": {},
                **form,
                "id": form.get("id") or new_ulid(),
                "created_at": form.get("created_at") or now,
                "updated_at": form.get("updated_at") or now,
            }
        )
        with self._db() as db:
            db.table("forms").insert(record)
        return self._from_record(record)

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table("forms").get(Query().id == form_id)
        return self._from_record(item) if item else None

    def list_forms(
        self,
        status: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        terms = [term.lower() for term in (search or "").split()]

        def matches(record: dict[str, Any]) -> bool:
            if status and record.get("status") != status:
                return False
            if terms:
                haystacks = (
                    str(record.get("title") or "").lower(),
                    str(record.get("description") or "").lower(),
                )
                return any(term in text for term in terms for text in haystacks)
            return True

        with self._db() as db:
            items = db.table("forms").all()
        forms = _newest_first([self._from_record(item) for item in items if matches(item)])
        return _page(forms, page, page_size), len(forms)

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._db() as db:
            table = db.table("forms")
            item = table.get(Query().id == form_id)
            if not item:
                raise KeyError(form_id)
            for key in ("title", "description", "fields", "status", "settings"):
                if key in updates:
                    item[key] = updates[key]
            item["updated_at"] = to_iso(now_utc())
            table.update(item, Query().id == form_id)
        return self._from_record(item)

    def delete_form(self, form_id: str) -> bool:
        with self._db() as db:
            removed = db.table("forms").remove(Query().id == form_id)
        return bool(removed)

    def increment_submission_count(self, form_id: str) -> None:
        # The file lock is held for the whole read-modify-write.
        with self._db() as db:
            table = db.table("forms")
            item = table.get(Query().id == form_id)
            if not item:
                return
            table.update(
                {"submission_count": int(item.get("submission_count", 0)) + 1},
                Query().id == form_id,
            )

    @staticmethod
    def _to_record(form: dict[str, Any]) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for key, value in form.items():
            if key in {"created_at", "updated_at"}:
                record[key] = to_iso(value) if isinstance(value, datetime) else value
            else:
                record[key] = value
        return record

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "title": record.get("title", ""),
            "description": record.get("description", ""),
            "fields": record.get("fields", []),
            "status": record.get("status", "draft"),
            "submission_count": int(record.get("submission_count", 0)),
            "settings": record.get("settings", {}),
            "created_at": parse_dt(record.get("created_at")),
            "updated_at": parse_dt(record.get("updated_at")),
        }


class JSONSubmissionRepo(JSONRepoBase):
    def create_submission(self, submission: dict[str, Any]) -> dict[str, Any]:
        record = {
            "id": submission.get("id") or new_ulid(),
            "form_id": submission["form_id"],
            "data": submission.get("data", {}),
            "files": submission.get("files", []),
            "ip_address": submission.get("ip_address"),
            "user_agent": submission.get("user_agent"),
            "created_at": to_iso(submission.get("created_at") or now_utc()),
        }
        with self._db() as db:
            db.table("submissions").insert(record)
        return self._from_record(record)

    def list_submissions(
        self, form_id: str, page: int = 1, page_size: int = 50
    ) -> tuple[list[dict[str, Any]], int]:
        submissions = self.iter_submissions(form_id)
        return _page(submissions, page, page_size), len(submissions)

    def iter_submissions(self, form_id: str) -> list[dict[str, Any]]:
        with self._db() as db:
            items = db.table("submissions").search(Query().form_id == form_id)
        return _newest_first([self._from_record(item) for item in items])

    def count_submissions(
        self,
        form_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        return len(self._select(form_id, since, until))

    def count_by_day(
        self,
        tz: tzinfo,
        form_id: str | None = None,
        since: datetime | None = None,
    ) -> dict[str, int]:
        counts = Counter(
            day_key(item["created_at"], tz) for item in self._select(form_id, since, None)
        )
        return dict(sorted(counts.items()))

    def list_user_agents(self, form_id: str) -> list[str | None]:
        return [item["user_agent"] for item in self._select(form_id, None, None)]

    def delete_for_form(self, form_id: str) -> int:
        with self._db() as db:
            removed = db.table("submissions").remove(Query().form_id == form_id)
        return len(removed)

    def _select(
        self, form_id: str | None, since: datetime | None, until: datetime | None
    ) -> list[dict[str, Any]]:
        with self._db() as db:
            table = db.table("submissions")
            items = (
                table.search(Query().form_id == form_id)
                if form_id is not None
                else table.all()
            )
        submissions = [self._from_record(item) for item in items]
        if since is not None:
            lower = ensure_aware(since)
            submissions = [s for s in submissions if s["created_at"] >= lower]
        if until is not None:
            upper = ensure_aware(until)
            submissions = [s for s in submissions if s["created_at"] < upper]
        return submissions

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "form_id": record["form_id"],
            "data": record.get("data", {}),
            "files": record.get("files", []),
            "ip_address": record.get("ip_address"),
            "user_agent": record.get("user_agent"),
            "created_at": parse_dt(record.get("created_at")),
        }


class JSONStorage:
    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock")
        self.forms = JSONFormRepo(path, self._lock)
        self.submissions = JSONSubmissionRepo(path, self._lock)
