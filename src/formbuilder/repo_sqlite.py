from __future__ import annotations

from collections import Counter
from datetime import datetime, tzinfo
from typing import Any

from sqlalchemy import create_engine, delete, func, or_, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from formbuilder.models import Base, FormModel, SubmissionModel
from formbuilder.utils import (
    day_key,
    dumps_json,
    ensure_aware,
    loads_json,
    new_ulid,
    now_utc,
)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SQLiteFormRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def create_form(self, form: dict[str, Any]) -> dict[str, Any]:
        now = now_utc()
        with self._Session() as session:
            row = FormModel(
                id=form.get("id") or new_ulid(),
                title=form["title"],
                description=form.get("description", ""),
                fields_json=dumps_json(form.get("fields", [])),
                status=form.get("status", "draft"),
                submission_count=form.get("submission_count", 0),
                settings_json=dumps_json(form.get("settings", {})),
                created_at=ensure_aware(form.get("created_at") or now),
                updated_at=ensure_aware(form.get("updated_at") or now),
            )
            session.add(row)
            session.commit()
            return self._to_dict(row)

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            return self._to_dict(row) if row else None

    def list_forms(
        self,
        status: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        conditions = []
        if status:
            conditions.append(FormModel.status == status)
        terms = (search or "").split()
        if terms:
            conditions.append(
                or_(
                    *(
                        column.ilike(_like_pattern(term), escape="\\")
                        for term in terms
                        for column in (FormModel.title, FormModel.description)
                    )
                )
            )
        with self._Session() as session:
            total = session.scalar(
                select(func.count()).select_from(FormModel).where(*conditions)
            )
            rows = session.scalars(
                select(FormModel)
                .where(*conditions)
                .order_by(FormModel.created_at.desc(), FormModel.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()
            return [self._to_dict(row) for row in rows], int(total or 0)

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                raise KeyError(form_id)
            for key, value in updates.items():
                if key in {"fields", "settings"}:
                    setattr(row, f"{key}_json", dumps_json(value))
                elif key in {"title", "description", "status"}:
                    setattr(row, key, value)
            row.updated_at = now_utc()
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_form(self, form_id: str) -> bool:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def increment_submission_count(self, form_id: str) -> None:
        with self._Session() as session:
            session.execute(
                update(FormModel)
                .where(FormModel.id == form_id)
                .values(submission_count=FormModel.submission_count + 1)
            )
            session.commit()

    @staticmethod
    def _to_dict(row: FormModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "title": row.title,
            "description": row.description or "",
            "fields": loads_json(row.fields_json) or [],
            "status": row.status or "draft",
            "submission_count": row.submission_count or 0,
            "settings": loads_json(row.settings_json) or {},
            "created_at": ensure_aware(row.created_at),
            "updated_at": ensure_aware(row.updated_at),
        }


class SQLiteSubmissionRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def create_submission(self, submission: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = SubmissionModel(
                id=submission.get("id") or new_ulid(),
                form_id=submission["form_id"],
                data_json=dumps_json(submission.get("data", {})),
                files_json=dumps_json(submission.get("files", [])),
                ip_address=submission.get("ip_address"),
                user_agent=submission.get("user_agent"),
                created_at=ensure_aware(submission.get("created_at") or now_utc()),
            )
            session.add(row)
            session.commit()
            return self._to_dict(row)

    def list_submissions(
        self, form_id: str, page: int = 1, page_size: int = 50
    ) -> tuple[list[dict[str, Any]], int]:
        with self._Session() as session:
            total = session.scalar(
                select(func.count())
                .select_from(SubmissionModel)
                .where(SubmissionModel.form_id == form_id)
            )
            rows = session.scalars(
                select(SubmissionModel)
                .where(SubmissionModel.form_id == form_id)
                .order_by(SubmissionModel.created_at.desc(), SubmissionModel.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()
            return [self._to_dict(row) for row in rows], int(total or 0)

    def iter_submissions(self, form_id: str) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = session.scalars(
                select(SubmissionModel)
                .where(SubmissionModel.form_id == form_id)
                .order_by(SubmissionModel.created_at.desc(), SubmissionModel.id.desc())
            ).all()
            return [self._to_dict(row) for row in rows]

    def count_submissions(
        self,
        form_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        query = select(func.count()).select_from(SubmissionModel).where(
            *self._conditions(form_id, since, until)
        )
        with self._Session() as session:
            return int(session.scalar(query) or 0)

    def count_by_day(
        self,
        tz: tzinfo,
        form_id: str | None = None,
        since: datetime | None = None,
    ) -> dict[str, int]:
        query = select(SubmissionModel.created_at).where(
            *self._conditions(form_id, since, None)
        )
        with self._Session() as session:
            stamps = session.scalars(query).all()
        counts = Counter(day_key(stamp, tz) for stamp in stamps)
        return dict(sorted(counts.items()))

    def list_user_agents(self, form_id: str) -> list[str | None]:
        with self._Session() as session:
            return list(
                session.scalars(
                    select(SubmissionModel.user_agent).where(
                        SubmissionModel.form_id == form_id
                    )
                ).all()
            )

    def delete_for_form(self, form_id: str) -> int:
        with self._Session() as session:
            result = session.execute(
                delete(SubmissionModel).where(SubmissionModel.form_id == form_id)
            )
            session.commit()
            return int(result.rowcount or 0)

    @staticmethod
    def _conditions(
        form_id: str | None, since: datetime | None, until: datetime | None
    ) -> list[Any]:
        conditions = []
        if form_id is not None:
            conditions.append(SubmissionModel.form_id == form_id)
        if since is not None:
            conditions.append(SubmissionModel.created_at >= ensure_aware(since))
        if until is not None:
            conditions.append(SubmissionModel.created_at < ensure_aware(until))
        return conditions

    @staticmethod
    def _to_dict(row: SubmissionModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "data": loads_json(row.data_json) or {},
            "files": loads_json(row.files_json) or [],
            "ip_address": row.ip_address,
            "user_agent": row.user_agent,
            "created_at": ensure_aware(row.created_at),
        }


class SQLiteStorage:
    def __init__(self, database_url: str) -> None:
        connect_args: dict[str, Any] = {}
        if make_url(database_url).get_backend_name() == "sqlite":
            connect_args["check_same_thread"] = False
        self._engine = create_engine(database_url, future=True, connect_args=connect_args)
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.forms = SQLiteFormRepo(self._Session)
        self.submissions = SQLiteSubmissionRepo(self._Session)

    def dispose(self) -> None:
        self._engine.dispose()
