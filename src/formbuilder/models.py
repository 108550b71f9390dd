from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class FormModel(Base):
    __tablename__ = "forms"
    __table_args__ = (Index("ix_forms_status_created_at", "status", "created_at"),)

    id = Column(String, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    fields_json = Column(Text)
    status = Column(String(16), default="draft")
    submission_count = Column(Integer, default=0, nullable=False)
    settings_json = Column(Text)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))


class SubmissionModel(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_form_id_created_at", "form_id", "created_at"),
        Index("ix_submissions_created_at", "created_at"),
    )

    id = Column(String, primary_key=True)
    form_id = Column(String, nullable=False)
    data_json = Column(Text)
    files_json = Column(Text)
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    created_at = Column(DateTime(timezone=True))
