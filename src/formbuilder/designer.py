"""Form designer state: the ordered field list edited before a form is saved.

Every operation returns a new list and leaves its input untouched; the owner
of the draft replaces its whole field list with the result. Nothing here talks
to storage until :meth:`FormDraft.save` is called.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from formbuilder.config import FIELD_TYPES
from formbuilder.schema import DEFAULT_SETTINGS

if TYPE_CHECKING:
    from formbuilder.client import FormDataSource

PALETTE: tuple[tuple[str, str], ...] = (
    ("text", "Text Input"),
    ("email", "Email"),
    ("select", "Select"),
    ("checkbox", "Checkbox"),
    ("radio", "Radio"),
    ("textarea", "Text Area"),
    ("file", "File Upload"),
)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_field_id() -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"field_{int(time.time() * 1000)}_{suffix}"


def new_field(field_type: str, field_id: str | None = None) -> dict[str, Any]:
    if field_type not in FIELD_TYPES:
        raise ValueError(f"unknown field type: {field_type!r}")
    created: dict[str, Any] = {
        "id": field_id or generate_field_id(),
        "type": field_type,
        "label": f"{field_type} Field",
        "placeholder": "",
        "required": False,
    }
    if field_type in ("select", "radio"):
        created["options"] = ["Option 1", "Option 2"]
    return created


def add_field(fields: list[dict[str, Any]], field_type: str) -> list[dict[str, Any]]:
    return [*fields, new_field(field_type)]


def move_field(
    fields: list[dict[str, Any]], drag_index: int, hover_index: int
) -> list[dict[str, Any]]:
    reordered = list(fields)
    dragged = reordered.pop(drag_index)
    reordered.insert(hover_index, dragged)
    return reordered


@dataclass(frozen=True)
class Bounds:
    top: float
    bottom: float

    @property
    def half_height(self) -> float:
        return (self.bottom - self.top) / 2


def should_commit_move(
    drag_index: int, hover_index: int, pointer_y: float, bounds: Bounds
) -> bool:
    """Decide whether hovering over ``hover_index`` should reorder the list.

    The move only happens once the pointer has crossed the vertical middle of
    the hovered field, so the list does not flip back and forth while the
    pointer sits near an edge.
    """
    if drag_index == hover_index:
        return False
    offset = pointer_y - bounds.top
    if drag_index < hover_index and offset < bounds.half_height:
        return False
    if drag_index > hover_index and offset > bounds.half_height:
        return False
    return True


def update_field(
    fields: list[dict[str, Any]], field_id: str, changes: dict[str, Any]
) -> list[dict[str, Any]]:
    return [{**item, **changes} if item["id"] == field_id else item for item in fields]


def remove_field(fields: list[dict[str, Any]], field_id: str) -> list[dict[str, Any]]:
    return [item for item in fields if item["id"] != field_id]


def set_option(item: dict[str, Any], index: int, value: str) -> dict[str, Any]:
    options = list(item.get("options") or [])
    options[index] = value
    return {"options": options}


def add_option(item: dict[str, Any]) -> dict[str, Any]:
    return {"options": [*(item.get("options") or []), "New Option"]}


def remove_option(item: dict[str, Any], index: int) -> dict[str, Any]:
    options = [opt for i, opt in enumerate(item.get("options") or []) if i != index]
    return {"options": options}


def set_length_rule(item: dict[str, Any], key: str, value: int | None) -> dict[str, Any]:
    validation = dict(item.get("validation") or {})
    if value:
        validation[key] = value
    else:
        validation.pop(key, None)
    return {"validation": validation}


@dataclass
class FormDraft:
    title: str = "Untitled Form"
    description: str = ""
    fields: list[dict[str, Any]] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SETTINGS))
    status: str = "draft"
    form_id: str | None = None

    @classmethod
    def from_form(cls, form: dict[str, Any]) -> "FormDraft":
        return cls(
            title=form["title"],
            description=form.get("description", ""),
            fields=list(form.get("fields", [])),
            settings={**DEFAULT_SETTINGS, **form.get("settings", {})},
            status=form.get("status", "draft"),
            form_id=form.get("id"),
        )

    def payload(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "fields": self.fields,
            "settings": self.settings,
            "status": self.status,
        }

    def save(self, source: "FormDataSource") -> dict[str, Any]:
        if self.form_id is None:
            saved = source.create_form(self.payload())
            self.form_id = saved["id"]
        else:
            saved = source.update_form(self.form_id, self.payload())
        return saved
