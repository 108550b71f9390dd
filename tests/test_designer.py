import re
import unittest

from formbuilder.designer import (
    PALETTE,
    Bounds,
    FormDraft,
    add_field,
    add_option,
    move_field,
    new_field,
    remove_field,
    remove_option,
    set_length_rule,
    set_option,
    should_commit_move,
    update_field,
)
from formbuilder.schema import validate_form_payload


class FieldEditingTests(unittest.TestCase):
    def test_palette_covers_every_type(self):
        self.assertEqual(
            {field_type for field_type, _ in PALETTE},
            {"text", "email", "select", "checkbox", "radio", "textarea", "file"},
        )

    def test_new_field_defaults(self):
        text = new_field("text")
        self.assertRegex(text["id"], re.compile(r"^field_\d+_[0-9a-z]{9}$"))
        self.assertEqual(text["label"], "text Field")
        self.assertFalse(text["required"])
        self.assertNotIn("options", text)
        self.assertEqual(new_field("radio")["options"], ["Option 1", "Option 2"])
        with self.assertRaises(ValueError):
            new_field("slider")

    def test_new_fields_pass_validation(self):
        fields = []
        for field_type, _ in PALETTE:
            fields = add_field(fields, field_type)
        self.assertEqual(validate_form_payload({"title": "Draft", "fields": fields}), [])

    def test_operations_do_not_mutate_input(self):
        fields = [new_field("text", "a"), new_field("email", "b"), new_field("file", "c")]
        snapshot = [dict(item) for item in fields]
        moved = move_field(fields, 0, 2)
        self.assertEqual([item["id"] for item in moved], ["b", "c", "a"])
        updated = update_field(fields, "b", {"label": "Email address", "required": True})
        self.assertEqual(updated[1]["label"], "Email address")
        self.assertEqual([item["id"] for item in remove_field(fields, "a")], ["b", "c"])
        self.assertEqual(fields, snapshot)

    def test_option_and_length_helpers(self):
        radio = new_field("radio", "r")
        self.assertEqual(add_option(radio)["options"], ["Option 1", "Option 2", "New Option"])
        self.assertEqual(set_option(radio, 1, "Maybe")["options"], ["Option 1", "Maybe"])
        self.assertEqual(remove_option(radio, 0)["options"], ["Option 2"])
        text = {**new_field("text", "t"), "validation": {"minLength": 2}}
        self.assertEqual(set_length_rule(text, "maxLength", 10)["validation"],
                         {"minLength": 2, "maxLength": 10})
        self.assertEqual(set_length_rule(text, "minLength", None)["validation"], {})


class DragHitTestTests(unittest.TestCase):
    bounds = Bounds(top=100, bottom=140)

    def test_same_index_never_moves(self):
        self.assertFalse(should_commit_move(2, 2, 139, self.bounds))

    def test_moving_down_waits_for_the_middle(self):
        self.assertFalse(should_commit_move(0, 1, 110, self.bounds))
        self.assertTrue(should_commit_move(0, 1, 125, self.bounds))

    def test_moving_up_waits_for_the_middle(self):
        self.assertFalse(should_commit_move(3, 1, 130, self.bounds))
        self.assertTrue(should_commit_move(3, 1, 115, self.bounds))


class StubSource:
    def __init__(self):
        self.calls = []

    def create_form(self, payload):
        self.calls.append(("create", payload))
        return {**payload, "id": "new-id"}

    def update_form(self, form_id, payload):
        self.calls.append(("update", form_id))
        return {**payload, "id": form_id}


class FormDraftTests(unittest.TestCase):
    def test_save_creates_then_updates(self):
        source = StubSource()
        draft = FormDraft(title="Signup")
        draft.fields = add_field(draft.fields, "email")
        self.assertEqual(source.calls, [])
        draft.save(source)
        self.assertEqual(draft.form_id, "new-id")
        draft.title = "Signup v2"
        saved = draft.save(source)
        self.assertEqual(saved["title"], "Signup v2")
        self.assertEqual([call[0] for call in source.calls], ["create", "update"])

    def test_from_form(self):
        draft = FormDraft.from_form(
            {"id": "f1", "title": "T", "fields": [], "settings": {"submissionLimit": 5}}
        )
        self.assertEqual(draft.form_id, "f1")
        self.assertEqual(draft.settings["submissionLimit"], 5)
        self.assertIn("thankYouMessage", draft.settings)


if __name__ == "__main__":
    unittest.main()
