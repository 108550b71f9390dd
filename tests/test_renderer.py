import json
import unittest

from formbuilder.renderer import (
    build_multipart,
    build_submission_schema,
    limit_state,
    validate_submission,
)

FIELDS = [
    {"id": "name", "type": "text", "label": "Name", "required": True,
     "validation": {"minLength": 2, "maxLength": 5}},
    {"id": "email", "type": "email", "label": "Email"},
    {"id": "tags", "type": "checkbox", "label": "Tags"},
    {"id": "cv", "type": "file", "label": "CV", "required": False},
]


class SchemaTests(unittest.TestCase):
    def test_schema_shape(self):
        schema = build_submission_schema(FIELDS)
        self.assertEqual(schema["required"], ["name"])
        self.assertEqual(
            schema["properties"]["name"], {"type": "string", "minLength": 2, "maxLength": 5}
        )
        self.assertEqual(schema["properties"]["email"], {"type": "string", "format": "email"})
        self.assertEqual(schema["properties"]["cv"], {})

    def test_valid_values(self):
        self.assertEqual(validate_submission(FIELDS, {"name": "Ada", "email": ""}), [])

    def test_reports_each_problem(self):
        details = validate_submission(FIELDS, {"email": "not-an-email"})
        self.assertEqual(
            details,
            [
                {"field": "name", "message": "This field is required"},
                {"field": "email", "message": "Invalid email address"},
            ],
        )
        too_long = validate_submission(FIELDS, {"name": "Adelaide"})
        self.assertEqual([d["field"] for d in too_long], ["name"])


class CheckboxTests(unittest.TestCase):
    fields = [
        {"id": "langs", "type": "checkbox", "label": "Languages", "required": True,
         "options": ["en", "fr"]},
        {"id": "extras", "type": "checkbox", "label": "Extras", "options": ["a"]},
    ]

    def test_schema_lists_selected_options(self):
        self.assertEqual(
            build_submission_schema(self.fields)["properties"]["langs"],
            {"type": "array", "items": {"type": "string", "enum": ["en", "fr"]}, "minItems": 1},
        )

    def test_selected_options(self):
        self.assertEqual(
            validate_submission(self.fields, {"langs": ["fr", "en"], "extras": []}), []
        )
        self.assertEqual(
            validate_submission(self.fields, {"langs": []}),
            [{"field": "langs", "message": "This field is required"}],
        )
        unknown = validate_submission(self.fields, {"langs": ["de"]})
        self.assertEqual([d["field"] for d in unknown], ["langs.0"])


class LimitStateTests(unittest.TestCase):
    def _form(self, count, limit):
        return {"submissionCount": count, "settings": {"submissionLimit": limit}}

    def test_thresholds(self):
        self.assertEqual(limit_state(self._form(89, 100)).approaching, False)
        state = limit_state(self._form(90, 100))
        self.assertTrue(state.approaching)
        self.assertFalse(state.reached)
        state = limit_state(self._form(100, 100))
        self.assertTrue(state.reached)
        self.assertFalse(state.approaching)

    def test_no_limit(self):
        state = limit_state(self._form(5000, None))
        self.assertFalse(state.reached)
        self.assertFalse(state.approaching)


class MultipartTests(unittest.TestCase):
    def test_packs_values(self):
        data, files = build_multipart(
            FIELDS,
            {
                "name": "Ada",
                "tags": ["a", "b"],
                "email": None,
                "cv": [("a.pdf", b"1", "application/pdf"), ("b.pdf", b"2", "application/pdf")],
            },
        )
        self.assertEqual(data["name"], "Ada")
        self.assertEqual(json.loads(data["tags"]), ["a", "b"])
        self.assertEqual(data["email"], "")
        self.assertEqual([name for name, _ in files], ["cv", "cv"])
        self.assertEqual(files[1][1][0], "b.pdf")

    def test_booleans(self):
        data, _ = build_multipart(FIELDS, {"tags": True, "name": False})
        self.assertEqual(data, {"tags": "true", "name": ""})


if __name__ == "__main__":
    unittest.main()
