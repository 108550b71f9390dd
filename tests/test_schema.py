import unittest

from formbuilder.errors import ValidationError
from formbuilder.schema import (
    copy_title,
    form_output,
    merge_form_update,
    normalize_form_payload,
    validate_form_payload,
)
from support import form_payload, utc


class ValidateFormPayloadTests(unittest.TestCase):
    def test_valid_payload_has_no_errors(self):
        self.assertEqual(validate_form_payload(form_payload()), [])

    def test_reports_every_violation(self):
        payload = form_payload(
            title="",
            fields=[{"id": "a", "type": "date", "label": "When"}],
            status="archived",
        )
        fields = {detail["field"] for detail in validate_form_payload(payload)}
        self.assertIn("title", fields)
        self.assertIn("fields.0.type", fields)
        self.assertIn("status", fields)

    def test_missing_title_names_the_key(self):
        payload = form_payload()
        del payload["title"]
        details = validate_form_payload(payload)
        self.assertEqual([d["field"] for d in details], ["title"])

    def test_title_length_bound(self):
        self.assertEqual(validate_form_payload(form_payload(title="x" * 200)), [])
        self.assertNotEqual(validate_form_payload(form_payload(title="x" * 201)), [])

    def test_submission_limit_bounds(self):
        for limit in (1, 10000, None):
            payload = form_payload(settings={"submissionLimit": limit})
            self.assertEqual(validate_form_payload(payload), [], limit)
        for limit in (0, 10001):
            payload = form_payload(settings={"submissionLimit": limit})
            self.assertEqual(
                [d["field"] for d in validate_form_payload(payload)],
                ["settings.submissionLimit"],
            )

    def test_select_requires_options(self):
        payload = form_payload(fields=[{"id": "r", "type": "select", "label": "Rating"}])
        self.assertEqual(
            [d["field"] for d in validate_form_payload(payload)], ["fields.0.options"]
        )
        payload = form_payload(
            fields=[{"id": "r", "type": "radio", "label": "Rating", "options": []}]
        )
        self.assertNotEqual(validate_form_payload(payload), [])

    def test_duplicate_field_ids(self):
        payload = form_payload(
            fields=[
                {"id": "a", "type": "text", "label": "A"},
                {"id": "a", "type": "text", "label": "B"},
            ]
        )
        self.assertEqual(
            [d["field"] for d in validate_form_payload(payload)], ["fields.1.id"]
        )

    def test_partial_allows_status_only(self):
        self.assertEqual(validate_form_payload({"status": "draft"}, partial=True), [])
        self.assertNotEqual(validate_form_payload({"status": "draft"}), [])

    def test_non_object_payload(self):
        self.assertEqual(len(validate_form_payload(["nope"])), 1)


class NormalizeTests(unittest.TestCase):
    def test_fills_defaults_and_trims(self):
        payload = form_payload(title="  Padded  ")
        del payload["status"]
        del payload["settings"]
        del payload["description"]
        normalized = normalize_form_payload(payload)
        self.assertEqual(normalized["title"], "Padded")
        self.assertEqual(normalized["status"], "draft")
        self.assertEqual(normalized["description"], "")
        self.assertEqual(
            normalized["settings"]["thankYouMessage"], "Thank you for your submission!"
        )
        self.assertFalse(normalized["settings"]["allowFileUploads"])

    def test_server_keys_are_dropped(self):
        payload = form_payload(id="abc", submissionCount=99, createdAt="2024-01-01")
        normalized = normalize_form_payload(payload)
        self.assertNotIn("id", normalized)
        self.assertNotIn("submissionCount", normalized)

    def test_invalid_raises_with_details(self):
        with self.assertRaises(ValidationError) as ctx:
            normalize_form_payload(form_payload(title=""))
        self.assertEqual(ctx.exception.message, "Validation failed")
        self.assertTrue(ctx.exception.details)

    def test_merge_update_revalidates(self):
        stored = {
            **normalize_form_payload(form_payload()),
            "id": "f1",
            "submission_count": 3,
        }
        merged = merge_form_update(stored, {"settings": {"submissionLimit": 5}})
        self.assertEqual(merged["settings"]["submissionLimit"], 5)
        self.assertEqual(merged["settings"]["thankYouMessage"], "Thanks!")
        with self.assertRaises(ValidationError):
            merge_form_update(stored, {"fields": [{"id": "x", "type": "radio", "label": "X"}]})

    def test_copy_title_fits_the_title_limit(self):
        self.assertEqual(copy_title("Survey"), "Survey (Copy)")
        long_copy = copy_title("a" * 200)
        self.assertEqual(long_copy, "a" * 193 + " (Copy)")
        self.assertEqual(validate_form_payload(form_payload(title=long_copy)), [])


class OutputTests(unittest.TestCase):
    def test_form_output_shape(self):
        form = {
            **normalize_form_payload(form_payload()),
            "id": "01ABC",
            "submission_count": 2,
            "created_at": utc(2024, 5, 1, 12),
            "updated_at": utc(2024, 5, 2, 12),
        }
        output = form_output(form)
        self.assertEqual(output["submissionCount"], 2)
        self.assertEqual(output["url"], "/f/01ABC")
        self.assertEqual(output["createdAt"], "2024-05-01T12:00:00+00:00")


if __name__ == "__main__":
    unittest.main()
