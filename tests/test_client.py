import tempfile
import unittest

import httpx
from fastapi.testclient import TestClient

from formbuilder.app import create_app
from formbuilder.client import InMemoryDataSource, RemoteDataSource, open_data_source
from formbuilder.designer import FormDraft, add_field
from formbuilder.errors import BusinessRuleError, NotFoundError, ValidationError
from formbuilder.renderer import build_multipart
from support import FakeUploader, form_payload, make_settings


class InMemoryDataSourceTests(unittest.TestCase):
    def setUp(self):
        self.source = InMemoryDataSource()

    def test_seeded_sample_forms(self):
        forms = self.source.list_forms()
        self.assertEqual([f["title"] for f in forms], ["Contact Form", "Survey Form"])
        self.assertEqual(forms[0]["submissionCount"], 42)
        self.assertEqual(forms[1]["status"], "draft")
        self.assertEqual(
            forms[1]["fields"][0]["options"], ["Excellent", "Good", "Average", "Poor"]
        )

    def test_instances_do_not_share_state(self):
        self.source.delete_form("1")
        self.assertEqual(len(InMemoryDataSource().list_forms()), 2)

    def test_create_update_duplicate_delete(self):
        created = self.source.create_form(form_payload(title="Offline"))
        self.assertEqual(self.source.list_forms()[0]["id"], created["id"])
        updated = self.source.update_form(created["id"], {"status": "draft"})
        self.assertEqual(updated["status"], "draft")
        copy = self.source.duplicate_form("1")
        self.assertEqual(copy["title"], "Contact Form (Copy)")
        self.assertEqual(copy["submissionCount"], 0)
        self.source.delete_form(created["id"])
        with self.assertRaises(NotFoundError):
            self.source.get_form(created["id"])
        with self.assertRaises(ValidationError):
            self.source.create_form({"title": ""})

    def test_submissions_follow_intake_rules(self):
        submission = self.source.submit_form("1", {"name": "Ada"})
        self.assertEqual(submission["formId"], "1")
        self.assertEqual(self.source.get_form("1")["submissionCount"], 43)
        self.assertEqual(len(self.source.list_submissions("1")), 1)
        with self.assertRaises(BusinessRuleError):
            self.source.submit_form("2", {"rating": "Good"})
        with self.assertRaises(BusinessRuleError):
            self.source.submit_form("1", {}, [("cv", ("cv.txt", b"x", "text/plain"))])
        csv_text = self.source.export_csv("1")
        self.assertTrue(csv_text.startswith("Submitted At,Full Name,Email Address,Message"))

    def test_upload_file_is_recorded_locally(self):
        uploaded = self.source.upload_file("logo.png", b"\x89PNG", "image/png")
        self.assertEqual(uploaded["filename"], "logo.png")
        self.assertEqual(uploaded["size"], 4)
        self.assertEqual(uploaded["url"], "")

    def test_dashboard_counts_today(self):
        self.source.submit_form("1", {"name": "Ada"})
        stats = self.source.get_dashboard_analytics()
        self.assertEqual(stats["chartData"][-1]["submissions"], 1)
        self.assertEqual(stats["totalThisWeek"], 1)


class RemoteDataSourceTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.app = create_app(make_settings(self._tmp.name))
        self.app.state.uploader = FakeUploader()
        self.http = TestClient(self.app)
        self.source = RemoteDataSource(client=self.http)

    def tearDown(self):
        self.http.close()
        self.app.state.storage.dispose()
        self._tmp.cleanup()

    def test_draft_round_trip_and_submission(self):
        draft = FormDraft(title="Remote", status="published")
        draft.fields = add_field(draft.fields, "text")
        draft.fields = add_field(draft.fields, "file")
        saved = draft.save(self.source)
        self.assertEqual(self.source.get_form(saved["id"])["title"], "Remote")

        text_id, file_id = (item["id"] for item in draft.fields)
        data, files = build_multipart(
            draft.fields,
            {text_id: "hello", file_id: [("notes.txt", b"hi", "text/plain")]},
        )
        submission = self.source.submit_form(saved["id"], data, files)
        self.assertEqual(submission["data"], {text_id: "hello"})
        self.assertEqual(submission["files"][0]["filename"], "notes.txt")
        self.assertEqual(len(self.source.list_submissions(saved["id"])), 1)
        self.assertEqual(self.source.get_analytics(saved["id"])["totalSubmissions"], 1)
        self.assertIn("notes.txt", self.source.export_csv(saved["id"]))

    def test_upload_file(self):
        uploaded = self.source.upload_file("logo.png", b"\x89PNG", "image/png")
        self.assertEqual(uploaded["url"], "https://media.example.com/logo.png")
        self.assertEqual(uploaded["size"], 4)
        with self.assertRaises(BusinessRuleError):
            self.source.upload_file("run.exe", b"MZ", "application/x-msdownload")

    def test_errors_map_to_domain_exceptions(self):
        with self.assertRaises(NotFoundError):
            self.source.get_form("missing")
        with self.assertRaises(ValidationError) as ctx:
            self.source.create_form({"title": "", "fields": []})
        self.assertEqual(ctx.exception.details[0]["field"], "title")

    def test_open_data_source_prefers_reachable_api(self):
        self.assertIsInstance(open_data_source(client=self.http), RemoteDataSource)

    def test_open_data_source_falls_back_when_unreachable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(base_url="http://api.invalid", transport=httpx.MockTransport(refuse))
        with self.assertLogs("formbuilder.client", level="WARNING"):
            source = open_data_source(client=client)
        self.assertIsInstance(source, InMemoryDataSource)


if __name__ == "__main__":
    unittest.main()
