"""
End-to-end tests for /api/applications against an in-memory SQLite database.
Run from the project root: python -m pytest tests/test_applications_api.py -v
"""
import io
import unittest
from unittest.mock import AsyncMock, patch

from docx import Document
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import AsyncSessionLocal
from main import app
from models import Application
from services.documents import DOCX_MEDIA_TYPE


def _submission(**extra):
    payload = {
        "app-first": "Jane",
        "app-last": "Doe",
        "app-email": " jane@example.com ",
        "app-sin": "",
        "emp-employer": "Acme Corp",
        "co-first": "John",
        "co-last": "Doe",
        "co-emp-income": 90000,
        "ref-name": "Pat Smith",
        "asset-bank-balance-1": 48000,
        "debt-cc-balance-1": 2400,
        "nw-net": 45600,
        "app-bankruptcy": "no",
        "consent-text": "I/We warrant and confirm ...",
        "sign-app-name": "Jane Doe",
        "sign-app-date": "2025-09-24",
        "fin-purchase-price": 500000,
        "fin-down-payment": 100000,
        "fin-finance-amount": 123,
        "fin-closing-date": "2025-12-15",
    }
    payload.update(extra)
    return payload


class ApiTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)
        cls.client.__enter__()

    @classmethod
    def tearDownClass(cls):
        cls.client.__exit__(None, None, None)

    def _create(self, payload=None) -> str:
        r = self.client.post("/api/applications", json=payload or _submission())
        self.assertEqual(r.status_code, 201, r.text)
        return r.json()["id"]

    def _count_applications(self) -> int:
        async def count():
            async with AsyncSessionLocal() as session:
                result = await session.execute(select(func.count()).select_from(Application))
                return result.scalar_one()

        return self.client.portal.call(count)


class TestCreateApplication(ApiTestCase):
    def test_create_json(self):
        r = self.client.post("/api/applications", json=_submission())
        self.assertEqual(r.status_code, 201, r.text)
        body = r.json()
        self.assertTrue(body["ok"])
        self.assertTrue(body["id"])
        self.assertTrue(body["created_at"])

    def test_create_form_urlencoded(self):
        r = self.client.post(
            "/api/applications",
            data={"app-first": "Ann", "app-last": "Lee", "fin-purchase-price": "300000", "fin-down-payment": "60000"},
        )
        self.assertEqual(r.status_code, 201, r.text)
        fetched = self.client.get(f"/api/applications/{r.json()['id']}").json()
        self.assertEqual(fetched["applicant"], {"app-first": "Ann", "app-last": "Lee"})
        self.assertEqual(fetched["financing_details"]["finance_amount"], 240000)

    def test_create_multipart_records_file_names(self):
        r = self.client.post(
            "/api/applications",
            data={"app-first": "Ann"},
            files={"app-id-doc": ("passport.pdf", b"%PDF-1.4", "application/pdf")},
        )
        self.assertEqual(r.status_code, 201, r.text)
        fetched = self.client.get(f"/api/applications/{r.json()['id']}").json()
        self.assertEqual(fetched["applicant"]["app-id-doc"], "passport.pdf")

    def test_unsupported_content_type(self):
        r = self.client.post("/api/applications", content=b"app-first=Jane", headers={"Content-Type": "text/plain"})
        self.assertEqual(r.status_code, 415)
        self.assertEqual(r.json()["error"], "Unsupported Content-Type")

    def test_missing_applicant_rejected_without_insert(self):
        before = self._count_applications()
        r = self.client.post("/api/applications", json={"co-first": "John", "app-first": "  "})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "Missing applicant data")
        self.assertEqual(self._count_applications(), before)

    def test_empty_body_rejected(self):
        r = self.client.post("/api/applications", json={})
        self.assertEqual(r.status_code, 400)

    def test_non_object_json_rejected(self):
        r = self.client.post("/api/applications", json=["app-first", "Jane"])
        self.assertEqual(r.status_code, 400)

    def test_malformed_json_rejected(self):
        r = self.client.post(
            "/api/applications",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "Invalid JSON body")

    def test_client_status_ignored(self):
        app_id = self._create(_submission(status="approved"))
        fetched = self.client.get(f"/api/applications/{app_id}").json()
        self.assertEqual(fetched["status"], "submitted")

    def test_database_failure_reported_as_500(self):
        with patch.object(AsyncSession, "flush", new=AsyncMock(side_effect=SQLAlchemyError("db down"))):
            r = self.client.post("/api/applications", json=_submission())
        self.assertEqual(r.status_code, 500)
        self.assertEqual(r.json()["error"], "Insert failed")
        self.assertIn("db down", r.json()["detail"])


class TestFinanceAmount(ApiTestCase):
    def test_server_recomputes_finance_amount(self):
        app_id = self._create(_submission(**{"fin-finance-amount": 999999}))
        fin = self.client.get(f"/api/applications/{app_id}").json()["financing_details"]
        self.assertEqual(fin["finance_amount"], 400000)

    def test_fallback_to_client_value_when_down_payment_missing(self):
        payload = _submission(**{"fin-finance-amount": "350000"})
        del payload["fin-down-payment"]
        app_id = self._create(payload)
        fin = self.client.get(f"/api/applications/{app_id}").json()["financing_details"]
        self.assertEqual(fin["finance_amount"], 350000)

    def test_null_when_no_components_and_no_client_value(self):
        payload = _submission()
        del payload["fin-down-payment"]
        del payload["fin-finance-amount"]
        app_id = self._create(payload)
        fin = self.client.get(f"/api/applications/{app_id}").json()["financing_details"]
        self.assertIsNone(fin.get("finance_amount"))

    def test_integers_beyond_float_range(self):
        huge = 10**400
        app_id = self._create(_submission(**{"fin-purchase-price": huge, "fin-down-payment": 5}))
        fin = self.client.get(f"/api/applications/{app_id}").json()["financing_details"]
        self.assertEqual(fin["purchase_price"], huge)
        self.assertEqual(fin["finance_amount"], huge - 5)

        r = self.client.get(f"/api/applications/{app_id}", params={"format": "term-sheet"})
        self.assertEqual(r.status_code, 200, r.text)

        r = self.client.post("/api/applications/preview", json=_submission(**{"asset-bank-balance-1": huge}))
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["derived"]["nw-assets"], huge)


class TestGetApplication(ApiTestCase):
    def test_round_trip(self):
        app_id = self._create()
        r = self.client.get(f"/api/applications/{app_id}")
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["id"], app_id)
        self.assertEqual(body["status"], "submitted")
        self.assertEqual(
            body["applicant"],
            {
                "app-first": "Jane",
                "app-last": "Doe",
                "app-email": "jane@example.com",
                "app-sin": None,
                "emp-employer": "Acme Corp",
            },
        )
        self.assertEqual(
            body["co_applicant"],
            {"co-first": "John", "co-last": "Doe", "co-emp-income": 90000},
        )
        self.assertEqual(body["reference"], {"ref-name": "Pat Smith"})
        self.assertEqual(body["assets"], {"asset-bank-balance-1": 48000})
        self.assertEqual(body["liabilities"], {"debt-cc-balance-1": 2400})
        self.assertEqual(body["totals"], {"nw-net": 45600})
        self.assertEqual(body["declarations"], {"app-bankruptcy": "no"})
        self.assertEqual(
            body["consent"],
            {"applicant_name": "Jane Doe", "applicant_date": "2025-09-24", "signature": "Jane Doe"},
        )
        self.assertEqual(
            body["financing_details"],
            {
                "purchase_price": 500000,
                "down_payment": 100000,
                "finance_amount": 400000,
                "closing_date": "2025-12-15",
            },
        )
        self.assertEqual(body["applicant_name"], "Jane Doe")
        self.assertEqual(body["coapplicant_name"], "John Doe")
        self.assertTrue(body["created_at"])

    def test_optional_buckets_null_when_absent(self):
        app_id = self._create({"app-first": "Solo"})
        body = self.client.get(f"/api/applications/{app_id}").json()
        for bucket in ("co_applicant", "reference", "declarations", "consent",
                       "assets", "liabilities", "totals", "financing_details"):
            self.assertIsNone(body[bucket], bucket)
        self.assertIsNone(body["applicant_name"])
        self.assertIsNone(body["coapplicant_name"])

    def test_empty_buckets_stored_as_sql_null(self):
        app_id = self._create({"app-first": "Solo", "ref-name": "  "})

        async def null_row_count():
            async with AsyncSessionLocal() as session:
                result = await session.execute(
                    select(func.count())
                    .select_from(Application)
                    .where(
                        Application.id == app_id,
                        Application.reference.is_(None),
                        Application.financing_details.is_(None),
                    )
                )
                return result.scalar_one()

        self.assertEqual(self.client.portal.call(null_row_count), 1)

    def test_not_found(self):
        r = self.client.get("/api/applications/app-does-not-exist")
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["error"], "Not found")


class TestExport(ApiTestCase):
    def test_docx_via_query_parameter(self):
        app_id = self._create()
        r = self.client.get(f"/api/applications/{app_id}", params={"format": "docx"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.headers["content-type"], DOCX_MEDIA_TYPE)
        self.assertEqual(r.headers["content-disposition"], f'attachment; filename="application-{app_id}.docx"')
        self.assertEqual(r.headers["cache-control"], "no-store")
        doc = Document(io.BytesIO(r.content))
        self.assertIn(f"Application ID: {app_id}", "\n".join(p.text for p in doc.paragraphs))

    def test_docx_via_accept_header(self):
        app_id = self._create()
        r = self.client.get(f"/api/applications/{app_id}", headers={"Accept": DOCX_MEDIA_TYPE})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.headers["content-type"], DOCX_MEDIA_TYPE)
        self.assertIn(app_id, r.headers["content-disposition"])

    def test_term_sheet(self):
        app_id = self._create()
        r = self.client.get(f"/api/applications/{app_id}", params={"format": "term-sheet"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.headers["content-type"], DOCX_MEDIA_TYPE)
        self.assertEqual(r.headers["content-disposition"], f'attachment; filename="term-sheet-{app_id}.docx"')
        doc = Document(io.BytesIO(r.content))
        cells = [c.text for t in doc.tables for row in t.rows for c in row.cells]
        self.assertIn("$400,000", cells)

    def test_unknown_format_falls_back_to_json(self):
        app_id = self._create()
        r = self.client.get(f"/api/applications/{app_id}", params={"format": "pdf"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["id"], app_id)

    def test_docx_with_control_characters(self):
        app_id = self._create(_submission(**{"app-street": "1 Main\x0bSt"}))
        r = self.client.get(f"/api/applications/{app_id}", params={"format": "docx"})
        self.assertEqual(r.status_code, 200, r.text)
        doc = Document(io.BytesIO(r.content))
        cells = [c.text for t in doc.tables for row in t.rows for c in row.cells]
        self.assertIn("1 MainSt", cells)

    def test_export_of_missing_application_is_404(self):
        r = self.client.get("/api/applications/app-missing", params={"format": "docx"})
        self.assertEqual(r.status_code, 404)


class TestUpdateStatus(ApiTestCase):
    def test_update(self):
        app_id = self._create()
        r = self.client.patch(f"/api/applications/{app_id}", json={"status": " approved "})
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertEqual(body["id"], app_id)
        self.assertEqual(body["status"], "approved")
        self.assertTrue(body["updated_at"])
        self.assertEqual(self.client.get(f"/api/applications/{app_id}").json()["status"], "approved")

    def test_only_status_changes(self):
        app_id = self._create()
        before = self.client.get(f"/api/applications/{app_id}").json()
        self.client.patch(f"/api/applications/{app_id}", json={"status": "in-review", "applicant": {}})
        after = self.client.get(f"/api/applications/{app_id}").json()
        self.assertEqual(after["applicant"], before["applicant"])
        self.assertEqual(after["created_at"], before["created_at"])

    def test_missing_status(self):
        app_id = self._create()
        self.assertEqual(self.client.patch(f"/api/applications/{app_id}", json={}).status_code, 400)

    def test_blank_status(self):
        app_id = self._create()
        r = self.client.patch(f"/api/applications/{app_id}", json={"status": "   "})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["error"], "Missing status")
        self.assertEqual(self.client.get(f"/api/applications/{app_id}").json()["status"], "submitted")

    def test_status_too_long(self):
        app_id = self._create()
        r = self.client.patch(f"/api/applications/{app_id}", json={"status": "x" * 33})
        self.assertEqual(r.status_code, 400)

    def test_unknown_id(self):
        before = self._count_applications()
        r = self.client.patch("/api/applications/app-nope", json={"status": "approved"})
        self.assertEqual(r.status_code, 404)
        self.assertEqual(self._count_applications(), before)


class TestPreview(ApiTestCase):
    def test_preview_derives_without_storing(self):
        before = self._count_applications()
        r = self.client.post(
            "/api/applications/preview",
            json={
                "app-street": "1 Main St",
                "has-coapp": True,
                "has-coapp-address": True,
                "fin-purchase-price": 500000,
                "fin-down-payment": "100000",
                "asset-bank-balance-1": 1000,
                "debt-cc-balance-1": 250,
            },
        )
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertEqual(body["derived"]["fin-finance-amount"], 400000)
        self.assertEqual(body["derived"]["nw-net"], 750)
        self.assertEqual(body["values"]["co-street"], "1 Main St")
        self.assertEqual(self._count_applications(), before)

    def test_preview_rejects_unsupported_content_type(self):
        r = self.client.post("/api/applications/preview", content=b"x", headers={"Content-Type": "text/csv"})
        self.assertEqual(r.status_code, 415)


class TestEnvelope(ApiTestCase):
    def test_request_id_echoed(self):
        r = self.client.get("/api/applications/app-missing", headers={"X-Request-ID": "req-123"})
        self.assertEqual(r.headers.get("x-request-id"), "req-123")
        self.assertEqual(r.json()["request_id"], "req-123")

    def test_unknown_route_uses_envelope(self):
        r = self.client.get("/this-route-does-not-exist")
        self.assertEqual(r.status_code, 404)
        self.assertIn("error", r.json())

    def test_unexpected_error_is_500_with_detail(self):
        client = TestClient(app, raise_server_exceptions=False)
        with patch("services.applications.get_application", new=AsyncMock(side_effect=RuntimeError("kaput"))):
            r = client.get("/api/applications/app-any")
        self.assertEqual(r.status_code, 500)
        body = r.json()
        self.assertEqual(body["error"], "Internal Server Error")
        self.assertEqual(body["detail"], "kaput")

    def test_health(self):
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()
