"""Tests for the Iris FastAPI app and the submissions router."""

import pytest
from fastapi.testclient import TestClient

import iris.api.routes as api_routes
import iris.api.security as security
import iris.submissions.routes as submission_routes
from iris.api.renderer import render_form_html
from iris.autofill.filler import AutofillResult
from iris.submissions.cache import SubmissionCache, SubmissionService
from iris.submissions.repository import SubmissionRepository

from conftest import (
    BASE_ID,
    CARRIERS_TABLE,
    SUBMISSIONS_TABLE,
    FakeResponse,
    echo_created,
    records_page,
    table_path,
)

SUBMISSIONS = [
    {
        "id": "recOld",
        "createdTime": "2025-01-01T00:00:00.000Z",
        "fields": {"firstName": "Ann", "lastName": "Lee", "Lead ID": "100"},
    },
    {
        "id": "recNew",
        "createdTime": "2025-02-01T00:00:00.000Z",
        "fields": {
            "firstName": "Bob",
            "lastName": "Ray",
            "Cell Phone": "555-222-3333",
            "Dependent Name": "Kim Ray",
            "Dependent Relationship": "wife",
        },
    },
]


class FakeRunner:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def __call__(self, data, url=None, keep_open=False):
        self.calls.append((data, url, keep_open))
        if self.error:
            raise self.error
        return self.result or AutofillResult(url=url, record_id=data.record_id, filled=["firstname"])


@pytest.fixture
def api(client, fake_session, session_factory, test_settings, carrier_records, monkeypatch):
    fake_session.add("GET", table_path(CARRIERS_TABLE), records_page(carrier_records))
    fake_session.add("GET", table_path(SUBMISSIONS_TABLE), records_page(SUBMISSIONS))

    repository = SubmissionRepository(client)
    cache = SubmissionCache(session_factory=session_factory, ttl_seconds=3600)
    api_routes.set_airtable_client(client)
    submission_routes.set_repository(repository)
    submission_routes.set_submission_service(
        SubmissionService(repository, cache, config=test_settings)
    )
    runner = FakeRunner()
    submission_routes.set_autofill_runner(runner)

    for module in (api_routes, security, submission_routes):
        monkeypatch.setattr(module, "settings", test_settings)
    security.reset_rate_limits()

    test_client = TestClient(api_routes.app)
    test_client.runner = runner
    yield test_client

    api_routes.set_airtable_client(None)
    submission_routes.set_repository(None)
    submission_routes.set_submission_service(None)
    submission_routes.set_autofill_runner(submission_routes.run_autofill)
    security.reset_rate_limits()


class TestAuth:
    def test_open_without_configured_key(self, api):
        assert api.get("/v1/plan-types").status_code == 200

    def test_key_required_when_configured(self, api, test_settings):
        test_settings.iris_api_key = "s3cret"
        assert api.get("/v1/plan-types").status_code == 403
        assert api.get("/v1/plan-types", headers={"X-API-Key": "wrong"}).status_code == 403
        assert api.get("/v1/plan-types", headers={"X-API-Key": "s3cret"}).status_code == 200

    def test_router_endpoints_protected(self, api, test_settings):
        test_settings.iris_api_key = "s3cret"
        assert api.get("/v1/submissions/count").status_code == 403

    def test_health_is_public(self, api, test_settings):
        test_settings.iris_api_key = "s3cret"
        assert api.get("/v1/health").status_code == 200

    def test_rate_limit(self, api, monkeypatch):
        monkeypatch.setattr(security, "_RATE_LIMIT_MAX", 2)
        assert api.get("/v1/plan-types").status_code == 200
        assert api.get("/v1/plan-types").status_code == 200
        assert api.get("/v1/plan-types").status_code == 429


class TestFormPage:
    def test_renders_with_carriers(self, api):
        response = api.get("/")
        assert response.status_code == 200
        assert "Insurance Application" in response.text
        assert '<form id="application"' in response.text
        assert "Health Choice" in response.text

    def test_renders_when_airtable_down(self, api, fake_session):
        fake_session.routes[("GET", table_path(CARRIERS_TABLE))] = [FakeResponse(500, text="down")]
        response = api.get("/")
        assert response.status_code == 200
        assert "Health Choice" not in response.text

    def test_status_messages_set_as_text(self):
        page = render_form_html({})
        assert "statusBox.textContent = message" in page
        assert "li.textContent = item" in page
        assert "statusBox.innerHTML" not in page


class TestCatalog:
    def test_carriers(self, api):
        body = api.get("/v1/carriers").json()
        assert body["plan_types"] == ["ACA", "Short Term"]
        assert body["carriers_by_type"]["ACA"] == ["Ambetter", "American Financial 2"]

    def test_carriers_for_plan(self, api):
        assert api.get("/v1/carriers/for-plan", params={"plan_type": "ACA"}).json() == [
            "Ambetter",
            "American Financial 2",
        ]
        assert api.get("/v1/carriers/for-plan", params={"plan_type": "Vision"}).json() == []

    def test_plan_search(self, api):
        body = api.get("/v1/plans", params={"name": "accident", "type": "short"}).json()
        assert [c["name"] for c in body["carriers"]] == ["American Financial 1"]
        assert body["total_plans"] == 2

    def test_plan_search_requires_name(self, api):
        assert api.get("/v1/plans").status_code == 422

    def test_addons(self, api):
        body = api.get("/v1/addons").json()
        assert set(body["by_type"]) == {"Short Term", "ACA"}
        assert {s["name"] for s in body["summary"]} == {"American Financial 1", "American Financial 2"}


class TestApplications:
    def test_quote(self, api):
        body = api.post("/v1/quote", json={"plan_cost": "$200", "plan_commission": "10%"}).json()
        assert body["total_premium"] == 200.0
        assert body["total_commission"] == 20.0

    def test_create(self, api, fake_session):
        fake_session.add("POST", table_path(SUBMISSIONS_TABLE), echo_created("recCreated"))
        payload = {"basic_information": {"lead_id": "777", "first_name": "Ann", "last_name": "Lee"}}
        response = api.post("/v1/applications", json=payload)
        assert response.status_code == 201
        assert response.json()["record_id"] == "recCreated"
        assert response.json()["lead_id"] == "777"

    def test_create_rejects_missing_name(self, api):
        payload = {"basic_information": {"lead_id": "777", "first_name": "", "last_name": "Lee"}}
        assert api.post("/v1/applications", json=payload).status_code == 422

    def test_airtable_rejection_is_bad_gateway(self, api, fake_session):
        fake_session.add(
            "POST", table_path(SUBMISSIONS_TABLE), FakeResponse(422, text='{"error":"INVALID_VALUE"}')
        )
        payload = {"basic_information": {"lead_id": "1", "first_name": "A", "last_name": "B"}}
        response = api.post("/v1/applications", json=payload)
        assert response.status_code == 502
        assert response.json()["airtable_status"] == 422

    def test_sample(self, api):
        body = api.get("/v1/applications/sample").json()
        assert body["basic_information"]["lead_id"].startswith("TEST-")

    def test_schema(self, api, fake_session):
        fake_session.add(
            "GET",
            f"/v0/meta/bases/{BASE_ID}/tables",
            FakeResponse(
                200,
                {"tables": [{"id": SUBMISSIONS_TABLE, "name": "Submissions", "fields": [{"id": "f", "name": "Lead ID", "type": "singleLineText"}]}]},
            ),
        )
        body = api.get("/v1/schema").json()
        assert body["table_name"] == "Submissions"
        assert body["fields"][0]["name"] == "Lead ID"


class TestHealth:
    def test_ok(self, api):
        body = api.get("/v1/health").json()
        assert body["status"] == "ok"
        assert body["airtable_configured"] is True
        assert body["cache"] == "empty"

    def test_degraded_without_airtable_key(self, api, test_settings):
        test_settings.airtable_api_key = ""
        assert api.get("/v1/health").json()["status"] == "degraded"

    def test_degraded_without_base_id(self, api, test_settings):
        test_settings.airtable_base_id = ""
        body = api.get("/v1/health").json()
        assert body["status"] == "degraded"
        assert body["airtable_configured"] is False


class TestSubmissions:
    def test_list_and_source(self, api):
        body = api.get("/v1/submissions").json()
        assert body["count"] == 2
        assert body["source"] == "airtable"
        assert api.get("/v1/submissions").json()["source"] == "memory"

    def test_count(self, api):
        assert api.get("/v1/submissions/count").json()["count"] == 2

    def test_search(self, api):
        body = api.get("/v1/submissions/search", params={"q": "ray, bob"}).json()
        assert [s["id"] for s in body["submissions"]] == ["recNew"]
        assert api.get("/v1/submissions/search", params={"q": "r"}).json()["count"] == 0

    def test_latest(self, api):
        assert api.get("/v1/submissions/latest").json()["id"] == "recNew"

    def test_by_lead(self, api, fake_session):
        assert api.get("/v1/submissions/lead/100").json()["id"] == "recOld"

    def test_by_lead_missing(self, api, fake_session):
        fake_session.routes[("GET", table_path(SUBMISSIONS_TABLE))] = [records_page([])]
        assert api.get("/v1/submissions/lead/999").status_code == 404

    def test_clear_cache(self, api):
        api.get("/v1/submissions")
        body = api.delete("/v1/submissions/cache").json()
        assert body == {"success": True, "message": "Cache cleared"}

    def test_enrollment(self, api):
        body = api.get("/v1/submissions/recNew/enrollment").json()
        assert body["name"] == "Ray, Bob"
        assert body["fields"]["phone1_1"] == "555"
        assert body["dependents"][0]["relationship"] == "Spouse"

    def test_enrollment_unknown(self, api):
        assert api.get("/v1/submissions/recNope/enrollment").status_code == 404

    def test_service_not_ready(self, api):
        submission_routes.set_submission_service(None)
        assert api.get("/v1/submissions").status_code == 503


class TestAutofill:
    def test_needs_url(self, api):
        assert api.post("/v1/autofill", json={"record_id": "recNew"}).status_code == 422

    def test_headful_runs_in_background(self, api, test_settings):
        test_settings.enrollment_url = "https://enroll.example.com"
        response = api.post("/v1/autofill", json={"record_id": "recNew"})
        assert response.status_code == 202
        assert response.json()["dependents_total"] == 1
        data, url, keep_open = api.runner.calls[0]
        assert data.record_id == "recNew"
        assert url == "https://enroll.example.com"
        assert keep_open is True

    def test_headless_returns_report(self, api, test_settings):
        test_settings.autofill_headless = True
        response = api.post(
            "/v1/autofill", json={"record_id": "recNew", "url": "https://enroll.example.com/x"}
        )
        assert response.status_code == 200
        assert response.json()["filled"] == ["firstname"]
        assert api.runner.calls[0][2] is False

    def test_headless_browser_failure(self, api, test_settings):
        from playwright.async_api import Error as PlaywrightError

        test_settings.autofill_headless = True
        submission_routes.set_autofill_runner(FakeRunner(error=PlaywrightError("crashed")))
        response = api.post("/v1/autofill", json={"record_id": "recNew", "url": "https://x"})
        assert response.status_code == 502

    def test_unknown_record(self, api):
        response = api.post("/v1/autofill", json={"record_id": "recNope", "url": "https://x"})
        assert response.status_code == 404
