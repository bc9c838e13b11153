"""Tests for the Iris command-line interface."""

import json

import pytest
from typer.testing import CliRunner

import iris.autofill.filler as filler
import iris.cli as cli
from iris.autofill.filler import AutofillResult
from iris.submissions.cache import SubmissionCache, SubmissionService
from iris.submissions.repository import SubmissionRepository

from conftest import (
    CARRIERS_TABLE,
    SUBMISSIONS_TABLE,
    FakeResponse,
    echo_created,
    records_page,
    table_path,
)

runner = CliRunner()

LEAD_RECORD = {
    "id": "recLead",
    "createdTime": "2025-02-01T00:00:00.000Z",
    "fields": {
        "Lead ID": "876",
        "firstName": "Ann",
        "lastName": "Lee",
        "AMT 1": "25",
        "Total Premium": "399",
    },
}


@pytest.fixture
def cli_env(client, fake_session, session_factory, test_settings, carrier_records, monkeypatch):
    fake_session.add("GET", table_path(CARRIERS_TABLE), records_page(carrier_records))
    fake_session.add("GET", table_path(SUBMISSIONS_TABLE), records_page([LEAD_RECORD]))
    monkeypatch.setattr(cli, "_client", lambda: client)
    monkeypatch.setattr(
        cli,
        "_submission_service",
        lambda: SubmissionService(
            SubmissionRepository(client),
            SubmissionCache(session_factory=session_factory, ttl_seconds=3600),
            config=test_settings,
        ),
    )
    monkeypatch.setattr(cli, "settings", test_settings)
    return fake_session


class TestCatalogCommands:
    def test_carriers(self, cli_env):
        result = runner.invoke(cli.app, ["carriers", "--type", "aca"])
        assert result.exit_code == 0
        assert "Ambetter" in result.stdout
        assert "Everest" not in result.stdout

    def test_plans_no_match(self, cli_env):
        result = runner.invoke(cli.app, ["plans", "platinum"])
        assert result.exit_code == 0
        assert "No plans matching" in result.stdout

    def test_check_found(self, cli_env):
        result = runner.invoke(cli.app, ["check", "Basic", "--type", "Short Term"])
        assert result.exit_code == 0
        assert "Found" in result.stdout

    def test_check_missing_exits_1(self, cli_env):
        result = runner.invoke(cli.app, ["check", "Basic", "--carrier", "Ambetter"])
        assert result.exit_code == 1
        assert "Not found" in result.stdout

    def test_types(self, cli_env):
        result = runner.invoke(cli.app, ["types"])
        assert "Short Term" in result.stdout

    def test_plan_map_to_file(self, cli_env, tmp_path):
        target = tmp_path / "plans.json"
        result = runner.invoke(cli.app, ["plan-map", "--output", str(target)])
        assert result.exit_code == 0
        mapping = json.loads(target.read_text())
        assert mapping["ACA"]["carriers"] == ["Ambetter", "American Financial 2"]

    def test_addons(self, cli_env):
        result = runner.invoke(cli.app, ["addons"])
        assert result.exit_code == 0
        assert "Add-on Summary" in result.stdout

    def test_airtable_failure_exits_1(self, cli_env):
        cli_env.routes[("GET", table_path(CARRIERS_TABLE))] = [FakeResponse(401, text="unauthorized")]
        result = runner.invoke(cli.app, ["types"])
        assert result.exit_code == 1


class TestSubmissionCommands:
    def test_latest(self, cli_env):
        result = runner.invoke(cli.app, ["latest"])
        assert result.exit_code == 0
        assert "recLead" in result.stdout

    def test_latest_empty(self, cli_env):
        cli_env.routes[("GET", table_path(SUBMISSIONS_TABLE))] = [records_page([])]
        assert runner.invoke(cli.app, ["latest"]).exit_code == 1

    def test_find_lead(self, cli_env):
        result = runner.invoke(cli.app, ["find-lead", "876"])
        assert result.exit_code == 0
        assert cli_env.calls[-1]["params"]["filterByFormula"] == "{Lead ID} = '876'"

    def test_find_lead_missing(self, cli_env):
        cli_env.routes[("GET", table_path(SUBMISSIONS_TABLE))] = [records_page([])]
        assert runner.invoke(cli.app, ["find-lead", "0"]).exit_code == 1

    def test_verify_lead_marks_unset_columns(self, cli_env):
        result = runner.invoke(cli.app, ["verify-lead", "876"])
        assert result.exit_code == 0
        assert "NOT SET" in result.stdout

    def test_search(self, cli_env):
        result = runner.invoke(cli.app, ["search", "lee"])
        assert result.exit_code == 0
        assert "1 match(es) from airtable" in result.stdout

    def test_records(self, cli_env):
        result = runner.invoke(cli.app, ["records", "--limit", "5"])
        assert result.exit_code == 0
        assert "876" in result.stdout

    def test_fields(self, cli_env):
        result = runner.invoke(cli.app, ["fields"])
        assert result.exit_code == 0
        assert "Lead ID" in result.stdout

    def test_test_submission_with_delete(self, cli_env):
        cli_env.add("POST", table_path(SUBMISSIONS_TABLE), echo_created("recT"))
        cli_env.add("GET", table_path(SUBMISSIONS_TABLE, "recT"), FakeResponse(200, LEAD_RECORD))
        cli_env.add(
            "DELETE", table_path(SUBMISSIONS_TABLE, "recT"), FakeResponse(200, {"id": "recT", "deleted": True})
        )
        result = runner.invoke(cli.app, ["test-submission", "--wait", "0", "--delete"])
        assert result.exit_code == 0
        assert "Deleted test record" in result.stdout
        assert [c["method"] for c in cli_env.calls] == ["POST", "GET", "DELETE"]


class TestOfflineCommands:
    def test_preview_mapping(self, cli_env):
        result = runner.invoke(cli.app, ["preview-mapping"])
        assert result.exit_code == 0
        assert '"Lead ID"' in result.stdout
        assert cli_env.calls == []

    def test_quote(self, cli_env):
        result = runner.invoke(cli.app, ["quote"])
        assert result.exit_code == 0
        assert "Total" in result.stdout

    def test_bad_form_file(self, cli_env, tmp_path):
        path = tmp_path / "form.json"
        path.write_text('{"basic_information": {"lead_id": ""}}')
        assert runner.invoke(cli.app, ["quote", "--file", str(path)]).exit_code == 1


class TestAutofillCommand:
    def test_dry_run(self, cli_env, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("browser should not start")

        monkeypatch.setattr(filler, "run_autofill", fail)
        result = runner.invoke(cli.app, ["autofill", "recLead", "--dry-run"])
        assert result.exit_code == 0
        assert "Dependents queued" in result.stdout

    def test_unknown_record(self, cli_env):
        assert runner.invoke(cli.app, ["autofill", "recNope", "--dry-run"]).exit_code == 1

    def test_requires_url(self, cli_env):
        assert runner.invoke(cli.app, ["autofill", "recLead"]).exit_code == 1

    def test_runs_filler(self, cli_env, monkeypatch):
        calls = []

        def fake_run(data, url=None, keep_open=False, config=None):
            calls.append((data.record_id, url, keep_open, config.autofill_headless))
            return AutofillResult(url=url, record_id=data.record_id, filled=["firstname"])

        monkeypatch.setattr(filler, "run_autofill", fake_run)
        result = runner.invoke(
            cli.app, ["autofill", "recLead", "--url", "https://enroll.example.com", "--headless"]
        )
        assert result.exit_code == 0
        assert calls == [("recLead", "https://enroll.example.com", False, True)]
        assert "Autofill Results" in result.stdout
