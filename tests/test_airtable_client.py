"""Tests for the Airtable REST client."""

import pytest
import requests

from iris.airtable.client import (
    AirtableClient,
    AirtableError,
    AirtableRecord,
    escape_formula_value,
    field_equals_formula,
)
from iris.config import Settings

from conftest import (
    BASE_ID,
    CARRIERS_TABLE,
    SUBMISSIONS_TABLE,
    FakeResponse,
    echo_created,
    records_page,
    table_path,
)


def _record(rid, **fields):
    return {"id": rid, "createdTime": "2025-01-01T00:00:00.000Z", "fields": fields}


class TestFormulaHelpers:
    def test_plain_value_is_quoted(self):
        assert escape_formula_value("876") == "'876'"

    def test_quotes_and_backslashes_escaped(self):
        assert escape_formula_value("O'Brien\\x") == "'O\\'Brien\\\\x'"

    def test_field_equals(self):
        assert field_equals_formula("Lead ID", "876") == "{Lead ID} = '876'"


class TestAuthHeaders:
    def test_bearer_token_set_on_session(self, client, fake_session):
        assert fake_session.headers["Authorization"] == "Bearer keyTEST"
        assert fake_session.headers["Content-Type"] == "application/json"

    def test_close_closes_session(self, client, fake_session):
        client.close()
        assert fake_session.closed


class TestListRecords:
    def test_follows_offset_pagination(self, client, fake_session):
        fake_session.add(
            "GET",
            table_path(CARRIERS_TABLE),
            records_page([_record("rec1", Name="A"), _record("rec2", Name="B")], offset="itr2"),
            records_page([_record("rec3", Name="C")]),
        )
        records = client.list_records(CARRIERS_TABLE)
        assert [r.id for r in records] == ["rec1", "rec2", "rec3"]
        assert fake_session.calls[1]["params"]["offset"] == "itr2"
        assert "offset" not in fake_session.calls[0]["params"]

    def test_max_records_truncates(self, client, fake_session):
        fake_session.add(
            "GET",
            table_path(CARRIERS_TABLE),
            records_page([_record("rec1"), _record("rec2")], offset="more"),
            records_page([_record("rec3")]),
        )
        records = client.list_records(CARRIERS_TABLE, max_records=2)
        assert len(records) == 2
        assert len(fake_session.calls) == 1
        assert fake_session.calls[0]["params"]["maxRecords"] == 2

    def test_filter_sort_and_fields_params(self, client, fake_session):
        fake_session.add("GET", table_path(SUBMISSIONS_TABLE), records_page([]))
        client.list_records(
            SUBMISSIONS_TABLE,
            filter_formula="{Lead ID} = '1'",
            sort=[("Created", "desc")],
            fields=["Lead ID", "firstName"],
        )
        params = fake_session.calls[0]["params"]
        assert params["filterByFormula"] == "{Lead ID} = '1'"
        assert params["sort[0][field]"] == "Created"
        assert params["sort[0][direction]"] == "desc"
        assert params["fields[1]"] == "firstName"

    def test_first_page_stops_after_one_request(self, client, fake_session):
        fake_session.add(
            "GET",
            table_path(CARRIERS_TABLE),
            records_page([_record("rec1")], offset="next"),
            records_page([_record("rec2")]),
        )
        assert [r.id for r in client.first_page(CARRIERS_TABLE)] == ["rec1"]
        assert len(fake_session.calls) == 1

    def test_record_model_keeps_created_time(self, client, fake_session):
        fake_session.add("GET", table_path(CARRIERS_TABLE), records_page([_record("rec1", Type="ACA")]))
        record = client.list_records(CARRIERS_TABLE)[0]
        assert isinstance(record, AirtableRecord)
        assert record.created_time == "2025-01-01T00:00:00.000Z"
        assert record.get("Type") == "ACA"
        assert record.get("Missing", "x") == "x"


class TestWrites:
    def test_create_record_posts_fields(self, client, fake_session):
        fake_session.add("POST", table_path(SUBMISSIONS_TABLE), echo_created("recABC"))
        record = client.create_record(SUBMISSIONS_TABLE, {"Lead ID": "1"}, typecast=True)
        assert record.id == "recABC"
        assert record.fields == {"Lead ID": "1"}
        assert fake_session.calls[0]["json"] == {"fields": {"Lead ID": "1"}, "typecast": True}

    def test_update_uses_patch(self, client, fake_session):
        fake_session.add(
            "PATCH", table_path(SUBMISSIONS_TABLE, "rec1"), FakeResponse(200, _record("rec1", Notes="x"))
        )
        record = client.update_record(SUBMISSIONS_TABLE, "rec1", {"Notes": "x"})
        assert record.get("Notes") == "x"

    def test_delete_returns_flag(self, client, fake_session):
        fake_session.add(
            "DELETE",
            table_path(SUBMISSIONS_TABLE, "rec1"),
            FakeResponse(200, {"id": "rec1", "deleted": True}),
        )
        assert client.delete_record(SUBMISSIONS_TABLE, "rec1") is True


class TestErrors:
    def test_client_error_raises_with_body(self, client, fake_session):
        body = '{"error":{"type":"UNKNOWN_FIELD_NAME","message":"Unknown field name: \\"Foo\\""}}'
        fake_session.add("POST", table_path(SUBMISSIONS_TABLE), FakeResponse(422, text=body))
        with pytest.raises(AirtableError) as info:
            client.create_record(SUBMISSIONS_TABLE, {"Foo": 1})
        assert info.value.status_code == 422
        assert "UNKNOWN_FIELD_NAME" in info.value.body
        assert len(fake_session.calls) == 1

    def test_rate_limit_retried_then_succeeds(self, client, fake_session):
        fake_session.add(
            "GET",
            table_path(CARRIERS_TABLE),
            FakeResponse(429, {"error": "RATE_LIMITED"}),
            FakeResponse(503, text="unavailable"),
            records_page([_record("rec1")]),
        )
        assert [r.id for r in client.list_records(CARRIERS_TABLE)] == ["rec1"]
        assert len(fake_session.calls) == 3

    def test_server_errors_exhaust_retries(self, client, fake_session):
        fake_session.add("GET", table_path(CARRIERS_TABLE), FakeResponse(500, text="boom"))
        with pytest.raises(AirtableError) as info:
            client.list_records(CARRIERS_TABLE)
        assert info.value.status_code == 500
        assert len(fake_session.calls) == 3

    def test_connection_error_retried(self, client, fake_session):
        fake_session.add(
            "GET",
            table_path(CARRIERS_TABLE),
            requests.ConnectionError("reset"),
            records_page([]),
        )
        assert client.list_records(CARRIERS_TABLE) == []
        assert len(fake_session.calls) == 2


class TestSchema:
    def _tables(self):
        return FakeResponse(
            200,
            {
                "tables": [
                    {
                        "id": SUBMISSIONS_TABLE,
                        "name": "Submissions",
                        "primaryFieldId": "fld1",
                        "fields": [
                            {"id": "fld1", "name": "Lead ID", "type": "singleLineText"},
                            {"id": "fld2", "name": "DOB", "type": "date"},
                        ],
                    }
                ]
            },
        )

    def test_schema_by_id(self, client, fake_session):
        fake_session.add("GET", f"/v0/meta/bases/{BASE_ID}/tables", self._tables())
        schema = client.get_table_schema(SUBMISSIONS_TABLE)
        assert schema.primary_field_id == "fld1"
        assert [f.name for f in schema.fields] == ["Lead ID", "DOB"]

    def test_schema_by_name(self, client, fake_session):
        fake_session.add("GET", f"/v0/meta/bases/{BASE_ID}/tables", self._tables())
        assert client.get_table_schema("Submissions").id == SUBMISSIONS_TABLE

    def test_unknown_table(self, client, fake_session):
        fake_session.add("GET", f"/v0/meta/bases/{BASE_ID}/tables", self._tables())
        with pytest.raises(AirtableError):
            client.get_table_schema("Nope")


class TestUnconfigured:
    def test_settings_carry_no_base_or_table_ids(self, monkeypatch):
        for name in ("AIRTABLE_BASE_ID", "AIRTABLE_SUBMISSIONS_TABLE", "AIRTABLE_CARRIERS_TABLE"):
            monkeypatch.delenv(name, raising=False)
        config = Settings(_env_file=None)
        assert config.airtable_base_id == ""
        assert config.airtable_submissions_table == ""
        assert config.airtable_carriers_table == ""

    def test_missing_base_id_refuses_request(self, test_settings, fake_session):
        config = test_settings.model_copy(update={"airtable_base_id": ""})
        client = AirtableClient(config=config, session=fake_session)
        with pytest.raises(AirtableError, match="AIRTABLE_BASE_ID"):
            client.list_records(CARRIERS_TABLE)
        assert fake_session.calls == []

    def test_missing_table_refuses_request(self, client, fake_session):
        with pytest.raises(AirtableError, match="table is not configured"):
            client.create_record("", {"Lead ID": "1"})
        assert fake_session.calls == []
