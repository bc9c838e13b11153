"""Shared fixtures: a fake ``requests.Session`` that answers Airtable calls,
test settings and an in-memory submission cache."""

import json
from urllib.parse import quote, urlsplit

import pytest
from tenacity import wait_none

from iris.airtable.client import AirtableClient
from iris.config import Settings
from iris.db import create_db_engine, create_session_factory

BASE_ID = "appTEST"
CARRIERS_TABLE = "tblCarriers"
SUBMISSIONS_TABLE = "tblSubmissions"
COMMISSIONS_TABLE = "Commissions2"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is not None:
            return self._payload
        return json.loads(self.text)


class FakeSession:
    """Answers ``request()`` from per-route queues.

    A route's last queued answer is reused once the queue is down to one
    entry.  Answers may be responses, exceptions to raise, or callables
    receiving ``params`` and ``json``.
    """

    def __init__(self):
        self.headers = {}
        self.calls = []
        self.routes = {}
        self.closed = False

    def add(self, method, path, *answers):
        self.routes.setdefault((method, path), []).extend(answers)

    def request(self, method, url, timeout=None, params=None, json=None):
        path = urlsplit(url).path
        self.calls.append({"method": method, "path": path, "params": params, "json": json})
        queue = self.routes.get((method, path))
        if not queue:
            return FakeResponse(404, {"error": "NOT_FOUND"})
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(params=params, json=json)
        return answer

    def close(self):
        self.closed = True


def table_path(table, record_id=None):
    path = f"/v0/{BASE_ID}/{quote(table, safe='')}"
    if record_id:
        path += f"/{record_id}"
    return path


def records_page(records, offset=None):
    payload = {"records": records}
    if offset:
        payload["offset"] = offset
    return FakeResponse(200, payload)


def echo_created(record_id="recNEW"):
    """Answer a create call with the posted fields, as Airtable does."""

    def answer(params=None, json=None):
        return FakeResponse(
            200,
            {"id": record_id, "createdTime": "2025-03-01T12:00:00.000Z", "fields": json["fields"]},
        )

    return answer


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        airtable_api_key="keyTEST",
        airtable_base_id=BASE_ID,
        airtable_carriers_table=CARRIERS_TABLE,
        airtable_submissions_table=SUBMISSIONS_TABLE,
        airtable_commissions_table=COMMISSIONS_TABLE,
        database_url="sqlite://",
        autofill_step_delay_ms=0,
        iris_api_key="",
    )


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def client(test_settings, fake_session):
    c = AirtableClient(config=test_settings, session=fake_session)
    c.retry_wait = wait_none()
    return c


@pytest.fixture
def session_factory():
    return create_session_factory(create_db_engine("sqlite://"))


@pytest.fixture
def carrier_records():
    return [
        {
            "id": "recCar1",
            "createdTime": "2025-01-01T00:00:00.000Z",
            "fields": {
                "Carriers": "Everest",
                "Type": "Short Term",
                "Plan 1": "Everest Prime 1000",
                "Plan 1 Cost": "$199.00",
                "Plan 1 Commission": "25%",
                "Plan 2": "Everest Value 2500",
                "Plan 2 Cost": 149,
                "Plan 2 Coverage": 20,
            },
        },
        {
            "id": "recCar2",
            "createdTime": "2025-01-02T00:00:00.000Z",
            "fields": {
                "Carriers": "Health Choice",
                "Type": "Short Term",
                "Plan 1": "Health Choice Basic",
                "Plan 1 Commission": "abc",
            },
        },
        {
            "id": "recCar3",
            "createdTime": "2025-01-03T00:00:00.000Z",
            "fields": {
                "Name": "Ambetter",
                "Type": "ACA",
                "Plan 1": "Bronze Saver",
                "Plan 1 Cost": "$310.50",
                "Plan 1 Commission": 0.1,
            },
        },
        {
            "id": "recAF1",
            "createdTime": "2025-01-04T00:00:00.000Z",
            "fields": {
                "Carriers": "American Financial 1",
                "Type": "Short Term",
                "Plan 1": "Accident  10,000:",
                "Plan 1 Cost": "$59.95",
                "Plan 2": "Accident 2,500",
                "Plan 2 Cost": "$39.95",
            },
        },
        {
            "id": "recAF2",
            "createdTime": "2025-01-05T00:00:00.000Z",
            "fields": {
                "Carriers": "American Financial 2",
                "Type": "ACA",
                "Plan 1": "Accident 2,500",
                "Plan 1 Cost": "$44.00",
                "Plan 2": "Critical Illness",
                "Plan 2 Cost": "$20.00",
            },
        },
    ]
