"""Airtable REST client.

A small synchronous wrapper around the Airtable v0 API used by every Iris
component: record listing with ``offset`` pagination, single-record CRUD,
and the base metadata endpoint for table schemas.

Transient failures (HTTP 429, 5xx, connection errors, timeouts) are retried
with exponential backoff; every other non-2xx response raises
:class:`AirtableError` carrying the status code and response body.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from iris.config import Settings, settings

logger = logging.getLogger("iris.airtable")

_RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Airtable caps pageSize at 100
_MAX_PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AirtableError(Exception):
    """Raised when the Airtable API returns an error response.

    Attributes
    ----------
    status_code:
        HTTP status of the failed response, or ``None`` for transport errors.
    body:
        Raw response text as returned by Airtable.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AirtableRetryableError(AirtableError):
    """Rate-limit or server-side failure worth retrying."""


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class AirtableRecord(BaseModel):
    """A single Airtable row: record id, creation timestamp and field bag."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_time: str | None = Field(None, alias="createdTime")
    fields: dict[str, Any] = Field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


class FieldSchema(BaseModel):
    """Column metadata from the base schema endpoint."""

    id: str | None = None
    name: str
    type: str | None = None
    description: str | None = None
    options: dict[str, Any] | None = None


class TableSchema(BaseModel):
    """Table metadata from the base schema endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    primary_field_id: str | None = Field(None, alias="primaryFieldId")
    fields: list[FieldSchema] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def escape_formula_value(value: str) -> str:
    """Return *value* as a single-quoted Airtable formula string literal."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def field_equals_formula(field_name: str, value: str) -> str:
    """Build a ``filterByFormula`` expression matching ``{field} = 'value'``."""
    return f"{{{field_name}}} = {escape_formula_value(value)}"


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class AirtableClient:
    """Synchronous Airtable client bound to one base.

    Parameters
    ----------
    config:
        Iris ``Settings`` instance.  Defaults to the module-level singleton.
    session:
        Optional pre-built ``requests.Session`` (tests inject fakes here).
    """

    def __init__(
        self,
        config: Settings = settings,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config
        self.base_id = config.airtable_base_id
        self._session = session if session is not None else requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {config.airtable_api_key}",
                "Content-Type": "application/json",
            }
        )
        self.retry_wait = wait_exponential(multiplier=2, min=2, max=30)
        if not config.airtable_api_key:
            logger.warning("AIRTABLE_API_KEY is not set; requests will be rejected")

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "AirtableClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _table_url(self, table: str, record_id: str | None = None) -> str:
        if not table:
            raise AirtableError("Airtable table is not configured")
        url = f"{self.config.airtable_api_url.rstrip('/')}/{self.base_id}/{quote(table, safe='')}"
        if record_id:
            url = f"{url}/{quote(record_id, safe='')}"
        return url

    def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        logger.debug("%s %s", method, url)
        response = self._session.request(
            method, url, timeout=self.config.airtable_timeout_seconds, **kwargs
        )
        if response.status_code in _RETRY_STATUS_CODES:
            logger.warning("Airtable %s %s → %d, retrying", method, url, response.status_code)
            raise AirtableRetryableError(
                f"Airtable returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.ok:
            logger.error(
                "Airtable %s %s failed (%d): %s", method, url, response.status_code, response.text
            )
            raise AirtableError(
                f"Airtable request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return {}
        return response.json()

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request, retrying transient failures with exponential backoff."""
        if not self.base_id:
            raise AirtableError("AIRTABLE_BASE_ID is not configured")
        for attempt in Retrying(
            retry=retry_if_exception_type(
                (AirtableRetryableError, requests.ConnectionError, requests.Timeout)
            ),
            stop=stop_after_attempt(max(1, self.config.airtable_max_retries)),
            wait=self.retry_wait,
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "Retrying %s %s (attempt %d)",
                        method,
                        url,
                        attempt.retry_state.attempt_number,
                    )
                return self._send(method, url, **kwargs)
        raise AirtableError(f"No attempt made for {method} {url}")  # pragma: no cover

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def iter_pages(
        self,
        table: str,
        filter_formula: str | None = None,
        max_records: int | None = None,
        sort: list[tuple[str, str]] | None = None,
        fields: list[str] | None = None,
        page_size: int = _MAX_PAGE_SIZE,
    ) -> Iterator[list[AirtableRecord]]:
        """Yield one list of records per API page, following ``offset``."""
        params: dict[str, Any] = {"pageSize": min(page_size, _MAX_PAGE_SIZE)}
        if filter_formula:
            params["filterByFormula"] = filter_formula
        if max_records:
            params["maxRecords"] = max_records
        for i, (field, direction) in enumerate(sort or []):
            params[f"sort[{i}][field]"] = field
            params[f"sort[{i}][direction]"] = direction
        for i, name in enumerate(fields or []):
            params[f"fields[{i}]"] = name

        url = self._table_url(table)
        while True:
            payload = self._request("GET", url, params=params)
            yield [AirtableRecord.model_validate(r) for r in payload.get("records", [])]
            offset = payload.get("offset")
            if not offset:
                break
            params = {**params, "offset": offset}

    def list_records(
        self,
        table: str,
        filter_formula: str | None = None,
        max_records: int | None = None,
        sort: list[tuple[str, str]] | None = None,
        fields: list[str] | None = None,
    ) -> list[AirtableRecord]:
        """Return every record of *table* matching the optional filters.

        Parameters
        ----------
        table:
            Table id (``tbl...``) or table name.
        filter_formula:
            Airtable ``filterByFormula`` expression.
        max_records:
            Stop after this many records.
        sort:
            ``(field, "asc"|"desc")`` pairs.
        fields:
            Restrict the returned columns.
        """
        records: list[AirtableRecord] = []
        for page in self.iter_pages(
            table,
            filter_formula=filter_formula,
            max_records=max_records,
            sort=sort,
            fields=fields,
        ):
            records.extend(page)
            if max_records and len(records) >= max_records:
                return records[:max_records]
        logger.debug("Fetched %d records from %s", len(records), table)
        return records

    def first_page(
        self,
        table: str,
        filter_formula: str | None = None,
        max_records: int | None = None,
    ) -> list[AirtableRecord]:
        """Return only the first page of *table*."""
        return next(
            self.iter_pages(table, filter_formula=filter_formula, max_records=max_records),
            [],
        )

    def get_record(self, table: str, record_id: str) -> AirtableRecord:
        payload = self._request("GET", self._table_url(table, record_id))
        return AirtableRecord.model_validate(payload)

    def create_record(
        self, table: str, fields: dict[str, Any], typecast: bool = False
    ) -> AirtableRecord:
        """Create a single record and return it as stored by Airtable."""
        body: dict[str, Any] = {"fields": fields}
        if typecast:
            body["typecast"] = True
        payload = self._request("POST", self._table_url(table), json=body)
        record = AirtableRecord.model_validate(payload)
        logger.info("Created record %s in %s", record.id, table)
        return record

    def update_record(
        self, table: str, record_id: str, fields: dict[str, Any]
    ) -> AirtableRecord:
        payload = self._request(
            "PATCH", self._table_url(table, record_id), json={"fields": fields}
        )
        return AirtableRecord.model_validate(payload)

    def delete_record(self, table: str, record_id: str) -> bool:
        payload = self._request("DELETE", self._table_url(table, record_id))
        return bool(payload.get("deleted"))

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def list_tables(self) -> list[TableSchema]:
        url = f"{self.config.airtable_api_url.rstrip('/')}/meta/bases/{self.base_id}/tables"
        payload = self._request("GET", url)
        return [TableSchema.model_validate(t) for t in payload.get("tables", [])]

    def get_table_schema(self, table: str) -> TableSchema:
        """Return schema metadata for *table*, matched by id or name.

        Raises
        ------
        AirtableError
            When the base has no such table.
        """
        for schema in self.list_tables():
            if table in (schema.id, schema.name):
                return schema
        raise AirtableError(f"Table {table!r} not found in base {self.base_id}", status_code=404)
