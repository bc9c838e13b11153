"""Lookups against the Airtable submissions table.

Older submissions were saved by several tools with different name columns
(``firstName``, ``firstname``, ``First Name`` ...), so every name lookup goes
through :func:`first_name` / :func:`last_name` rather than a fixed column.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from iris.airtable.client import AirtableClient, AirtableRecord, field_equals_formula

logger = logging.getLogger("iris.submissions")

FIRST_NAME_COLUMNS = ("firstName", "firstname", "FirstName", "First Name", "first name", "first_name")
LAST_NAME_COLUMNS = ("lastName", "lastname", "LastName", "Last Name", "last name", "last_name")

MIN_QUERY_LENGTH = 2


# ---------------------------------------------------------------------------
# Name helpers
# ---------------------------------------------------------------------------


def first_value(fields: Mapping[str, Any], columns: Iterable[str]) -> str:
    """Return the first non-empty value among *columns*, as a string."""
    for column in columns:
        value = fields.get(column)
        if value not in (None, ""):
            return str(value)
    return ""


def first_name(fields: Mapping[str, Any]) -> str:
    return first_value(fields, FIRST_NAME_COLUMNS)


def last_name(fields: Mapping[str, Any]) -> str:
    return first_value(fields, LAST_NAME_COLUMNS)


def formatted_name(fields: Mapping[str, Any]) -> str:
    """``"Last, First"``; a missing part drops its separator."""
    first, last = first_name(fields), last_name(fields)
    if first and last:
        return f"{last}, {first}"
    return last or first


def matches_name(record: AirtableRecord, query: str) -> bool:
    """Case-insensitive match on first, last, ``last, first`` or ``first last``."""
    query = query.strip().lower()
    first = first_name(record.fields).lower()
    last = last_name(record.fields).lower()
    return (
        query in first
        or query in last
        or query in f"{last}, {first}"
        or query in f"{first} {last}"
    )


def newest_first(records: Iterable[AirtableRecord]) -> list[AirtableRecord]:
    return sorted(records, key=lambda r: r.created_time or "", reverse=True)


def search_by_name(records: Iterable[AirtableRecord], query: str) -> list[AirtableRecord]:
    """Filter *records* by name; queries shorter than two characters match nothing."""
    if not query or len(query.strip()) < MIN_QUERY_LENGTH:
        return []
    return newest_first(r for r in records if matches_name(r, query))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SubmissionRepository:
    """Airtable-backed access to submitted applications.

    Parameters
    ----------
    client:
        Airtable client bound to the Iris base.
    table:
        Submissions table id or name.  Defaults to
        the client's ``airtable_submissions_table``.
    """

    def __init__(self, client: AirtableClient, table: str | None = None) -> None:
        self.client = client
        self.table = table or client.config.airtable_submissions_table

    def all(self) -> list[AirtableRecord]:
        records = self.client.list_records(self.table)
        logger.info("Fetched %d submissions", len(records))
        return records

    def latest(self) -> AirtableRecord | None:
        records = newest_first(self.all())
        return records[0] if records else None

    def find_by_lead_id(self, lead_id: str) -> AirtableRecord | None:
        records = self.client.first_page(
            self.table, filter_formula=field_equals_formula("Lead ID", lead_id)
        )
        if not records:
            logger.info("No submission found with Lead ID %s", lead_id)
            return None
        return records[0]

    def search_by_name(self, query: str) -> list[AirtableRecord]:
        if not query or len(query.strip()) < MIN_QUERY_LENGTH:
            return []
        return search_by_name(self.all(), query)

    def get(self, record_id: str) -> AirtableRecord:
        return self.client.get_record(self.table, record_id)

    def create(self, fields: dict[str, Any]) -> AirtableRecord:
        return self.client.create_record(self.table, fields)
