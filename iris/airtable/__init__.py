"""Iris Airtable package — REST client and record models."""

from iris.airtable.client import (
    AirtableClient,
    AirtableError,
    AirtableRecord,
    TableSchema,
    escape_formula_value,
    field_equals_formula,
)

__all__ = [
    "AirtableClient",
    "AirtableError",
    "AirtableRecord",
    "TableSchema",
    "escape_formula_value",
    "field_equals_formula",
]
