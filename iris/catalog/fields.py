"""Distinct values per column of a table, for auditing free-text columns."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from iris.airtable.client import AirtableRecord

logger = logging.getLogger("iris.catalog.fields")


def field_values(records: list[AirtableRecord]) -> dict[str, list[Any]]:
    """Map every column seen in *records* to its sorted distinct values.

    List cells (multi-selects, lookups) contribute each element separately;
    structured cells such as attachments are rendered as strings.
    """
    values: dict[str, dict[str, Any]] = defaultdict(dict)
    for record in records:
        for column, cell in record.fields.items():
            cells = cell if isinstance(cell, list) else [cell]
            for item in cells:
                if item is None or item == "":
                    continue
                if isinstance(item, dict):
                    item = str(item)
                values[column].setdefault(str(item), item)
    return {
        column: [seen[key] for key in sorted(seen)]
        for column, seen in sorted(values.items())
    }
