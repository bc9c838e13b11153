"""Carrier and plan reference data from the Airtable carriers table.

Each carriers-table row is one carrier offering for one insurance type, with
up to fourteen numbered plan slots::

    Carriers | Type | Plan 1 | Plan 1 Cost | Plan 1 Commission | ... | Plan 14 Commission

The commission column holds a rate in any of the formats agents have typed
over time (``0.25``, ``25``, ``"25%"``).  :func:`format_commission_rate`
normalises all of them to a decimal fraction.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Any

import requests
from pydantic import BaseModel, Field

from iris.airtable.client import AirtableClient, AirtableError, AirtableRecord
from iris.pricing.money import parse_money

logger = logging.getLogger("iris.catalog.carriers")

MAX_PLANS = 14
MAPPED_PLANS = 8
DEFAULT_COMMISSION_RATE = 0.30
ERROR_VALUE = "#ERROR!"


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class CarrierPlan(BaseModel):
    """One numbered plan slot of a carrier row."""

    plan_number: int
    name: str
    cost: str = Field(..., description="Cost as stored, or '#ERROR!' when missing")
    commission_rate: float = Field(
        DEFAULT_COMMISSION_RATE, description="Decimal fraction, e.g. 0.25"
    )

    @property
    def commission_amount(self) -> float | None:
        """Cost × commission rate, or ``None`` when the cost is not numeric."""
        cost = parse_money(self.cost)
        if cost is None:
            return None
        return round(cost * self.commission_rate, 2)


class Carrier(BaseModel):
    id: str
    name: str = "N/A"
    type: str = "Unknown"
    plans: list[CarrierPlan] = Field(default_factory=list)


class PlanMapping(BaseModel):
    carrier: str | None = None
    plan: str
    cost: Any = None
    commission: Any = None


class PlanTypeMapping(BaseModel):
    """Everything the carriers table says about one insurance type."""

    carriers: list[str] = Field(default_factory=list)
    plan_values: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Distinct values per column, e.g. 'Plan 1 Cost' → ['$99', ...]",
    )
    plan_mappings: list[PlanMapping] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def format_value(value: Any) -> str:
    """Render a scalar cell; missing or structured values become ``#ERROR!``."""
    if value is None or isinstance(value, (dict, list)):
        return ERROR_VALUE
    return str(value)


def format_commission_rate(value: Any) -> float:
    """Normalise a commission cell to a decimal fraction.

    ``"25%"`` → 0.25, ``25`` → 0.25, ``0.25`` → 0.25; missing or
    unparseable values default to 0.30.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_COMMISSION_RATE
    if isinstance(value, str) and "%" in value:
        try:
            rate = float(value.replace("%", "").strip()) / 100
        except ValueError:
            return DEFAULT_COMMISSION_RATE
        return rate if math.isfinite(rate) else DEFAULT_COMMISSION_RATE
    try:
        rate = float(str(value).strip())
    except ValueError:
        return DEFAULT_COMMISSION_RATE
    if not math.isfinite(rate):
        return DEFAULT_COMMISSION_RATE
    return rate / 100 if rate > 1 else rate


def _carrier_name(record: AirtableRecord) -> str | None:
    name = record.get("Carriers") or record.get("Name")
    if isinstance(name, list):
        name = ", ".join(str(n) for n in name)
    return str(name).strip() if name else None


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CarrierCatalog:
    """Read-side view over the carriers table.

    Parameters
    ----------
    client:
        Airtable client bound to the Iris base.
    table:
        Carriers table id or name.  Defaults to the client's ``airtable_carriers_table``.
    """

    def __init__(self, client: AirtableClient, table: str | None = None) -> None:
        self.client = client
        self.table = table or client.config.airtable_carriers_table

    def records(self) -> list[AirtableRecord]:
        return self.client.list_records(self.table)

    # ------------------------------------------------------------------
    # Form dropdowns
    # ------------------------------------------------------------------

    def carriers_by_type(self) -> dict[str, list[str]]:
        """Map each insurance type to its sorted, de-duplicated carrier names.

        Returns an empty mapping when Airtable cannot be reached; the intake
        form then renders empty dropdowns instead of failing.
        """
        try:
            records = self.records()
        except (AirtableError, requests.RequestException) as exc:
            logger.error("Error fetching carriers: %s", exc)
            return {}

        grouped: dict[str, set[str]] = defaultdict(set)
        for record in records:
            plan_type = record.get("Type")
            name = _carrier_name(record)
            if not plan_type or not name:
                continue
            grouped[str(plan_type)].add(name)
        return {t: sorted(names) for t, names in sorted(grouped.items())}

    # ------------------------------------------------------------------
    # Carrier plans
    # ------------------------------------------------------------------

    @staticmethod
    def parse_carrier(record: AirtableRecord) -> Carrier:
        carrier = Carrier(
            id=record.id,
            name=_carrier_name(record) or "N/A",
            type=str(record.get("Type") or "Unknown"),
        )
        for n in range(1, MAX_PLANS + 1):
            plan_name = record.get(f"Plan {n}")
            if not plan_name:
                continue
            rate_cell = record.get(f"Plan {n} Commission")
            if rate_cell is None:
                rate_cell = record.get(f"Plan {n} Coverage")
            carrier.plans.append(
                CarrierPlan(
                    plan_number=n,
                    name=str(plan_name),
                    cost=format_value(record.get(f"Plan {n} Cost")),
                    commission_rate=format_commission_rate(rate_cell),
                )
            )
        return carrier

    def load_carriers(self) -> list[Carrier]:
        carriers = [self.parse_carrier(r) for r in self.records()]
        logger.info("Loaded %d carriers from %s", len(carriers), self.table)
        return carriers

    def find_plans(
        self,
        plan_name: str,
        carrier_name: str | None = None,
        insurance_type: str | None = None,
    ) -> list[Carrier]:
        """Carriers offering a plan whose name contains *plan_name*.

        All filters are case-insensitive substring matches.  Each returned
        carrier only carries its matching plans.
        """
        needle = plan_name.lower()
        matches: list[Carrier] = []
        for carrier in self.load_carriers():
            if carrier_name and carrier_name.lower() not in carrier.name.lower():
                continue
            if insurance_type and insurance_type.lower() not in carrier.type.lower():
                continue
            plans = [p for p in carrier.plans if needle in p.name.lower()]
            if plans:
                matches.append(carrier.model_copy(update={"plans": plans}))
        return matches

    def insurance_types(self) -> list[str]:
        types = {str(r.get("Type")).strip() for r in self.records() if r.get("Type")}
        return sorted(t for t in types if t)

    def plan_mappings_by_type(self) -> dict[str, PlanTypeMapping]:
        """Per insurance type: carriers, distinct plan column values and plan mappings."""
        values: dict[str, dict[str, set]] = defaultdict(lambda: defaultdict(set))
        carriers: dict[str, set[str]] = defaultdict(set)
        mappings: dict[str, list[PlanMapping]] = defaultdict(list)

        for record in self.records():
            plan_type = str(record.get("Type") or "Unknown")
            name = _carrier_name(record)
            if name:
                carriers[plan_type].add(name)
            for n in range(1, MAPPED_PLANS + 1):
                for column in (f"Plan {n}", f"Plan {n} Cost", f"Plan {n} Commission"):
                    cell = record.get(column)
                    if cell not in (None, "") and not isinstance(cell, (dict, list)):
                        values[plan_type][column].add(cell)
                plan = record.get(f"Plan {n}")
                cost = record.get(f"Plan {n} Cost")
                commission = record.get(f"Plan {n} Commission")
                if plan and (cost or commission):
                    mappings[plan_type].append(
                        PlanMapping(carrier=name, plan=str(plan), cost=cost, commission=commission)
                    )

        result: dict[str, PlanTypeMapping] = {}
        for plan_type in sorted(set(carriers) | set(values) | set(mappings)):
            result[plan_type] = PlanTypeMapping(
                carriers=sorted(carriers[plan_type]),
                plan_values={
                    column: [str(v) for v in sorted(cells, key=str)]
                    for column, cells in values[plan_type].items()
                },
                plan_mappings=mappings[plan_type],
            )
        return result


# ---------------------------------------------------------------------------
# Dropdown helpers
# ---------------------------------------------------------------------------


def plan_types(carriers_by_type: dict[str, list[str]]) -> list[str]:
    return sorted(carriers_by_type)


def carriers_for_plan(carriers_by_type: dict[str, list[str]], plan_type: str) -> list[str]:
    """Carriers selling *plan_type*; an unknown type yields an empty list."""
    return list(carriers_by_type.get(plan_type, []))
