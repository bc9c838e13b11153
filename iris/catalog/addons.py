"""Add-on product catalogs.

Two sources describe add-ons:

- carriers-table rows whose carrier is an "American Financial N" product,
  with plan labels and costs in the ``Plan 1``-``Plan 3`` slots;
- the commissions table, whose rows link add-on plans per household
  category (``Individual Addons``, ``Family Addons``, ...) through lookup
  columns named ``<Category> Plan N`` and ``<Category> Plan N Cost``.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Any

from pydantic import BaseModel, Field

from iris.airtable.client import AirtableClient, AirtableRecord

logger = logging.getLogger("iris.catalog.addons")

AMERICAN_FINANCIAL = "American Financial"
ADDON_PLAN_SLOTS = 3

ADDON_CATEGORIES = (
    "Individual Addons",
    "Family Addons",
    "Individual + Spouse Addons",
    "Individual + Children Addons",
)

_FIRST_NUMBER = re.compile(r"(\d+(?:,\d+)?)")
_PLAN_NUMBER = re.compile(r"Plan (\d+)")


class AddonPlan(BaseModel):
    name: str
    cost: str


class Addon(BaseModel):
    """One American Financial add-on row of the carriers table."""

    id: str
    name: str
    addon_number: int = 1
    type: str = "Unknown Type"
    plans: list[AddonPlan] = Field(default_factory=list)


class AddonSummary(BaseModel):
    """An add-on merged across every insurance type it is sold with."""

    name: str
    types: list[str] = Field(default_factory=list)
    plans: list[AddonPlan] = Field(default_factory=list)


class CategoryPlan(BaseModel):
    plan_number: int
    plan_name: Any = None
    plan_cost: Any = None


class AddonCategory(BaseModel):
    """Add-on plans linked to one household category of a commissions row."""

    category: str
    linked_record_ids: list[str] = Field(default_factory=list)
    plans: list[CategoryPlan] = Field(default_factory=list)


class CommissionAddonRecord(BaseModel):
    id: str
    categories: list[AddonCategory] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# American Financial add-ons (carriers table)
# ---------------------------------------------------------------------------


def clean_plan_name(name: str) -> str:
    """Collapse whitespace and drop a trailing colon."""
    return re.sub(r"\s+", " ", name).strip().rstrip(":").strip()


def addon_number(carrier_name: str) -> int:
    """``"American Financial 2"`` → 2; names without a slot number are slot 1."""
    number = 1
    for n in (1, 2, 3):
        if f" {n}" in carrier_name:
            number = n
    return number


def parse_addon(record: AirtableRecord) -> Addon | None:
    name = record.get("Carriers")
    if not isinstance(name, str) or AMERICAN_FINANCIAL not in name:
        return None
    addon = Addon(
        id=record.id,
        name=name,
        addon_number=addon_number(name),
        type=str(record.get("Type") or "Unknown Type"),
    )
    for n in range(1, ADDON_PLAN_SLOTS + 1):
        plan = record.get(f"Plan {n}")
        cost = record.get(f"Plan {n} Cost")
        if plan and cost:
            addon.plans.append(
                AddonPlan(
                    name=clean_plan_name(str(plan)),
                    cost=str(cost).replace("$", "").strip(),
                )
            )
    return addon


def _plan_sort_key(plan: AddonPlan) -> tuple:
    match = _FIRST_NUMBER.search(plan.name)
    if match:
        return (0, int(match.group(1).replace(",", "")), plan.name)
    return (1, 0, plan.name.lower())


def group_addons_by_type(addons: list[Addon]) -> dict[str, list[Addon]]:
    grouped: dict[str, list[Addon]] = defaultdict(list)
    for addon in addons:
        grouped[addon.type].append(addon)
    return {t: sorted(items, key=lambda a: a.addon_number) for t, items in grouped.items()}


def summarize_addons(addons: list[Addon]) -> list[AddonSummary]:
    """Merge add-ons by name; the first cost seen for a plan name wins.

    Plans are ordered by the first number in their label (coverage amounts
    such as ``2,500``), falling back to alphabetical order.
    """
    types: dict[str, list[str]] = defaultdict(list)
    plans: dict[str, dict[str, AddonPlan]] = defaultdict(dict)
    for addon in addons:
        if addon.type not in types[addon.name]:
            types[addon.name].append(addon.type)
        for plan in addon.plans:
            plans[addon.name].setdefault(plan.name, plan)
    return [
        AddonSummary(
            name=name,
            types=types[name],
            plans=sorted(plans[name].values(), key=_plan_sort_key),
        )
        for name in types
    ]


# ---------------------------------------------------------------------------
# Commissions-table add-on categories
# ---------------------------------------------------------------------------


def _lookup_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def extract_category(record: AirtableRecord, category: str) -> AddonCategory | None:
    """Collect ``<category> Plan N`` lookups and their costs from *record*."""
    linked = _lookup_list(record.get(category))
    if not linked:
        return None

    prefix = f"{category} Plan"
    plan_columns = [
        k for k, v in record.fields.items()
        if k.startswith(prefix) and "cost" not in k.lower() and _lookup_list(v)
    ]
    cost_columns = [
        k for k, v in record.fields.items()
        if k.startswith(prefix) and "cost" in k.lower() and _lookup_list(v)
    ]

    plans: list[CategoryPlan] = []
    for index, column in enumerate(plan_columns):
        match = _PLAN_NUMBER.search(column[len(category):])
        number = int(match.group(1)) if match else index + 1
        cost_column = next((c for c in cost_columns if f"Plan {number} Cost" in c), None)
        plans.append(
            CategoryPlan(
                plan_number=number,
                plan_name=record.fields[column][0],
                plan_cost=record.fields[cost_column][0] if cost_column else None,
            )
        )
    plans.sort(key=lambda p: p.plan_number)
    return AddonCategory(category=category, linked_record_ids=[str(i) for i in linked], plans=plans)


def _has_addon_lookup(record: AirtableRecord) -> bool:
    return any("addon" in k.lower() and _lookup_list(v) for k, v in record.fields.items())


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class AddonCatalog:
    """Add-on listings backed by the carriers and commissions tables."""

    def __init__(
        self,
        client: AirtableClient,
        carriers_table: str | None = None,
        commissions_table: str | None = None,
    ) -> None:
        self.client = client
        self.carriers_table = carriers_table or client.config.airtable_carriers_table
        self.commissions_table = commissions_table or client.config.airtable_commissions_table

    def american_financial_addons(self) -> list[Addon]:
        records = self.client.list_records(self.carriers_table)
        addons = [a for a in (parse_addon(r) for r in records) if a is not None]
        logger.info("Found %d American Financial add-on rows", len(addons))
        return addons

    def addons_by_type(self) -> dict[str, list[Addon]]:
        return group_addons_by_type(self.american_financial_addons())

    def addon_summary(self) -> list[AddonSummary]:
        return summarize_addons(self.american_financial_addons())

    def commission_addon_categories(self, max_records: int = 20) -> list[CommissionAddonRecord]:
        """Commissions-table rows that link add-on plans, split by category."""
        records = self.client.first_page(self.commissions_table, max_records=max_records)
        results: list[CommissionAddonRecord] = []
        for record in records:
            if not _has_addon_lookup(record):
                continue
            categories = [
                c for c in (extract_category(record, name) for name in ADDON_CATEGORIES) if c
            ]
            results.append(CommissionAddonRecord(id=record.id, categories=categories))
        logger.info(
            "Found %d commission rows with add-on data in %s", len(results), self.commissions_table
        )
        return results
