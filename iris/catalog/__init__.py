"""Iris catalog package — carriers, plans and add-on reference data.

- :class:`CarrierCatalog` — carriers table: dropdowns, plan search, plan mappings
- :class:`AddonCatalog` — American Financial add-ons and commissions-table categories
- :func:`field_values` — distinct values per column
"""

from iris.catalog.carriers import (
    Carrier,
    CarrierCatalog,
    CarrierPlan,
    carriers_for_plan,
    plan_types,
)
from iris.catalog.addons import AddonCatalog
from iris.catalog.fields import field_values

__all__ = [
    "AddonCatalog",
    "Carrier",
    "CarrierCatalog",
    "CarrierPlan",
    "carriers_for_plan",
    "field_values",
    "plan_types",
]
