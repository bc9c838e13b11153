"""Currency and percentage parsing for loosely-typed form and Airtable values.

Agents type premiums and commissions as free text: ``"$45.00"``, ``"45"``,
``"20%"``, ``"1,250"``.  A leading ``$`` marks a commission as a flat dollar
amount; anything else is read as a percentage of premium.
"""

from __future__ import annotations

import math
import re
from typing import Any

# Leading numeric prefix, same tolerance as JavaScript parseFloat
_NUMERIC_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_PLAN_PRICE = re.compile(r"\$((?:\d{1,3}(?:,\d{3})+|\d+)\.\d+)")


def _parse_prefix(text: str) -> float | None:
    match = _NUMERIC_PREFIX.match(text.strip())
    if not match:
        return None
    value = float(match.group(0))
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def parse_money(value: Any) -> float | None:
    """Parse ``"$1,250.50"`` → ``1250.5``.  Returns ``None`` when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    return _parse_prefix(re.sub(r"[$,\s]", "", str(value)))


def parse_rate(value: Any) -> float | None:
    """Parse a commission rate such as ``"20%"`` or ``"$20"`` → ``20.0``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    return _parse_prefix(re.sub(r"[$%,\s]", "", str(value)))


def has_value(value: Any) -> bool:
    """True when *value* parses to a strictly positive amount."""
    parsed = parse_rate(value)
    return parsed is not None and parsed > 0


def is_dollar_amount(value: Any) -> bool:
    """True when *value* is written as a flat dollar amount (``$`` prefix)."""
    return isinstance(value, str) and value.strip().startswith("$")


def extract_cost_from_plan_name(plan_name: Any) -> float | None:
    """Return the first ``$dd.dd`` price embedded in a plan label.

    >>> extract_cost_from_plan_name("Accident 2500 - $39.95/mo")
    39.95
    """
    if not plan_name:
        return None
    match = _PLAN_PRICE.search(str(plan_name))
    if not match:
        return None
    return float(match.group(1).replace(",", ""))


def round_cents(amount: float) -> float:
    return round(amount, 2)


def format_currency(value: Any) -> str:
    """Render *value* as ``$1,234.56``; unparseable input renders ``$0.00``."""
    amount = parse_money(value)
    if amount is None:
        return "$0.00"
    return f"${amount:,.2f}"


def format_percentage(value: Any) -> str:
    """Render a rate as ``20%``; dollar amounts are returned unchanged."""
    if value is None or value == "":
        return ""
    if is_dollar_amount(value):
        return str(value).strip()
    rate = parse_rate(value)
    if rate is None:
        return str(value)
    return f"{rate:g}%"


def commission_value(premium: Any, commission: Any) -> str:
    """Commission in dollars for display.

    A ``$``-prefixed commission is returned as-is; otherwise it is read as a
    percentage of *premium*.  Missing inputs render ``$0.00``.
    """
    if not premium or not commission:
        return "$0.00"
    if is_dollar_amount(commission):
        return format_currency(commission)
    amount = parse_money(premium)
    rate = parse_rate(commission)
    if amount is None or rate is None:
        return "$0.00"
    return format_currency(amount * rate / 100)
