"""Premium and commission calculator for an application quote.

The quote has four sections, each producing a premium subtotal and a
commission subtotal:

    base plan    U65 plan cost (+ ACA premium, which earns no commission)
    add-ons      American Financial 1-3, AMT 1-2, Essential Care
    Leo add-ons  direct premium, or the prices embedded in each plan label
    enrollment   enrollment fee and its flat-dollar commission

Commission inputs follow one convention throughout: a ``$``-prefixed value is
a flat dollar amount; anything else is a percentage of the premium.  The
product lines differ only in their defaults when the commission is missing
or malformed (see :meth:`CommissionCalculator._addon_commission` and
:meth:`CommissionCalculator._leo_commission`).
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, Field

from iris.intake.schemas import InsuranceDetails
from iris.pricing.money import (
    extract_cost_from_plan_name,
    has_value,
    is_dollar_amount,
    parse_money,
    parse_rate,
    round_cents,
)

logger = logging.getLogger("iris.pricing.commission")

# Leo commission entered as a dollar amount is a known data-entry mistake
_LEO_MISFORMATTED_RATE = 60.0
_DEFAULT_ADDON_RATE = 100.0

_LEO_PLAN_SEPARATORS = re.compile(r"[,;\n]+")


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class LineItem(BaseModel):
    """One priced product inside a quote section."""

    label: str
    plan: str | None = None
    premium: float = 0.0
    commission: float = 0.0
    note: str | None = None


class SectionTotals(BaseModel):
    """Premium/commission subtotal for one quote section."""

    premium: float = 0.0
    commission: float = 0.0
    items: list[LineItem] = Field(default_factory=list)

    def add(self, item: LineItem) -> None:
        self.items.append(item)
        self.premium = round_cents(self.premium + item.premium)
        self.commission = round_cents(self.commission + item.commission)


class QuoteBreakdown(BaseModel):
    """Full premium/commission breakdown for an application.

    Attributes
    ----------
    base_plan:
        U65 plan and ACA premium.
    addons:
        American Financial, AMT and Essential Care products.
    leo_addons:
        Leo add-on bundle.
    enrollment:
        Enrollment fee and enrollment commission.
    total_premium:
        Sum of the four section premiums.
    total_commission:
        Sum of the four section commissions.
    """

    base_plan: SectionTotals = Field(default_factory=SectionTotals)
    addons: SectionTotals = Field(default_factory=SectionTotals)
    leo_addons: SectionTotals = Field(default_factory=SectionTotals)
    enrollment: SectionTotals = Field(default_factory=SectionTotals)
    total_premium: float = 0.0
    total_commission: float = 0.0

    def sections(self) -> dict[str, SectionTotals]:
        return {
            "Base Plan": self.base_plan,
            "Add-ons": self.addons,
            "Leo Add-ons": self.leo_addons,
            "Enrollment": self.enrollment,
        }


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------


class CommissionCalculator:
    """Compute a :class:`QuoteBreakdown` from an :class:`InsuranceDetails` section."""

    def calculate(self, details: InsuranceDetails) -> QuoteBreakdown:
        quote = QuoteBreakdown(
            base_plan=self._base_plan(details),
            addons=self._addons(details),
            leo_addons=self._leo_addons(details),
            enrollment=self._enrollment(details),
        )
        quote.total_premium = round_cents(sum(s.premium for s in quote.sections().values()))
        quote.total_commission = round_cents(
            sum(s.commission for s in quote.sections().values())
        )
        logger.debug(
            "Quote totals premium=%.2f commission=%.2f",
            quote.total_premium,
            quote.total_commission,
        )
        return quote

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _base_plan(self, details: InsuranceDetails) -> SectionTotals:
        section = SectionTotals()
        premium = parse_money(details.plan_cost)
        if premium is not None:
            section.add(
                LineItem(
                    label=details.carrier_u65 or "U65 Plan",
                    plan=details.plan,
                    premium=premium,
                    commission=self._flat_or_percent(premium, details.plan_commission),
                )
            )
        aca_premium = parse_money(details.aca_plan_premium)
        if aca_premium is not None:
            section.add(
                LineItem(
                    label=details.carrier_aca or "ACA Plan",
                    premium=aca_premium,
                    note="ACA premium earns no commission",
                )
            )
        return section

    def _addons(self, details: InsuranceDetails) -> SectionTotals:
        section = SectionTotals()
        products = [
            (f"American Financial {n}", f"american_financial_{n}") for n in (1, 2, 3)
        ] + [(f"AMT {n}", f"amt_{n}") for n in (1, 2)]

        for label, prefix in products:
            plan = getattr(details, f"{prefix}_plan")
            premium = self._effective_premium(getattr(details, f"{prefix}_premium"), plan)
            if premium is None:
                continue
            commission_input = getattr(details, f"{prefix}_commission")
            section.add(
                LineItem(
                    label=label,
                    plan=plan,
                    premium=premium,
                    commission=self._addon_commission(premium, commission_input),
                    note=None if commission_input else "commission defaulted to 100%",
                )
            )

        ec_premium = parse_money(details.essential_care_premium)
        if ec_premium is not None:
            section.add(
                LineItem(
                    label="Essential Care",
                    premium=ec_premium,
                    commission=self._flat_or_percent(ec_premium, details.essential_care_commission),
                )
            )
        return section

    def _leo_addons(self, details: InsuranceDetails) -> SectionTotals:
        section = SectionTotals()
        direct = parse_money(details.leo_addons_premium) if details.leo_addons_premium else None
        if direct is not None:
            section.add(
                LineItem(
                    label="Leo Add-ons",
                    plan=details.leo_addons_plans,
                    premium=direct,
                    commission=self._leo_commission(direct, details.leo_addons_commission),
                )
            )
            return section

        for plan in split_leo_plans(details.leo_addons_plans):
            premium = extract_cost_from_plan_name(plan)
            if premium is None:
                logger.debug("No price found in Leo plan label %r", plan)
                continue
            section.add(
                LineItem(
                    label="Leo Add-on",
                    plan=plan,
                    premium=premium,
                    commission=self._leo_commission(premium, details.leo_addons_commission),
                )
            )
        return section

    def _enrollment(self, details: InsuranceDetails) -> SectionTotals:
        section = SectionTotals()
        fee = parse_money(details.enrollment_fee)
        commission_input = details.enrollment_fee_commission or details.enrollment_commission
        commission = parse_money(commission_input) if commission_input else None
        if fee is None and commission is None:
            return section
        section.add(
            LineItem(
                label="Enrollment Fee",
                premium=fee or 0.0,
                commission=round_cents(commission or 0.0),
            )
        )
        return section

    # ------------------------------------------------------------------
    # Commission rules
    # ------------------------------------------------------------------

    @staticmethod
    def _effective_premium(premium_input: str | None, plan: str | None) -> float | None:
        """Premium field when positive, else the price embedded in the plan label."""
        if has_value(premium_input):
            return parse_money(premium_input)
        return extract_cost_from_plan_name(plan)

    @staticmethod
    def _flat_or_percent(premium: float, commission_input: str | None) -> float:
        if not commission_input:
            return 0.0
        if is_dollar_amount(commission_input):
            return round_cents(parse_money(commission_input) or 0.0)
        rate = parse_rate(commission_input)
        if rate is None:
            return 0.0
        return round_cents(premium * rate / 100)

    @staticmethod
    def _addon_commission(premium: float, commission_input: str | None) -> float:
        """American Financial / AMT rule: missing, zero or unparseable rate → 100%."""
        if commission_input and is_dollar_amount(commission_input):
            return round_cents(parse_money(commission_input) or 0.0)
        rate = parse_rate(commission_input) if commission_input else None
        if not rate:
            rate = _DEFAULT_ADDON_RATE
        return round_cents(premium * rate / 100)

    @staticmethod
    def _leo_commission(premium: float, commission_input: str | None) -> float:
        """Leo rule: dollar-formatted input → 60%; missing or unparseable → 100%."""
        if commission_input and is_dollar_amount(commission_input):
            return round_cents(premium * _LEO_MISFORMATTED_RATE / 100)
        rate = parse_rate(commission_input) if commission_input else None
        if rate is None:
            rate = _DEFAULT_ADDON_RATE
        return round_cents(premium * rate / 100)


def split_leo_plans(plans: str | None) -> list[str]:
    """Split a Leo plan list on commas, semicolons and newlines."""
    if not plans:
        return []
    return [p.strip() for p in _LEO_PLAN_SEPARATORS.split(plans) if p.strip()]


def fill_totals(details: InsuranceDetails) -> InsuranceDetails:
    """Return a copy of *details* with blank total fields computed from the quote."""
    if details.total_premium and details.total_commission:
        return details
    quote = CommissionCalculator().calculate(details)
    update: dict[str, str] = {}
    if not details.total_premium:
        update["total_premium"] = f"{quote.total_premium:.2f}"
    if not details.total_commission:
        update["total_commission"] = f"{quote.total_commission:.2f}"
    return details.model_copy(update=update)
