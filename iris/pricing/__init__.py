"""Iris pricing package — currency parsing and quote premium/commission totals."""

from iris.pricing.commission import (
    CommissionCalculator,
    LineItem,
    QuoteBreakdown,
    SectionTotals,
    fill_totals,
)

__all__ = [
    "CommissionCalculator",
    "LineItem",
    "QuoteBreakdown",
    "SectionTotals",
    "fill_totals",
]
