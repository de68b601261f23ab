"""Federal income tax on ordinary income."""

from __future__ import annotations

from .tax_data import FEDERAL_BRACKETS, FILING_STATUS_ALIASES, STANDARD_DEDUCTIONS


def normalize_filing_status(filing_status: str) -> str:
    status = FILING_STATUS_ALIASES.get(filing_status, filing_status)
    if status in FEDERAL_BRACKETS:
        return status
    return "single"


def standard_deduction(filing_status: str) -> float:
    return STANDARD_DEDUCTIONS[normalize_filing_status(filing_status)]


def _progressive_tax(amount: float, brackets: list[tuple[float | None, float]]) -> float:
    if amount <= 0:
        return 0.0

    remaining = amount
    lower = 0.0
    tax = 0.0
    for upper, rate in brackets:
        if remaining <= 0:
            break
        if upper is None:
            taxable_at_rate = remaining
        else:
            span = max(0.0, upper - lower)
            taxable_at_rate = min(remaining, span)
        tax += taxable_at_rate * rate
        remaining -= taxable_at_rate
        if upper is None:
            break
        lower = upper
    return max(0.0, tax)


def compute_tax(taxable_income: float, filing_status: str) -> float:
    """Return federal tax owed after the standard deduction."""
    fs = normalize_filing_status(filing_status)
    adjusted = taxable_income - STANDARD_DEDUCTIONS[fs]
    if adjusted <= 0:
        return 0.0
    return _progressive_tax(adjusted, FEDERAL_BRACKETS[fs])


def marginal_rate(taxable_income: float, filing_status: str) -> float:
    fs = normalize_filing_status(filing_status)
    adjusted = taxable_income - STANDARD_DEDUCTIONS[fs]
    if adjusted <= 0:
        return 0.0
    for upper, rate in FEDERAL_BRACKETS[fs]:
        if upper is None or adjusted <= upper:
            return rate
    return FEDERAL_BRACKETS[fs][-1][1]
