"""One-time and recurring milestone accrual."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import Milestone


@dataclass(slots=True)
class MilestoneYear:
    year: int
    costs: float = 0.0
    windfalls: float = 0.0
    taxable_income: float = 0.0


def recurring_amount(milestone: Milestone, year: int) -> float:
    """Amount of a recurring occurrence in `year`, or 0.0 when none falls due.

    Occurrences fall every `recurring_interval` years after the milestone year.
    Growth compounds from the milestone year, not from the previous occurrence.
    """
    if not milestone.recurring or year <= milestone.year:
        return 0.0
    if milestone.recurring_end_year is not None and year > milestone.recurring_end_year:
        return 0.0
    interval = max(1, milestone.recurring_interval)
    if (year - milestone.year) % interval != 0:
        return 0.0
    return milestone.recurring_amount * (1.0 + milestone.recurring_growth) ** (year - milestone.year)


def milestone_year(milestones: list[Milestone], year: int) -> MilestoneYear:
    out = MilestoneYear(year=year)
    for milestone in milestones:
        amount = 0.0
        if year == milestone.year:
            amount = milestone.cost
            if milestone.is_taxable:
                taxable = milestone.taxable_amount if milestone.taxable_amount is not None else milestone.cost
                out.taxable_income += max(0.0, taxable)
        else:
            amount = recurring_amount(milestone, year)

        if amount <= 0:
            continue
        if milestone.is_positive:
            out.windfalls += amount
        else:
            out.costs += amount
    return out
