"""Income, expense, Social Security and pension streams."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import ExpenseStream, IncomeStream, Pension, Person, SocialSecurity


@dataclass(slots=True)
class IncomeYear:
    year: int
    total: float = 0.0
    taxable: float = 0.0
    social_security: float = 0.0
    pension: float = 0.0


def is_active(start_year: int, end_year: int | None, year: int) -> bool:
    return start_year <= year and (end_year is None or year <= end_year)


def _annualized(amount: float, frequency: str) -> float:
    if frequency == "monthly":
        return amount * 12.0
    return amount


def stream_amount(stream: IncomeStream | ExpenseStream, year: int) -> float:
    if not is_active(stream.start_year, stream.end_year, year):
        return 0.0
    years_elapsed = year - stream.start_year
    return _annualized(stream.amount, stream.frequency) * (1.0 + stream.annual_growth) ** years_elapsed


def _owner_age(people: dict[str, Person], owner: str, year: int) -> int | None:
    person = people.get(owner)
    if person is None:
        return None
    return person.age_in(year)


def social_security_for_year(entries: list[SocialSecurity], people: dict[str, Person], year: int) -> float:
    total = 0.0
    for item in entries:
        age = _owner_age(people, item.owner, year)
        if age is None or age < item.start_age:
            continue
        total += item.monthly_benefit * 12.0 * (1.0 + item.cola) ** (age - item.start_age)
    return total


def pension_for_year(entries: list[Pension], people: dict[str, Person], year: int) -> tuple[float, float]:
    """Return (total_pension, taxable_pension)."""
    total = 0.0
    taxable = 0.0
    for item in entries:
        age = _owner_age(people, item.owner, year)
        if age is None or age < item.start_age:
            continue
        amount = item.annual_amount * (1.0 + item.cola) ** (age - item.start_age)
        total += amount
        if item.taxable:
            taxable += amount
    return total, taxable


def income_for_year(
    *,
    streams: list[IncomeStream],
    social_security: list[SocialSecurity],
    pensions: list[Pension],
    people: list[Person],
    year: int,
) -> IncomeYear:
    by_name = {person.name: person for person in people}
    out = IncomeYear(year=year)
    for stream in streams:
        amount = stream_amount(stream, year)
        out.total += amount
        if stream.taxable:
            out.taxable += amount

    # Social Security benefits are cash income only; they never enter taxable income.
    out.social_security = social_security_for_year(social_security, by_name, year)
    out.total += out.social_security

    pension_total, pension_taxable = pension_for_year(pensions, by_name, year)
    out.pension = pension_total
    out.total += pension_total
    out.taxable += pension_taxable
    return out


def expenses_for_year(streams: list[ExpenseStream], year: int) -> float:
    return sum(stream_amount(stream, year) for stream in streams)
