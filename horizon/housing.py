"""Home ownership and rent modeling."""

from __future__ import annotations

from dataclasses import dataclass

from .amortization import loan_year
from .schema import Property, Rent


@dataclass(slots=True)
class HousingYear:
    year: int
    home_value: float = 0.0
    mortgage_balance: float = 0.0
    mortgage_payment: float = 0.0
    mortgage_interest: float = 0.0
    property_tax: float = 0.0
    insurance: float = 0.0
    maintenance: float = 0.0
    down_payment: float = 0.0
    rent: float = 0.0
    sale_proceeds: float = 0.0

    @property
    def home_equity(self) -> float:
        return max(0.0, self.home_value - self.mortgage_balance)

    @property
    def total_costs(self) -> float:
        return (
            self.mortgage_payment
            + self.property_tax
            + self.insurance
            + self.maintenance
            + self.down_payment
            + self.rent
        )

    def add(self, other: "HousingYear") -> None:
        self.home_value += other.home_value
        self.mortgage_balance += other.mortgage_balance
        self.mortgage_payment += other.mortgage_payment
        self.mortgage_interest += other.mortgage_interest
        self.property_tax += other.property_tax
        self.insurance += other.insurance
        self.maintenance += other.maintenance
        self.down_payment += other.down_payment
        self.rent += other.rent
        self.sale_proceeds += other.sale_proceeds


def home_value(prop: Property, year: int) -> float:
    if year < prop.purchase_year:
        return 0.0
    return prop.purchase_price * (1.0 + prop.appreciation_rate) ** (year - prop.purchase_year)


def is_owned(prop: Property, year: int) -> bool:
    if year < prop.purchase_year:
        return False
    return prop.sell_year is None or year < prop.sell_year


def mortgage_balance_at_end(prop: Property, year: int) -> float:
    if year < prop.purchase_year:
        return 0.0
    return loan_year(prop.loan_amount, prop.rate, prop.term_years, year - prop.purchase_year, prop.extra_payment).balance


def property_year(prop: Property, year: int, plan_start_year: int) -> HousingYear:
    """Value, equity and carrying costs of one property in `year`."""
    out = HousingYear(year=year)
    if prop.sell_year is not None and year == prop.sell_year and year > prop.purchase_year:
        opening_balance = mortgage_balance_at_end(prop, year - 1)
        out.sale_proceeds = max(0.0, home_value(prop, year) - opening_balance)
        return out
    if not is_owned(prop, year):
        return out

    value = home_value(prop, year)
    totals = loan_year(prop.loan_amount, prop.rate, prop.term_years, year - prop.purchase_year, prop.extra_payment)
    out.home_value = value
    out.mortgage_balance = totals.balance
    out.mortgage_payment = totals.payments
    out.mortgage_interest = totals.interest
    out.property_tax = max(0.0, value * prop.property_tax_rate)
    out.insurance = max(0.0, prop.annual_insurance)
    out.maintenance = max(0.0, value * prop.maintenance_rate)
    if year == prop.purchase_year and year >= plan_start_year:
        out.down_payment = max(0.0, prop.down_payment)
    return out


def rent_for_year(rent: Rent, year: int) -> float:
    if year < rent.start_year or (rent.end_year is not None and year > rent.end_year):
        return 0.0
    return rent.monthly_amount * 12.0 * (1.0 + rent.annual_increase) ** (year - rent.start_year)


def housing_year(properties: list[Property], rents: list[Rent], year: int, plan_start_year: int) -> HousingYear:
    out = HousingYear(year=year)
    for prop in properties:
        out.add(property_year(prop, year, plan_start_year))
    out.rent = sum(rent_for_year(rent, year) for rent in rents)
    return out
