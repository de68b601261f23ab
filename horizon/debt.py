"""Installment loan and credit card schedules, including payoff and forgiveness."""

from __future__ import annotations

from dataclasses import dataclass

from .amortization import credit_card_year, loan_year
from .schema import CreditCard, Loan


@dataclass(slots=True)
class DebtYear:
    year: int
    payments: float = 0.0
    interest: float = 0.0
    balance_end: float = 0.0
    forgiven: float = 0.0
    taxable_forgiveness: float = 0.0

    def add(self, other: "DebtYear") -> None:
        self.payments += other.payments
        self.interest += other.interest
        self.balance_end += other.balance_end
        self.forgiven += other.forgiven
        self.taxable_forgiveness += other.taxable_forgiveness


def _closing_year(loan: Loan) -> int | None:
    years = [y for y in (loan.payoff_year, loan.forgive_year) if y is not None]
    return min(years) if years else None


def _opening_balance(loan: Loan, year: int) -> float:
    if year <= loan.start_year:
        return max(0.0, loan.balance)
    return loan_year(loan.balance, loan.rate, loan.term_years, year - 1 - loan.start_year, loan.extra_payment).balance


def loan_debt_year(loan: Loan, year: int) -> DebtYear:
    out = DebtYear(year=year)
    if year < loan.start_year:
        return out
    closing = _closing_year(loan)
    if closing is not None and year > closing:
        return out

    if loan.forgive_year is not None and year == loan.forgive_year:
        opening = _opening_balance(loan, year)
        out.forgiven = opening
        if loan.forgiveness_taxable:
            amount = loan.forgiveness_amount if loan.forgiveness_amount is not None else opening
            out.taxable_forgiveness = max(0.0, amount)
        return out

    if loan.payoff_year is not None and year == loan.payoff_year:
        out.payments = _opening_balance(loan, year)
        return out

    totals = loan_year(loan.balance, loan.rate, loan.term_years, year - loan.start_year, loan.extra_payment)
    out.payments = totals.payments
    out.interest = totals.interest
    out.balance_end = totals.balance
    return out


def card_debt_year(card: CreditCard, year: int) -> DebtYear:
    out = DebtYear(year=year)
    if year < card.start_year:
        return out
    balance = max(0.0, card.balance)
    for _ in range(card.start_year, year):
        if balance <= 0:
            break
        balance = credit_card_year(
            balance, card.apr, card.min_payment_percent, card.min_payment_floor, card.extra_payment
        ).balance
    totals = credit_card_year(balance, card.apr, card.min_payment_percent, card.min_payment_floor, card.extra_payment)
    out.payments = totals.payments
    out.interest = totals.interest
    out.balance_end = totals.balance
    return out


def debt_year(loans: list[Loan], cards: list[CreditCard], year: int) -> DebtYear:
    """Combined payments, balances and forgiveness across all debts for `year`."""
    out = DebtYear(year=year)
    for loan in loans:
        out.add(loan_debt_year(loan, year))
    for card in cards:
        out.add(card_debt_year(card, year))
    return out
