"""Amortization helpers for mortgages, installment loans and credit cards."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class AmortizationTotals:
    payments: float = 0.0
    interest: float = 0.0
    principal: float = 0.0
    balance: float = 0.0


def monthly_payment(principal: float, annual_rate: float, term_years: int) -> float:
    """Standard annuity payment: P * r(1+r)^n / ((1+r)^n - 1)."""
    months = int(term_years) * 12
    if principal <= 0 or months <= 0:
        return 0.0
    rate = annual_rate / 12.0
    if rate == 0:
        return principal / months
    growth = (1.0 + rate) ** months
    return principal * rate * growth / (growth - 1.0)


def amortize(balance: float, annual_rate: float, payment: float, months: int) -> AmortizationTotals:
    """Run `months` payments against `balance` and return the totals."""
    totals = AmortizationTotals(balance=max(0.0, balance))
    rate = annual_rate / 12.0
    for _ in range(max(0, months)):
        if totals.balance <= 0:
            break
        interest = totals.balance * rate
        principal = min(max(0.0, payment - interest), totals.balance)
        totals.interest += interest
        totals.principal += principal
        totals.payments += interest + principal
        totals.balance -= principal
    totals.balance = max(0.0, totals.balance)
    return totals


def balance_after(principal: float, annual_rate: float, term_years: int, months: int, extra_payment: float = 0.0) -> float:
    """Remaining balance after `months` scheduled payments from origination."""
    payment = monthly_payment(principal, annual_rate, term_years) + max(0.0, extra_payment)
    return amortize(principal, annual_rate, payment, months).balance


def loan_year(
    principal: float,
    annual_rate: float,
    term_years: int,
    year_index: int,
    extra_payment: float = 0.0,
) -> AmortizationTotals:
    """Totals for the `year_index`-th year (0-based) of a loan's life.

    The returned balance is the balance at the end of that year.
    """
    payment = monthly_payment(principal, annual_rate, term_years) + max(0.0, extra_payment)
    opening = amortize(principal, annual_rate, payment, year_index * 12).balance
    return amortize(opening, annual_rate, payment, 12)


@dataclass(slots=True)
class CardMonth:
    payment: float
    interest: float
    principal: float
    balance: float


def credit_card_month(
    balance: float,
    apr: float,
    min_payment_percent: float = 0.02,
    min_payment_floor: float = 25.0,
    extra_payment: float = 0.0,
) -> CardMonth:
    if balance <= 0:
        return CardMonth(payment=0.0, interest=0.0, principal=0.0, balance=0.0)
    scheduled = max(balance * min_payment_percent, min_payment_floor) + max(0.0, extra_payment)
    interest = balance * apr / 12.0
    principal = min(scheduled - interest, balance)
    payment = interest + principal
    return CardMonth(payment=payment, interest=interest, principal=principal, balance=balance - principal)


def credit_card_year(
    balance: float,
    apr: float,
    min_payment_percent: float = 0.02,
    min_payment_floor: float = 25.0,
    extra_payment: float = 0.0,
) -> AmortizationTotals:
    totals = AmortizationTotals(balance=max(0.0, balance))
    for _ in range(12):
        if totals.balance <= 0:
            break
        month = credit_card_month(totals.balance, apr, min_payment_percent, min_payment_floor, extra_payment)
        totals.payments += month.payment
        totals.interest += month.interest
        totals.principal += month.principal
        totals.balance = max(0.0, month.balance)
    return totals
