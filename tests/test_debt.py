import pytest

from horizon.debt import card_debt_year, debt_year, loan_debt_year
from horizon.schema import CreditCard, Loan


def _loan(**overrides) -> Loan:
    fields = {"name": "Student loan", "balance": 10_000, "rate": 0.0, "term_years": 10, "start_year": 2020}
    fields.update(overrides)
    return Loan(**fields)


def test_regular_year_amortizes():
    row = loan_debt_year(_loan(), 2020)
    assert row.payments == pytest.approx(1_000)
    assert row.balance_end == pytest.approx(9_000)
    assert loan_debt_year(_loan(), 2019).payments == 0.0


def test_taxable_forgiveness_defaults_to_remaining_balance():
    loan = _loan(forgive_year=2022, forgiveness_taxable=True)
    row = loan_debt_year(loan, 2022)
    assert row.forgiven == pytest.approx(8_000)
    assert row.taxable_forgiveness == pytest.approx(8_000)
    assert row.payments == 0.0
    assert row.balance_end == 0.0

    after = loan_debt_year(loan, 2023)
    assert after.payments == 0.0
    assert after.balance_end == 0.0


def test_taxable_forgiveness_uses_explicit_amount():
    loan = _loan(forgive_year=2022, forgiveness_taxable=True, forgiveness_amount=5_000)
    assert loan_debt_year(loan, 2022).taxable_forgiveness == pytest.approx(5_000)


def test_non_taxable_forgiveness_has_no_tax_effect():
    loan = _loan(forgive_year=2022)
    row = loan_debt_year(loan, 2022)
    assert row.forgiven == pytest.approx(8_000)
    assert row.taxable_forgiveness == 0.0


def test_payoff_year_pays_remaining_balance():
    loan = _loan(payoff_year=2021)
    row = loan_debt_year(loan, 2021)
    assert row.payments == pytest.approx(9_000)
    assert row.balance_end == 0.0
    assert loan_debt_year(loan, 2022).payments == 0.0


def test_card_balance_declines_and_stays_paid():
    card = CreditCard(name="Visa", balance=3_000, apr=0.20, start_year=2025, extra_payment=100)
    first = card_debt_year(card, 2025)
    second = card_debt_year(card, 2026)
    assert first.balance_end > 0
    assert 0 < second.balance_end < first.balance_end
    assert card_debt_year(card, 2030).balance_end == 0.0
    assert card_debt_year(card, 2030).payments == 0.0


def test_debt_year_sums_loans_and_cards():
    loan = _loan()
    card = CreditCard(name="Visa", balance=1_000, apr=0.0, start_year=2020, min_payment_floor=50)
    row = debt_year([loan], [card], 2020)
    assert row.payments == pytest.approx(1_000 + 600)
    assert row.balance_end == pytest.approx(9_000 + 400)


def test_interest_bearing_loan_splits_payment():
    row = loan_debt_year(_loan(rate=0.06), 2020)
    assert row.interest > 0
    assert row.payments - row.interest == pytest.approx(10_000 - row.balance_end)
