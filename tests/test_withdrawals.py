import pytest

from horizon.schema import Account
from horizon.withdrawals import (
    WINDFALL_ACCOUNT_TYPES,
    Ledger,
    SequenceContext,
    select_sequence,
)


def _ledger() -> Ledger:
    return Ledger.from_accounts(
        [
            Account(name="Checking", type="cash", balance=10_000),
            Account(name="Brokerage A", type="taxable", balance=30_000),
            Account(name="Brokerage B", type="taxable", balance=10_000),
            Account(name="401k", type="traditional", balance=200_000),
            Account(name="Roth", type="roth", balance=50_000),
        ]
    )


def test_default_order_exhausts_taxable_before_traditional():
    ledger = _ledger()
    result = ledger.withdraw(60_000, ["taxable", "traditional", "roth", "hsa", "cash"])
    assert result.by_type["taxable"] == pytest.approx(40_000)
    assert result.by_type["traditional"] == pytest.approx(20_000)
    assert "roth" not in result.by_type
    assert ledger.balance("taxable") == pytest.approx(0.0)
    assert result.shortfall == 0.0


def test_withdrawal_within_type_is_proportional():
    ledger = _ledger()
    ledger.withdraw(20_000, ["taxable"])
    snapshot = ledger.snapshot()
    assert snapshot["Brokerage A"] == pytest.approx(15_000)
    assert snapshot["Brokerage B"] == pytest.approx(5_000)


def test_tax_bomb_sequence_leaves_traditional_untouched():
    ledger = _ledger()
    sequence = select_sequence(
        SequenceContext(base_sequence=["taxable", "traditional", "roth", "hsa"], tax_bomb=True), ledger.types()
    )
    assert sequence[-1] == "traditional"
    result = ledger.withdraw(80_000, sequence)
    assert "traditional" not in result.by_type
    assert result.by_type["roth"] == pytest.approx(40_000)
    assert ledger.balance("traditional") == pytest.approx(200_000)


def test_select_sequence_appends_missing_types():
    default = select_sequence(SequenceContext(base_sequence=["taxable", "traditional", "roth", "hsa"]))
    assert default == ["taxable", "traditional", "roth", "hsa", "cash"]
    bomb = select_sequence(SequenceContext(base_sequence=["taxable", "traditional", "roth", "hsa"], tax_bomb=True))
    assert bomb == ["taxable", "roth", "hsa", "cash", "traditional"]


def test_select_sequence_falls_back_to_default_order():
    assert select_sequence(SequenceContext(base_sequence=[]), ["cash", "taxable"])[:2] == ["taxable", "traditional"]


def test_shortfall_when_accounts_exhausted():
    ledger = _ledger()
    result = ledger.withdraw(400_000, ["cash", "taxable", "traditional", "roth"])
    assert result.total_withdrawn == pytest.approx(300_000)
    assert result.shortfall == pytest.approx(100_000)
    assert ledger.balance() == pytest.approx(0.0)


def test_zero_balance_withdrawal_reports_full_shortfall():
    ledger = Ledger.from_accounts([Account(name="Checking", type="cash", balance=0)])
    result = ledger.withdraw(5_000, ["cash", "taxable"])
    assert result.total_withdrawn == 0.0
    assert result.shortfall == pytest.approx(5_000)
    assert ledger.balance() == 0.0


def test_deposit_restricted_to_windfall_accounts():
    ledger = _ledger()
    ledger.deposit(50_000, WINDFALL_ACCOUNT_TYPES)
    snapshot = ledger.snapshot()
    assert snapshot["401k"] == pytest.approx(200_000)
    assert snapshot["Roth"] == pytest.approx(50_000)
    assert ledger.balance("cash") + ledger.balance("taxable") == pytest.approx(100_000)
    assert snapshot["Brokerage A"] == pytest.approx(30_000 + 50_000 * 0.6)


def test_deposit_into_empty_accounts_goes_to_first_eligible():
    ledger = Ledger.from_accounts(
        [
            Account(name="IRA", type="traditional", balance=0),
            Account(name="Checking", type="cash", balance=0),
            Account(name="Brokerage", type="taxable", balance=0),
        ]
    )
    assert ledger.deposit(1_000, WINDFALL_ACCOUNT_TYPES) == pytest.approx(1_000)
    assert ledger.snapshot() == {"IRA": 0.0, "Checking": 1_000.0, "Brokerage": 0.0}


def test_apply_returns_never_goes_negative():
    ledger = _ledger()
    growth = ledger.apply_returns(lambda entry: -1.5 if entry.type == "roth" else 0.1)
    assert ledger.snapshot()["Roth"] == 0.0
    assert growth == pytest.approx(25_000 - 50_000)


def test_ledger_does_not_mutate_accounts():
    accounts = [Account(name="Checking", type="cash", balance=1_000)]
    ledger = Ledger.from_accounts(accounts)
    ledger.withdraw(500, ["cash"])
    assert accounts[0].balance == 1_000
