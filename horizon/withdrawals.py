"""Account ledger, withdrawal sequencing and sequence policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from .schema import DEFAULT_SEQUENCE, Account

ACCOUNT_TYPES = ("cash", "taxable", "traditional", "roth", "hsa")
WINDFALL_ACCOUNT_TYPES = ("cash", "taxable")
EPSILON = 1e-9


@dataclass(slots=True)
class LedgerEntry:
    name: str
    type: str
    balance: float
    return_rate: float


@dataclass(slots=True)
class WithdrawalResult:
    total_withdrawn: float = 0.0
    by_type: dict[str, float] = field(default_factory=dict)
    shortfall: float = 0.0

    def merge(self, other: "WithdrawalResult") -> None:
        self.total_withdrawn += other.total_withdrawn
        for account_type, amount in other.by_type.items():
            self.by_type[account_type] = self.by_type.get(account_type, 0.0) + amount


@dataclass(slots=True)
class SequenceContext:
    base_sequence: list[str]
    tax_bomb: bool = False


class Ledger:
    """Working copy of account balances for a single projection run.

    All balance mutation during a run goes through this class so the input
    `Account` records are never touched.
    """

    def __init__(self, entries: list[LedgerEntry]):
        self.entries = entries

    @classmethod
    def from_accounts(cls, accounts: Iterable[Account]) -> "Ledger":
        return cls(
            [
                LedgerEntry(name=a.name, type=a.type, balance=max(0.0, float(a.balance)), return_rate=a.return_rate)
                for a in accounts
            ]
        )

    def balance(self, account_type: str | None = None) -> float:
        return sum(e.balance for e in self.entries if account_type is None or e.type == account_type)

    def balances_by_type(self) -> dict[str, float]:
        out: dict[str, float] = {}
        for entry in self.entries:
            out[entry.type] = out.get(entry.type, 0.0) + entry.balance
        return out

    def snapshot(self) -> dict[str, float]:
        return {entry.name: entry.balance for entry in self.entries}

    def types(self) -> list[str]:
        seen: list[str] = []
        for entry in self.entries:
            if entry.type not in seen:
                seen.append(entry.type)
        return seen

    def _withdraw_type(self, account_type: str, amount: float) -> float:
        targets = [e for e in self.entries if e.type == account_type and e.balance > 0]
        available = sum(e.balance for e in targets)
        if available <= 0 or amount <= 0:
            return 0.0
        take = min(amount, available)
        for entry in targets:
            share = take * (entry.balance / available)
            entry.balance = max(0.0, entry.balance - share)
        return take

    def withdraw(self, target: float, order: list[str]) -> WithdrawalResult:
        """Withdraw `target` following `order`, proportionally within each type."""
        result = WithdrawalResult()
        remaining = max(0.0, target)
        for account_type in order:
            if remaining < EPSILON:
                break
            taken = self._withdraw_type(account_type, remaining)
            if taken <= 0:
                continue
            result.by_type[account_type] = result.by_type.get(account_type, 0.0) + taken
            result.total_withdrawn += taken
            remaining -= taken
        result.shortfall = remaining if remaining >= EPSILON else 0.0
        return result

    def deposit(self, amount: float, types: Iterable[str] | None = None) -> float:
        """Spread `amount` across eligible accounts by balance share.

        When every eligible balance is zero the whole amount lands in the first
        eligible account. Returns the amount deposited.
        """
        if amount <= 0:
            return 0.0
        allowed = set(types) if types is not None else None
        eligible = [e for e in self.entries if allowed is None or e.type in allowed]
        if not eligible:
            return 0.0
        total = sum(e.balance for e in eligible)
        if total <= 0:
            eligible[0].balance += amount
            return amount
        for entry in eligible:
            entry.balance += amount * (entry.balance / total)
        return amount

    def apply_returns(self, rate_for: Callable[[LedgerEntry], float]) -> float:
        """Grow each balance by its rate and return the total growth."""
        growth = 0.0
        for entry in self.entries:
            # A loss can never take a balance below zero.
            delta = max(-entry.balance, entry.balance * rate_for(entry))
            entry.balance += delta
            growth += delta
        return growth


def _complete_sequence(base: list[str], present: Iterable[str]) -> list[str]:
    ordered = [t for t in base if t in ACCOUNT_TYPES]
    for account_type in present:
        if account_type not in ordered:
            ordered.append(account_type)
    return ordered


def select_sequence(context: SequenceContext, present_types: Iterable[str] = ACCOUNT_TYPES) -> list[str]:
    """Account-type withdrawal order for a year.

    Types missing from the configured sequence are appended. In a tax-bomb
    year traditional accounts move to the very end so no extra ordinary
    income is stacked on top of the injected taxable income.
    """
    base = context.base_sequence or list(DEFAULT_SEQUENCE)
    ordered = _complete_sequence(base, present_types)
    if context.tax_bomb and "traditional" in ordered:
        ordered = [t for t in ordered if t != "traditional"] + ["traditional"]
    return ordered
