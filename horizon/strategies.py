"""Strategic withdrawal amounts by strategy type."""

from __future__ import annotations

from .rmd import compute_rmd_amount
from .schema import WithdrawalStrategy

STRATEGY_TYPES = {"tax_optimized", "fixed_percentage", "fixed_amount", "dynamic", "rmd"}
WITHDRAWAL_MODES = {"as_needed", "always"}


def _percentage_withdrawal(
    strategy: WithdrawalStrategy,
    total_assets: float,
    initial_assets: float,
    previous_withdrawal: float | None,
    years_since_retirement: int,
    inflation_rate: float,
) -> float:
    if not strategy.inflation_adjusted:
        return total_assets * strategy.withdrawal_rate
    if years_since_retirement <= 0 or previous_withdrawal is None:
        return initial_assets * strategy.withdrawal_rate
    return previous_withdrawal * (1.0 + inflation_rate)


def _fixed_amount_withdrawal(strategy: WithdrawalStrategy, years_since_retirement: int, inflation_rate: float) -> float:
    if not strategy.inflation_adjusted:
        return strategy.fixed_amount
    return strategy.fixed_amount * (1.0 + inflation_rate) ** max(0, years_since_retirement)


def _dynamic_withdrawal(
    strategy: WithdrawalStrategy,
    total_assets: float,
    initial_assets: float,
    previous_withdrawal: float | None,
    years_since_retirement: int,
    inflation_rate: float,
) -> float:
    """Guyton-Klinger guardrails around the balance at retirement."""
    if years_since_retirement <= 0 or previous_withdrawal is None:
        return total_assets * strategy.initial_rate
    if total_assets > initial_assets * (1.0 + strategy.upper_guardrail):
        return previous_withdrawal * (1.0 + strategy.guardrail_adjustment)
    if total_assets < initial_assets * (1.0 - strategy.lower_guardrail):
        return previous_withdrawal * (1.0 - strategy.guardrail_adjustment)
    return previous_withdrawal * (1.0 + inflation_rate)


def calculate_withdrawal(
    strategy: WithdrawalStrategy,
    *,
    total_assets: float,
    initial_assets: float,
    previous_withdrawal: float | None,
    years_since_retirement: int,
    inflation_rate: float,
    age: int | None = None,
    traditional_balance: float = 0.0,
) -> float:
    if strategy.type in ("tax_optimized", "fixed_percentage"):
        amount = _percentage_withdrawal(
            strategy, total_assets, initial_assets, previous_withdrawal, years_since_retirement, inflation_rate
        )
    elif strategy.type == "fixed_amount":
        amount = _fixed_amount_withdrawal(strategy, years_since_retirement, inflation_rate)
    elif strategy.type == "dynamic":
        amount = _dynamic_withdrawal(
            strategy, total_assets, initial_assets, previous_withdrawal, years_since_retirement, inflation_rate
        )
    elif strategy.type == "rmd":
        amount = 0.0
        if age is not None and age >= strategy.rmd_start_age:
            amount = compute_rmd_amount(traditional_balance, age)
    else:
        raise ValueError(f"unsupported withdrawal strategy: {strategy.type}")
    return max(0.0, min(amount, total_assets))
