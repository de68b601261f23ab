"""Semantic and cross-reference validation for plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .schema import Plan
from .simulation import SIM_MODES
from .strategies import STRATEGY_TYPES, WITHDRAWAL_MODES
from .tax_data import FILING_STATUS_ALIASES, FILING_STATUSES
from .withdrawals import ACCOUNT_TYPES, WINDFALL_ACCOUNT_TYPES

FREQUENCIES = {"monthly", "annual"}


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_enum(result: ValidationResult, path: str, value: str, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value not in allowed_set:
        expected = ", ".join(sorted(allowed_set))
        result.errors.append(f"{path}: '{value}' is not valid; expected one of [{expected}]")


def _check_non_negative(result: ValidationResult, path: str, value: float) -> None:
    if value < 0:
        result.errors.append(f"{path}: must be >= 0")


def _check_year_range(result: ValidationResult, path: str, start_year: int, end_year: int | None) -> None:
    if end_year is not None and end_year < start_year:
        result.errors.append(f"{path}: end_year must be >= start_year")


def _check_owner(result: ValidationResult, path: str, owner: str, names: set[str]) -> None:
    if owner not in names:
        result.errors.append(f"{path}.owner: '{owner}' does not match any person")


def validate_plan(plan: Plan) -> ValidationResult:
    result = ValidationResult()
    settings = plan.plan_settings
    names = {person.name for person in plan.people}

    if settings.years <= 0:
        result.errors.append("plan_settings.years: must be > 0")
    _check_enum(result, "plan_settings.filing_status", settings.filing_status, FILING_STATUSES | set(FILING_STATUS_ALIASES))
    if settings.inflation_rate <= -1.0:
        result.errors.append("plan_settings.inflation_rate: must be > -1")
    if settings.withdrawal_start_year is not None and settings.withdrawal_start_year < settings.start_year:
        result.warnings.append("plan_settings.withdrawal_start_year: precedes start_year; withdrawals begin immediately")

    if len(names) != len(plan.people):
        result.errors.append("people: names must be unique")
    for idx, person in enumerate(plan.people):
        if person.birth_year > settings.start_year:
            result.warnings.append(f"people[{idx}].birth_year: after plan start_year")

    account_names: set[str] = set()
    for idx, account in enumerate(plan.accounts):
        path = f"accounts[{idx}]"
        _check_enum(result, f"{path}.type", account.type, ACCOUNT_TYPES)
        _check_non_negative(result, f"{path}.balance", account.balance)
        if account.return_rate <= -1.0:
            result.errors.append(f"{path}.return_rate: must be > -1")
        if account.name in account_names:
            result.errors.append(f"{path}.name: duplicate account name '{account.name}'")
        account_names.add(account.name)
    if not any(account.type in WINDFALL_ACCOUNT_TYPES for account in plan.accounts):
        result.errors.append("accounts: at least one cash or taxable account is required")

    for key, streams in (("income", plan.income), ("expenses", plan.expenses)):
        for idx, stream in enumerate(streams):
            path = f"{key}[{idx}]"
            _check_enum(result, f"{path}.frequency", stream.frequency, FREQUENCIES)
            _check_non_negative(result, f"{path}.amount", stream.amount)
            _check_year_range(result, path, stream.start_year, stream.end_year)

    for idx, item in enumerate(plan.social_security):
        _check_owner(result, f"social_security[{idx}]", item.owner, names)
        _check_non_negative(result, f"social_security[{idx}].monthly_benefit", item.monthly_benefit)
    for idx, pension in enumerate(plan.pensions):
        _check_owner(result, f"pensions[{idx}]", pension.owner, names)
        _check_non_negative(result, f"pensions[{idx}].annual_amount", pension.annual_amount)

    for idx, milestone in enumerate(plan.milestones):
        path = f"milestones[{idx}]"
        _check_non_negative(result, f"{path}.cost", milestone.cost)
        if milestone.recurring and milestone.recurring_interval < 1:
            result.errors.append(f"{path}.recurring_interval: must be >= 1")
        if milestone.is_taxable and milestone.taxable_amount is None and milestone.cost <= 0:
            result.warnings.append(f"{path}: taxable milestone has no taxable_amount or cost")

    for idx, prop in enumerate(plan.properties):
        path = f"properties[{idx}]"
        if prop.down_payment > prop.purchase_price:
            result.errors.append(f"{path}.down_payment: exceeds purchase_price")
        if prop.term_years <= 0 and prop.loan_amount > 0:
            result.errors.append(f"{path}.term_years: must be > 0 when financed")
        if prop.sell_year is not None and prop.sell_year <= prop.purchase_year:
            result.errors.append(f"{path}.sell_year: must be after purchase_year")

    for idx, rent in enumerate(plan.rent):
        _check_year_range(result, f"rent[{idx}]", rent.start_year, rent.end_year)

    for idx, loan in enumerate(plan.loans):
        path = f"loans[{idx}]"
        _check_non_negative(result, f"{path}.balance", loan.balance)
        if loan.term_years <= 0:
            result.errors.append(f"{path}.term_years: must be > 0")
        if loan.forgiveness_amount is not None and not loan.forgiveness_taxable:
            result.warnings.append(f"{path}.forgiveness_amount: ignored because forgiveness is not taxable")
        for key in ("payoff_year", "forgive_year"):
            value = getattr(loan, key)
            if value is not None and value < loan.start_year:
                result.errors.append(f"{path}.{key}: precedes start_year")

    for idx, card in enumerate(plan.credit_cards):
        path = f"credit_cards[{idx}]"
        _check_non_negative(result, f"{path}.balance", card.balance)
        if card.min_payment_percent <= 0 and card.min_payment_floor <= 0 and card.extra_payment <= 0:
            result.warnings.append(f"{path}: no payment configured; balance will never amortize")

    previous_start: int | None = None
    for idx, segment in enumerate(plan.glide_path):
        path = f"glide_path[{idx}]"
        _check_non_negative(result, f"{path}.volatility", segment.volatility)
        if previous_start is not None and segment.start_year == previous_start:
            result.errors.append(f"{path}.start_year: duplicate segment start_year {segment.start_year}")
        previous_start = segment.start_year
    if plan.glide_path and plan.glide_path[0].start_year > settings.start_year:
        result.warnings.append("glide_path: first segment starts after start_year; it also covers earlier years")

    strategy = plan.withdrawal_strategy
    _check_enum(result, "withdrawal_strategy.type", strategy.type, STRATEGY_TYPES)
    _check_enum(result, "withdrawal_strategy.withdrawal_mode", strategy.withdrawal_mode, WITHDRAWAL_MODES)
    for idx, account_type in enumerate(strategy.tax_optimized_sequence):
        _check_enum(result, f"withdrawal_strategy.tax_optimized_sequence[{idx}]", account_type, ACCOUNT_TYPES)
    if strategy.type == "rmd" and not plan.people:
        result.errors.append("withdrawal_strategy.type: rmd strategy requires at least one person")

    if plan.solver.max_iterations < 1:
        result.errors.append("solver.max_iterations: must be >= 1")
    if plan.solver.tolerance <= 0:
        result.errors.append("solver.tolerance: must be > 0")
    if plan.solver.settlement_passes < 1:
        result.errors.append("solver.settlement_passes: must be >= 1")

    sim = plan.simulation_settings
    _check_enum(result, "simulation_settings.mode", sim.mode, SIM_MODES)
    if sim.num_trials < 1:
        result.errors.append("simulation_settings.num_trials: must be >= 1")
    if sim.workers < 1:
        result.errors.append("simulation_settings.workers: must be >= 1")
    _check_non_negative(result, "simulation_settings.base_volatility", sim.base_volatility)

    return result
