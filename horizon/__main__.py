"""CLI entry point for Horizon."""

from __future__ import annotations

import argparse
import logging
import sys

from .engine import ProjectionResult
from .schema import Plan, SchemaError, load_plan
from .simulation import MonteCarloResult, run_simulation
from .tax import marginal_rate
from .validate import validate_plan


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Household financial projection and Monte Carlo stress test")
    parser.add_argument("plan", help="Path to plan JSON file")
    parser.add_argument("--mode", choices=["deterministic", "monte_carlo"], help="Override simulation mode")
    parser.add_argument("--trials", type=int, help="Override Monte Carlo trial count")
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility")
    parser.add_argument("--workers", type=int, help="Worker processes for Monte Carlo trials")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print only the headline numbers")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _print_projection(plan: Plan, result: ProjectionResult, summary_only: bool) -> None:
    last = result.years[-1]
    print("Mode: deterministic")
    print(f"Years: {result.years[0].year}-{last.year}")
    print(f"Withdrawals begin: {result.withdrawal_start_year}")
    print(f"Ending net worth: ${last.net_worth:,.0f}")
    if result.depletion_year is not None:
        print(f"Shortfall first appears: {result.depletion_year}")
    if result.unconverged_years:
        years = ", ".join(str(year) for year in result.unconverged_years)
        print(f"Gross-up did not converge in: {years}")
    if summary_only:
        return

    header = f"{'Year':>4} {'Age':>4} {'Income':>12} {'Expenses':>12} {'Taxes':>10} {'Interest':>10} {'Withdrawn':>12} {'Shortfall':>10} {'Net worth':>14} {'Marg.':>6}"
    print(header)
    for row in result.years:
        age = "" if row.age is None else str(row.age)
        rate = marginal_rate(row.taxable_income, plan.plan_settings.filing_status)
        print(
            f"{row.year:>4} {age:>4} {row.income:>12,.0f} {row.expenses + row.milestone_costs:>12,.0f} "
            f"{row.taxes:>10,.0f} {row.interest_paid:>10,.0f} {row.withdrawals:>12,.0f} {row.shortfall:>10,.0f} {row.net_worth:>14,.0f} {rate:>6.0%}"
        )


def _print_monte_carlo(result: MonteCarloResult, summary_only: bool) -> None:
    print("Mode: monte_carlo")
    print(f"Trials: {result.trial_count} of {result.requested_trials}")
    print(f"Seed: {result.seed}")
    print(f"Success rate: {result.success_rate:.1%}")
    if result.years:
        final = result.years[-1].net_worth
        print(f"Final-year median net worth: ${final.median:,.0f} (p10 ${final.p10:,.0f}, p75 ${final.p75:,.0f})")
    if summary_only:
        return

    print(f"{'Year':>4} {'Min':>14} {'P10':>14} {'P25':>14} {'Median':>14} {'P75':>14} {'Max':>14} {'>0':>6}")
    for row in result.years:
        band = row.net_worth
        print(
            f"{row.year:>4} {band.min:>14,.0f} {band.p10:>14,.0f} {band.p25:>14,.0f} {band.median:>14,.0f} "
            f"{band.p75:>14,.0f} {band.max:>14,.0f} {band.success_rate:>6.0%}"
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        plan = load_plan(args.plan)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load plan: {exc}", file=sys.stderr)
        return 2

    validation = validate_plan(plan)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Plan is valid.")
        return 0

    result = run_simulation(
        plan,
        mode_override=args.mode,
        runs_override=args.trials,
        seed=args.seed,
        workers=args.workers,
    )
    if isinstance(result, MonteCarloResult):
        _print_monte_carlo(result, args.summary)
    else:
        _print_projection(plan, result, args.summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
