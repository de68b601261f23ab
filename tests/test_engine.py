import pytest

from horizon.engine import (
    RECONCILIATION_TOLERANCE,
    build_schedule,
    run_projection,
    segment_for_year,
    solve_gross_up,
    withdrawal_start_year,
)
from horizon.schema import GlidePathSegment, Plan
from horizon.tax import compute_tax
from tests.helpers import build_plan, minimal_plan_dict


def test_sample_plan_reconciles_every_year(sample_plan_dict):
    result = run_projection(Plan.from_dict(sample_plan_dict))

    assert len(result.years) == 40
    for row in result.years:
        assert abs(row.reconciliation_gap) <= RECONCILIATION_TOLERANCE, row.year
        assert row.end_balance == pytest.approx(sum(row.account_balances.values()))


def test_sample_plan_net_worth_includes_home_and_debt(sample_plan_dict):
    result = run_projection(Plan.from_dict(sample_plan_dict))
    first = result.years[0]

    assert first.home_equity > 0
    assert first.debt_balance > 0
    assert first.net_worth == pytest.approx(first.end_balance + first.home_equity - first.debt_balance)
    assert first.liquid_net_worth == pytest.approx(first.end_balance - first.debt_balance)


def test_sample_plan_tax_bomb_years_defer_traditional(sample_plan_dict):
    result = run_projection(Plan.from_dict(sample_plan_dict))
    rows = {row.year: row for row in result.years}

    # Stock vesting in 2026 and taxable loan forgiveness in 2030.
    for year in (2026, 2030):
        assert rows[year].tax_bomb_income > 0
        assert rows[year].withdrawal_sequence[-1] == "traditional"
    assert rows[2027].withdrawal_sequence[:2] == ["taxable", "traditional"]


def test_projection_does_not_mutate_plan(sample_plan_dict):
    plan = Plan.from_dict(sample_plan_dict)
    before = [account.balance for account in plan.accounts]

    run_projection(plan)

    assert [account.balance for account in plan.accounts] == before


def test_solver_converges_to_fixed_point():
    solved = solve_gross_up(
        income=0,
        expenses=50_000,
        milestone_costs=0,
        earned_income=0,
        tax_bomb_income=0,
        traditional_share=1.0,
        filing_status="single",
        initial_tax=0,
    )
    assert solved.converged
    assert solved.iterations == 5
    assert solved.value == pytest.approx(50_000 + compute_tax(solved.value, "single"), abs=1.0)


def test_solver_without_traditional_needs_one_pass():
    solved = solve_gross_up(
        income=10_000,
        expenses=50_000,
        milestone_costs=0,
        earned_income=0,
        tax_bomb_income=0,
        traditional_share=0.0,
        filing_status="single",
        initial_tax=0,
    )
    assert solved.converged
    assert solved.iterations == 1
    assert solved.value == pytest.approx(40_000)


def test_solver_reports_non_convergence():
    solved = solve_gross_up(
        income=0,
        expenses=50_000,
        milestone_costs=0,
        earned_income=0,
        tax_bomb_income=0,
        traditional_share=1.0,
        filing_status="single",
        initial_tax=0,
        max_iterations=2,
    )
    assert not solved.converged
    assert solved.iterations == 2


def test_unconverged_years_surface_in_projection(sample_plan_dict):
    sample_plan_dict["solver"]["max_iterations"] = 1
    result = run_projection(Plan.from_dict(sample_plan_dict))

    assert result.unconverged_years
    for year in result.unconverged_years:
        row = next(row for row in result.years if row.year == year)
        assert row.solver_iterations == 1
        assert abs(row.reconciliation_gap) <= RECONCILIATION_TOLERANCE


def test_withdrawal_start_year_explicit_setting_wins():
    data = minimal_plan_dict()
    data["plan_settings"]["withdrawal_start_year"] = 2027
    assert withdrawal_start_year(build_plan(data)) == 2027


def test_withdrawal_start_year_from_retirement():
    data = minimal_plan_dict(years=12)
    data["people"] = [{"name": "Pat", "birth_year": 1970, "retirement_age": 62}]
    data["income"] = [{"name": "Salary", "amount": 100_000, "frequency": "annual", "start_year": 2025}]
    data["expenses"] = [{"name": "Living", "amount": 50_000, "frequency": "annual", "start_year": 2025}]
    assert withdrawal_start_year(build_plan(data)) == 2032


def test_withdrawal_start_year_pulled_earlier_by_cash_gap():
    data = minimal_plan_dict(years=12)
    data["people"] = [{"name": "Pat", "birth_year": 1970, "retirement_age": 62}]
    data["income"] = [{"name": "Salary", "amount": 100_000, "frequency": "annual", "start_year": 2025, "end_year": 2028}]
    data["expenses"] = [{"name": "Living", "amount": 50_000, "frequency": "annual", "start_year": 2025}]
    plan = build_plan(data)
    assert withdrawal_start_year(plan, build_schedule(plan)) == 2029


def test_windfall_only_reaches_cash_and_taxable():
    data = minimal_plan_dict(years=2)
    data["milestones"] = [{"name": "Inheritance", "year": 2026, "cost": 10_000, "is_positive": True}]
    result = run_projection(build_plan(data))
    row = result.years[1]

    assert row.windfall_contributions == pytest.approx(10_000)
    assert row.account_balances["IRA"] == pytest.approx(100_000)
    assert row.account_balances["Brokerage"] == pytest.approx(110_000)


def test_tax_bomb_year_funds_spending_without_traditional():
    data = minimal_plan_dict(years=2)
    data["expenses"] = [{"name": "Living", "amount": 20_000, "frequency": "annual", "start_year": 2025}]
    data["milestones"] = [{"name": "Vesting", "year": 2026, "cost": 0, "is_taxable": True, "taxable_amount": 50_000}]
    result = run_projection(build_plan(data))
    bomb = result.years[1]

    assert bomb.withdrawal_sequence[-1] == "traditional"
    assert bomb.traditional_withdrawals == 0.0
    assert bomb.taxes == pytest.approx(compute_tax(50_000, "single"))
    assert bomb.shortfall == 0.0
    assert bomb.account_balances["IRA"] == pytest.approx(100_000)


def test_shortfall_recorded_when_assets_run_out():
    data = minimal_plan_dict(years=3)
    data["expenses"] = [{"name": "Living", "amount": 300_000, "frequency": "annual", "start_year": 2025}]
    result = run_projection(build_plan(data))
    first = result.years[0]

    assert first.shortfall > 0
    assert first.end_balance == pytest.approx(0.0, abs=1e-6)
    assert result.depletion_year == 2025
    assert not result.success
    assert all(row.shortfall > 0 for row in result.years)


def _rmd_plan(enforce: bool) -> Plan:
    data = minimal_plan_dict(years=1)
    data["people"] = [{"name": "Pat", "birth_year": 1950, "retirement_age": 65}]
    data["accounts"] = [
        {"name": "Cash", "type": "cash", "balance": 0},
        {"name": "IRA", "type": "traditional", "balance": 500_000},
    ]
    data["withdrawal_strategy"] = {"enforce_rmd_floor": enforce}
    return build_plan(data)


def test_rmd_floor_forces_traditional_withdrawal():
    row = run_projection(_rmd_plan(enforce=True)).years[0]

    assert row.rmd_required == pytest.approx(20325.20, abs=0.01)
    assert row.traditional_withdrawals == pytest.approx(20325.20, abs=0.01)
    assert row.taxes == pytest.approx(572.52, abs=0.01)
    assert row.account_balances["IRA"] == pytest.approx(479674.80, abs=0.01)
    assert row.account_balances["Cash"] == pytest.approx(20325.20 - 572.52, abs=0.01)
    assert abs(row.reconciliation_gap) <= RECONCILIATION_TOLERANCE


def test_rmd_reported_but_not_forced_by_default():
    row = run_projection(_rmd_plan(enforce=False)).years[0]

    assert row.rmd_required == pytest.approx(20325.20, abs=0.01)
    assert row.traditional_withdrawals == 0.0


def _always_plan(mode: str) -> Plan:
    data = minimal_plan_dict(years=1)
    data["income"] = [{"name": "Salary", "amount": 50_000, "frequency": "annual", "start_year": 2025}]
    data["expenses"] = [{"name": "Living", "amount": 20_000, "frequency": "annual", "start_year": 2025}]
    data["withdrawal_strategy"] = {
        "type": "fixed_amount",
        "fixed_amount": 10_000,
        "inflation_adjusted": False,
        "withdrawal_mode": mode,
    }
    return build_plan(data)


def test_always_mode_withdraws_strategic_amount_in_surplus_year():
    row = run_projection(_always_plan("always")).years[0]

    assert row.strategic_withdrawal == pytest.approx(10_000)
    assert row.withdrawals == pytest.approx(10_000)
    assert row.withdrawals_by_type == {"taxable": pytest.approx(10_000)}
    assert row.reinvested_withdrawals == pytest.approx(10_000)
    assert row.contributions == pytest.approx(50_000 - 20_000 - 4_016 + 10_000)
    assert row.account_balances["IRA"] > 100_000


def test_as_needed_mode_skips_withdrawal_in_surplus_year():
    row = run_projection(_always_plan("as_needed")).years[0]

    assert row.withdrawals == 0.0
    assert row.contributions == pytest.approx(50_000 - 20_000 - 4_016)
    assert row.savings_rate == pytest.approx((50_000 - 20_000 - 4_016) / 50_000)


def test_missing_cash_and_taxable_accounts_rejected():
    data = minimal_plan_dict()
    data["accounts"] = [{"name": "IRA", "type": "traditional", "balance": 100_000}]
    with pytest.raises(ValueError, match="cash or taxable"):
        run_projection(build_plan(data))


def test_return_path_overrides_invested_accounts_only():
    data = minimal_plan_dict(years=1)
    data["accounts"][0]["balance"] = 10_000
    data["accounts"][0]["return_rate"] = 0.02
    result = run_projection(build_plan(data), return_path={2025: 0.10})
    row = result.years[0]

    assert row.investment_returns == pytest.approx(10_000 * 0.02 + 200_000 * 0.10)


def test_segment_for_year_covers_years_before_first_segment():
    path = [GlidePathSegment(2030, 0.06, 0.1), GlidePathSegment(2025, 0.08, 0.2)]
    assert segment_for_year(path, 2020).start_year == 2025
    assert segment_for_year(path, 2029).expected_return == 0.08
    assert segment_for_year(path, 2040).expected_return == 0.06
    assert segment_for_year([], 2025) is None


def test_sample_plan_is_fully_funded(sample_plan_dict):
    result = run_projection(Plan.from_dict(sample_plan_dict))

    assert [row.year for row in result.years if row.shortfall > 0] == []
    assert result.depletion_year is None
    assert result.success


def test_traditional_draw_settles_its_own_tax():
    data = minimal_plan_dict(years=1)
    data["accounts"] = [
        {"name": "Cash", "type": "cash", "balance": 500_000},
        {"name": "IRA", "type": "traditional", "balance": 500_000},
    ]
    data["expenses"] = [{"name": "Living", "amount": 120_000, "frequency": "annual", "start_year": 2025}]
    result = run_projection(build_plan(data))
    row = result.years[0]

    assert row.shortfall == 0.0
    assert result.success
    assert result.depletion_year is None
    assert row.withdrawals_by_type == {"traditional": pytest.approx(row.withdrawals)}
    assert row.traditional_withdrawals == pytest.approx(
        120_000 + compute_tax(row.traditional_withdrawals, "single"), abs=0.01
    )
    assert row.taxes == pytest.approx(compute_tax(row.traditional_withdrawals, "single"))
    assert abs(row.reconciliation_gap) <= RECONCILIATION_TOLERANCE


def test_sample_plan_reports_interest_and_forgiveness(sample_plan_dict):
    result = run_projection(Plan.from_dict(sample_plan_dict))
    rows = {row.year: row for row in result.years}

    assert rows[2025].interest_paid > 0
    assert rows[2030].debt_forgiven > 0
    # Forgiveness carries no explicit amount, so the whole balance is taxable.
    assert rows[2030].tax_bomb_income == pytest.approx(rows[2030].debt_forgiven)
    assert rows[2031].debt_forgiven == 0.0
