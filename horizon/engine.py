"""Year-by-year deterministic projection engine."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from .cashflows import IncomeYear, expenses_for_year, income_for_year
from .debt import DebtYear, debt_year
from .housing import HousingYear, housing_year
from .milestones import MilestoneYear, milestone_year
from .rmd import compute_rmd_amount
from .schema import GlidePathSegment, Plan
from .strategies import calculate_withdrawal
from .tax import compute_tax
from .withdrawals import (
    WINDFALL_ACCOUNT_TYPES,
    Ledger,
    LedgerEntry,
    SequenceContext,
    WithdrawalResult,
    select_sequence,
)

logger = logging.getLogger(__name__)

RECONCILIATION_TOLERANCE = 0.01
SETTLEMENT_TOLERANCE = 0.005


@dataclass(slots=True)
class YearSchedule:
    """Return-independent accruals for one year."""

    year: int
    income: IncomeYear
    expense_streams: float
    housing: HousingYear
    debt: DebtYear
    milestones: MilestoneYear

    @property
    def total_expenses(self) -> float:
        return self.expense_streams + self.housing.total_costs + self.debt.payments

    @property
    def windfalls(self) -> float:
        return self.milestones.windfalls + self.housing.sale_proceeds

    @property
    def tax_bomb_income(self) -> float:
        return self.milestones.taxable_income + self.debt.taxable_forgiveness


@dataclass(slots=True)
class SolverResult:
    value: float
    tax: float
    converged: bool
    iterations: int


@dataclass(slots=True)
class YearProjection:
    year: int
    age: int | None
    start_balance: float
    contributions: float
    reinvested_withdrawals: float
    windfall_contributions: float
    withdrawals: float
    withdrawals_by_type: dict[str, float]
    traditional_withdrawals: float
    rmd_required: float
    strategic_withdrawal: float
    taxes: float
    estimated_taxes: float
    shortfall: float
    investment_returns: float
    end_balance: float
    net_worth: float
    liquid_net_worth: float
    home_value: float
    home_equity: float
    mortgage_balance: float
    debt_balance: float
    income: float
    expenses: float
    housing_costs: float
    debt_payments: float
    interest_paid: float
    debt_forgiven: float
    milestone_costs: float
    windfalls: float
    taxable_income: float
    tax_bomb_income: float
    savings_rate: float
    withdrawal_sequence: list[str] = field(default_factory=list)
    account_balances: dict[str, float] = field(default_factory=dict)
    solver_iterations: int = 0
    solver_converged: bool = True

    @property
    def reconciliation_gap(self) -> float:
        expected = (
            self.start_balance
            + self.contributions
            + self.windfall_contributions
            - self.withdrawals
            + self.investment_returns
        )
        return self.end_balance - expected


@dataclass(slots=True)
class ProjectionResult:
    years: list[YearProjection]
    withdrawal_start_year: int

    @property
    def depletion_year(self) -> int | None:
        for row in self.years:
            if row.shortfall > RECONCILIATION_TOLERANCE:
                return row.year
        return None

    @property
    def success(self) -> bool:
        return self.depletion_year is None

    @property
    def unconverged_years(self) -> list[int]:
        return [row.year for row in self.years if not row.solver_converged]


def build_schedule(plan: Plan) -> dict[int, YearSchedule]:
    start_year = plan.plan_settings.start_year
    schedule: dict[int, YearSchedule] = {}
    for year in plan.years:
        schedule[year] = YearSchedule(
            year=year,
            income=income_for_year(
                streams=plan.income,
                social_security=plan.social_security,
                pensions=plan.pensions,
                people=plan.people,
                year=year,
            ),
            expense_streams=expenses_for_year(plan.expenses, year),
            housing=housing_year(plan.properties, plan.rent, year, start_year),
            debt=debt_year(plan.loans, plan.credit_cards, year),
            milestones=milestone_year(plan.milestones, year),
        )
    return schedule


def segment_for_year(glide_path: list[GlidePathSegment], year: int) -> GlidePathSegment | None:
    """Latest segment starting at or before `year`; the first segment covers earlier years."""
    if not glide_path:
        return None
    ordered = sorted(glide_path, key=lambda segment: segment.start_year)
    current = ordered[0]
    for segment in ordered:
        if segment.start_year <= year:
            current = segment
        else:
            break
    return current


def withdrawal_start_year(plan: Plan, schedule: dict[int, YearSchedule] | None = None) -> int:
    """Year strategic withdrawals begin.

    An explicit setting wins. Otherwise the earliest retirement year among the
    household, pulled earlier to the first year projected income no longer
    covers projected expenses.
    """
    settings = plan.plan_settings
    if settings.withdrawal_start_year is not None:
        return settings.withdrawal_start_year

    retirement_years = [person.birth_year + person.retirement_age for person in plan.people]
    candidate = min(retirement_years) if retirement_years else settings.start_year
    if schedule is None:
        schedule = build_schedule(plan)
    for year in plan.years:
        if year >= candidate:
            break
        row = schedule[year]
        if row.income.total < row.total_expenses:
            return year
    return candidate


def solve_gross_up(
    *,
    income: float,
    expenses: float,
    milestone_costs: float,
    earned_income: float,
    tax_bomb_income: float,
    traditional_share: float,
    filing_status: str,
    initial_tax: float,
    tolerance: float = 1.0,
    max_iterations: int = 5,
) -> SolverResult:
    """Solve for the withdrawal that covers expenses plus the tax it creates.

    Traditional-account withdrawals are ordinary income, so the required
    withdrawal W and the tax on it depend on each other. Iterate until W moves
    by less than `tolerance` or `max_iterations` is reached.
    """
    withdrawal = abs(expenses + milestone_costs + initial_tax - income)
    tax = initial_tax
    share = min(1.0, max(0.0, traditional_share))
    for iteration in range(1, max_iterations + 1):
        estimated_traditional = withdrawal * share
        tax = compute_tax(earned_income + tax_bomb_income + estimated_traditional, filing_status)
        updated = expenses + milestone_costs + tax - income
        if abs(updated - withdrawal) < tolerance:
            return SolverResult(value=updated, tax=tax, converged=True, iterations=iteration)
        withdrawal = updated

    logger.debug(
        "gross-up did not converge after %d iterations (last estimate %.2f)",
        max_iterations,
        withdrawal,
    )
    return SolverResult(value=withdrawal, tax=tax, converged=False, iterations=max_iterations)


def _market_return(plan: Plan, return_path: dict[int, float] | None, year: int) -> float | None:
    if return_path is not None and year in return_path:
        return return_path[year]
    segment = segment_for_year(plan.glide_path, year)
    if segment is None:
        return None
    return segment.expected_return


def _require_windfall_account(ledger: Ledger) -> None:
    if not any(entry.type in WINDFALL_ACCOUNT_TYPES for entry in ledger.entries):
        raise ValueError("at least one cash or taxable account is required")


def run_projection(
    plan: Plan,
    return_path: dict[int, float] | None = None,
    *,
    schedule: dict[int, YearSchedule] | None = None,
) -> ProjectionResult:
    """Project the plan year by year.

    `return_path` maps year to the annual return applied to every invested
    account. Without one, the glide path's expected return is used, or each
    account's own rate when no glide path is configured. Cash accounts always
    earn their own rate. The plan itself is never mutated.
    """
    settings = plan.plan_settings
    strategy = plan.withdrawal_strategy
    filing_status = settings.filing_status

    ledger = Ledger.from_accounts(plan.accounts)
    _require_windfall_account(ledger)
    if schedule is None:
        schedule = build_schedule(plan)
    start_withdrawals = withdrawal_start_year(plan, schedule)
    primary = plan.people[0] if plan.people else None

    initial_assets: float | None = None
    previous_strategic: float | None = None
    rows: list[YearProjection] = []

    for year in plan.years:
        # Return-independent accruals.
        accruals = schedule[year]
        age = primary.age_in(year) if primary is not None else None
        start_balance = ledger.balance()
        balances_by_type = ledger.balances_by_type()
        traditional_balance = balances_by_type.get("traditional", 0.0)

        income = accruals.income.total
        earned_income = accruals.income.taxable
        expenses = accruals.total_expenses
        milestone_costs = accruals.milestones.costs
        windfalls = accruals.windfalls
        tax_bomb_income = accruals.tax_bomb_income

        # First tax pass, before any withdrawals.
        estimated_tax = compute_tax(earned_income + tax_bomb_income, filing_status)
        net_cash_flow = income - expenses - milestone_costs - estimated_tax

        # Deficit years solve for the grossed-up withdrawal.
        need = 0.0
        solver_iterations = 0
        solver_converged = True
        if net_cash_flow < 0:
            solved = solve_gross_up(
                income=income,
                expenses=expenses,
                milestone_costs=milestone_costs,
                earned_income=earned_income,
                tax_bomb_income=tax_bomb_income,
                traditional_share=traditional_balance / start_balance if start_balance > 0 else 0.0,
                filing_status=filing_status,
                initial_tax=estimated_tax,
                tolerance=plan.solver.tolerance,
                max_iterations=plan.solver.max_iterations,
            )
            need = max(0.0, solved.value)
            estimated_tax = solved.tax
            solver_iterations = solved.iterations
            solver_converged = solved.converged

        target = need
        strategic = 0.0
        if year >= start_withdrawals:
            if initial_assets is None:
                initial_assets = start_balance
            strategic = calculate_withdrawal(
                strategy,
                total_assets=start_balance,
                initial_assets=initial_assets,
                previous_withdrawal=previous_strategic,
                years_since_retirement=year - start_withdrawals,
                inflation_rate=settings.inflation_rate,
                age=age,
                traditional_balance=traditional_balance,
            )
            previous_strategic = strategic
            if strategy.withdrawal_mode == "always":
                target = max(need, strategic)

        rmd_required = 0.0
        if age is not None and age >= strategy.rmd_start_age:
            rmd_required = compute_rmd_amount(traditional_balance, age)
        mandatory = rmd_required if strategy.enforce_rmd_floor else 0.0
        target = max(target, mandatory)

        # Returns accrue on start-of-year balances.
        market = _market_return(plan, return_path, year)

        def _rate(entry: LedgerEntry) -> float:
            if entry.type == "cash" or market is None:
                return entry.return_rate
            return market

        investment_returns = ledger.apply_returns(_rate)

        # RMD first, then the year's sequence.
        sequence = select_sequence(
            SequenceContext(base_sequence=strategy.tax_optimized_sequence, tax_bomb=tax_bomb_income > 0),
            ledger.types(),
        )
        withdrawn = WithdrawalResult()
        if mandatory > 0:
            withdrawn.merge(ledger.withdraw(mandatory, ["traditional"]))
        if target - withdrawn.total_withdrawn > 0:
            withdrawn.merge(ledger.withdraw(target - withdrawn.total_withdrawn, sequence))

        # Second tax pass on actual traditional withdrawals. Each settlement
        # pass draws the unpaid gap, which shrinks by the marginal rate, until
        # the gap is settled or the ledger has nothing left to draw.
        taxes = compute_tax(earned_income + tax_bomb_income + withdrawn.by_type.get("traditional", 0.0), filing_status)
        passes = max(1, plan.solver.settlement_passes)
        for attempt in range(1, passes + 1):
            gap = expenses + milestone_costs + taxes - income - withdrawn.total_withdrawn
            if gap <= SETTLEMENT_TOLERANCE:
                break
            extra = ledger.withdraw(gap, sequence)
            if extra.total_withdrawn <= 0:
                break
            withdrawn.merge(extra)
            taxes = compute_tax(
                earned_income + tax_bomb_income + withdrawn.by_type.get("traditional", 0.0), filing_status
            )
            if attempt == passes:
                logger.debug("tax settlement for %d stopped after %d passes", year, passes)

        cash_left = income + withdrawn.total_withdrawn - expenses - milestone_costs - taxes
        shortfall = -cash_left if cash_left < -RECONCILIATION_TOLERANCE else 0.0
        surplus = income - expenses - milestone_costs - taxes
        regular = max(0.0, min(cash_left, surplus))
        reinvest = max(0.0, cash_left) - regular

        # Income surplus goes to every account; withdrawn cash that was
        # not spent and windfalls go to cash and taxable accounts only.
        contributions = ledger.deposit(regular)
        reinvested = ledger.deposit(reinvest, WINDFALL_ACCOUNT_TYPES)
        windfall_contributions = ledger.deposit(windfalls, WINDFALL_ACCOUNT_TYPES)

        end_balance = ledger.balance()
        home_equity = accruals.housing.home_equity
        debt_balance = accruals.debt.balance_end
        net_worth = end_balance + home_equity - debt_balance

        rows.append(
            YearProjection(
                year=year,
                age=age,
                start_balance=start_balance,
                contributions=contributions + reinvested,
                reinvested_withdrawals=reinvested,
                windfall_contributions=windfall_contributions,
                withdrawals=withdrawn.total_withdrawn,
                withdrawals_by_type=dict(withdrawn.by_type),
                traditional_withdrawals=withdrawn.by_type.get("traditional", 0.0),
                rmd_required=rmd_required,
                strategic_withdrawal=strategic,
                taxes=taxes,
                estimated_taxes=estimated_tax,
                shortfall=shortfall,
                investment_returns=investment_returns,
                end_balance=end_balance,
                net_worth=net_worth,
                liquid_net_worth=net_worth - home_equity,
                home_value=accruals.housing.home_value,
                home_equity=home_equity,
                mortgage_balance=accruals.housing.mortgage_balance,
                debt_balance=debt_balance,
                income=income,
                expenses=expenses,
                housing_costs=accruals.housing.total_costs,
                debt_payments=accruals.debt.payments,
                interest_paid=accruals.housing.mortgage_interest + accruals.debt.interest,
                debt_forgiven=accruals.debt.forgiven,
                milestone_costs=milestone_costs,
                windfalls=windfalls,
                taxable_income=earned_income + tax_bomb_income + withdrawn.by_type.get("traditional", 0.0),
                tax_bomb_income=tax_bomb_income,
                savings_rate=max(0.0, surplus) / income if income > 0 else 0.0,
                withdrawal_sequence=sequence,
                account_balances=ledger.snapshot(),
                solver_iterations=solver_iterations,
                solver_converged=solver_converged,
            )
        )

    return ProjectionResult(years=rows, withdrawal_start_year=start_withdrawals)
