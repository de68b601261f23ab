"""Plan schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

from .rmd import RMD_START_AGE


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = _optional(data, key)
    return int(value) if value is not None else None


def _optional_float(data: dict[str, Any], key: str) -> float | None:
    value = _optional(data, key)
    return float(value) if value is not None else None


def _items(data: dict[str, Any], key: str, path: str) -> list[tuple[dict[str, Any], str]]:
    raw = _expect_list(_optional(data, key, []), f"{path}{key}")
    out: list[tuple[dict[str, Any], str]] = []
    for idx, item in enumerate(raw):
        item_path = f"{path}{key}[{idx}]"
        out.append((_expect_dict(item, item_path), item_path))
    return out


@dataclass(slots=True)
class Person:
    name: str
    birth_year: int
    retirement_age: int

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Person":
        return cls(
            name=_require(data, "name", path),
            birth_year=int(_require(data, "birth_year", path)),
            retirement_age=int(_require(data, "retirement_age", path)),
        )

    def age_in(self, year: int) -> int:
        return year - self.birth_year


@dataclass(slots=True)
class Account:
    name: str
    type: str
    balance: float
    return_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Account":
        return cls(
            name=_require(data, "name", path),
            type=_require(data, "type", path),
            balance=float(_require(data, "balance", path)),
            return_rate=float(_optional(data, "return_rate", 0.0)),
        )


@dataclass(slots=True)
class IncomeStream:
    name: str
    amount: float
    frequency: str
    start_year: int
    end_year: int | None = None
    annual_growth: float = 0.0
    taxable: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "IncomeStream":
        return cls(
            name=_require(data, "name", path),
            amount=float(_require(data, "amount", path)),
            frequency=_optional(data, "frequency", "annual"),
            start_year=int(_require(data, "start_year", path)),
            end_year=_optional_int(data, "end_year"),
            annual_growth=float(_optional(data, "annual_growth", 0.0)),
            taxable=bool(_optional(data, "taxable", True)),
        )


@dataclass(slots=True)
class ExpenseStream:
    name: str
    amount: float
    frequency: str
    start_year: int
    end_year: int | None = None
    annual_growth: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ExpenseStream":
        return cls(
            name=_require(data, "name", path),
            amount=float(_require(data, "amount", path)),
            frequency=_optional(data, "frequency", "annual"),
            start_year=int(_require(data, "start_year", path)),
            end_year=_optional_int(data, "end_year"),
            annual_growth=float(_optional(data, "annual_growth", 0.0)),
        )


@dataclass(slots=True)
class SocialSecurity:
    owner: str
    monthly_benefit: float
    start_age: int
    cola: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "SocialSecurity":
        return cls(
            owner=_require(data, "owner", path),
            monthly_benefit=float(_require(data, "monthly_benefit", path)),
            start_age=int(_require(data, "start_age", path)),
            cola=float(_optional(data, "cola", 0.0)),
        )


@dataclass(slots=True)
class Pension:
    owner: str
    annual_amount: float
    start_age: int
    cola: float = 0.0
    taxable: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Pension":
        return cls(
            owner=_require(data, "owner", path),
            annual_amount=float(_require(data, "annual_amount", path)),
            start_age=int(_require(data, "start_age", path)),
            cola=float(_optional(data, "cola", 0.0)),
            taxable=bool(_optional(data, "taxable", True)),
        )


@dataclass(slots=True)
class Milestone:
    name: str
    year: int
    cost: float = 0.0
    is_positive: bool = False
    recurring: bool = False
    recurring_amount: float = 0.0
    recurring_interval: int = 1
    recurring_growth: float = 0.0
    recurring_end_year: int | None = None
    is_taxable: bool = False
    taxable_amount: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Milestone":
        return cls(
            name=_require(data, "name", path),
            year=int(_require(data, "year", path)),
            cost=float(_optional(data, "cost", 0.0)),
            is_positive=bool(_optional(data, "is_positive", False)),
            recurring=bool(_optional(data, "recurring", False)),
            recurring_amount=float(_optional(data, "recurring_amount", 0.0)),
            recurring_interval=int(_optional(data, "recurring_interval", 1)),
            recurring_growth=float(_optional(data, "recurring_growth", 0.0)),
            recurring_end_year=_optional_int(data, "recurring_end_year"),
            is_taxable=bool(_optional(data, "is_taxable", False)),
            taxable_amount=_optional_float(data, "taxable_amount"),
        )


@dataclass(slots=True)
class Property:
    name: str
    purchase_year: int
    purchase_price: float
    down_payment: float
    rate: float
    term_years: int
    appreciation_rate: float = 0.0
    extra_payment: float = 0.0
    sell_year: int | None = None
    property_tax_rate: float = 0.0
    annual_insurance: float = 0.0
    maintenance_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Property":
        return cls(
            name=_require(data, "name", path),
            purchase_year=int(_require(data, "purchase_year", path)),
            purchase_price=float(_require(data, "purchase_price", path)),
            down_payment=float(_require(data, "down_payment", path)),
            rate=float(_require(data, "rate", path)),
            term_years=int(_require(data, "term_years", path)),
            appreciation_rate=float(_optional(data, "appreciation_rate", 0.0)),
            extra_payment=float(_optional(data, "extra_payment", 0.0)),
            sell_year=_optional_int(data, "sell_year"),
            property_tax_rate=float(_optional(data, "property_tax_rate", 0.0)),
            annual_insurance=float(_optional(data, "annual_insurance", 0.0)),
            maintenance_rate=float(_optional(data, "maintenance_rate", 0.0)),
        )

    @property
    def loan_amount(self) -> float:
        return max(0.0, self.purchase_price - self.down_payment)


@dataclass(slots=True)
class Rent:
    monthly_amount: float
    start_year: int
    end_year: int | None = None
    annual_increase: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Rent":
        return cls(
            monthly_amount=float(_require(data, "monthly_amount", path)),
            start_year=int(_require(data, "start_year", path)),
            end_year=_optional_int(data, "end_year"),
            annual_increase=float(_optional(data, "annual_increase", 0.0)),
        )


@dataclass(slots=True)
class Loan:
    name: str
    balance: float
    rate: float
    term_years: int
    start_year: int
    extra_payment: float = 0.0
    payoff_year: int | None = None
    forgive_year: int | None = None
    forgiveness_taxable: bool = False
    forgiveness_amount: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Loan":
        return cls(
            name=_require(data, "name", path),
            balance=float(_require(data, "balance", path)),
            rate=float(_require(data, "rate", path)),
            term_years=int(_require(data, "term_years", path)),
            start_year=int(_require(data, "start_year", path)),
            extra_payment=float(_optional(data, "extra_payment", 0.0)),
            payoff_year=_optional_int(data, "payoff_year"),
            forgive_year=_optional_int(data, "forgive_year"),
            forgiveness_taxable=bool(_optional(data, "forgiveness_taxable", False)),
            forgiveness_amount=_optional_float(data, "forgiveness_amount"),
        )


@dataclass(slots=True)
class CreditCard:
    name: str
    balance: float
    apr: float
    start_year: int
    min_payment_percent: float = 0.02
    min_payment_floor: float = 25.0
    extra_payment: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CreditCard":
        return cls(
            name=_require(data, "name", path),
            balance=float(_require(data, "balance", path)),
            apr=float(_require(data, "apr", path)),
            start_year=int(_require(data, "start_year", path)),
            min_payment_percent=float(_optional(data, "min_payment_percent", 0.02)),
            min_payment_floor=float(_optional(data, "min_payment_floor", 25.0)),
            extra_payment=float(_optional(data, "extra_payment", 0.0)),
        )


@dataclass(slots=True)
class GlidePathSegment:
    start_year: int
    expected_return: float
    volatility: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "GlidePathSegment":
        return cls(
            start_year=int(_require(data, "start_year", path)),
            expected_return=float(_require(data, "expected_return", path)),
            volatility=float(_optional(data, "volatility", 0.0)),
        )


DEFAULT_SEQUENCE = ["taxable", "traditional", "roth", "hsa"]


@dataclass(slots=True)
class WithdrawalStrategy:
    type: str = "tax_optimized"
    withdrawal_mode: str = "as_needed"
    tax_optimized_sequence: list[str] = field(default_factory=lambda: list(DEFAULT_SEQUENCE))
    rmd_start_age: int = RMD_START_AGE
    withdrawal_rate: float = 0.04
    inflation_adjusted: bool = True
    fixed_amount: float = 0.0
    initial_rate: float = 0.05
    upper_guardrail: float = 0.20
    lower_guardrail: float = 0.20
    guardrail_adjustment: float = 0.10
    enforce_rmd_floor: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "withdrawal_strategy") -> "WithdrawalStrategy":
        return cls(
            type=_optional(data, "type", "tax_optimized"),
            withdrawal_mode=_optional(data, "withdrawal_mode", "as_needed"),
            tax_optimized_sequence=list(
                _expect_list(_optional(data, "tax_optimized_sequence", DEFAULT_SEQUENCE), f"{path}.tax_optimized_sequence")
            ),
            rmd_start_age=int(_optional(data, "rmd_start_age", RMD_START_AGE)),
            withdrawal_rate=float(_optional(data, "withdrawal_rate", 0.04)),
            inflation_adjusted=bool(_optional(data, "inflation_adjusted", True)),
            fixed_amount=float(_optional(data, "fixed_amount", 0.0)),
            initial_rate=float(_optional(data, "initial_rate", 0.05)),
            upper_guardrail=float(_optional(data, "upper_guardrail", 0.20)),
            lower_guardrail=float(_optional(data, "lower_guardrail", 0.20)),
            guardrail_adjustment=float(_optional(data, "guardrail_adjustment", 0.10)),
            enforce_rmd_floor=bool(_optional(data, "enforce_rmd_floor", False)),
        )


@dataclass(slots=True)
class SolverSettings:
    tolerance: float = 1.0
    max_iterations: int = 5
    settlement_passes: int = 50

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "solver") -> "SolverSettings":
        return cls(
            tolerance=float(_optional(data, "tolerance", 1.0)),
            max_iterations=int(_optional(data, "max_iterations", 5)),
            settlement_passes=int(_optional(data, "settlement_passes", 50)),
        )


@dataclass(slots=True)
class PlanSettings:
    start_year: int
    years: int
    inflation_rate: float = 0.025
    filing_status: str = "single"
    withdrawal_start_year: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "plan_settings") -> "PlanSettings":
        return cls(
            start_year=int(_require(data, "start_year", path)),
            years=int(_require(data, "years", path)),
            inflation_rate=float(_optional(data, "inflation_rate", 0.025)),
            filing_status=_optional(data, "filing_status", "single"),
            withdrawal_start_year=_optional_int(data, "withdrawal_start_year"),
        )

    @property
    def end_year(self) -> int:
        return self.start_year + self.years - 1


@dataclass(slots=True)
class SimulationSettings:
    mode: str = "deterministic"
    num_trials: int = 1000
    base_return: float = 0.07
    base_volatility: float = 0.15
    seed: int | None = None
    workers: int = 1

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "simulation_settings") -> "SimulationSettings":
        return cls(
            mode=_optional(data, "mode", "deterministic"),
            num_trials=int(_optional(data, "num_trials", 1000)),
            base_return=float(_optional(data, "base_return", 0.07)),
            base_volatility=float(_optional(data, "base_volatility", 0.15)),
            seed=_optional_int(data, "seed"),
            workers=int(_optional(data, "workers", 1)),
        )


@dataclass(slots=True)
class Plan:
    plan_settings: PlanSettings
    people: list[Person] = field(default_factory=list)
    accounts: list[Account] = field(default_factory=list)
    income: list[IncomeStream] = field(default_factory=list)
    expenses: list[ExpenseStream] = field(default_factory=list)
    social_security: list[SocialSecurity] = field(default_factory=list)
    pensions: list[Pension] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    properties: list[Property] = field(default_factory=list)
    rent: list[Rent] = field(default_factory=list)
    loans: list[Loan] = field(default_factory=list)
    credit_cards: list[CreditCard] = field(default_factory=list)
    glide_path: list[GlidePathSegment] = field(default_factory=list)
    withdrawal_strategy: WithdrawalStrategy = field(default_factory=WithdrawalStrategy)
    solver: SolverSettings = field(default_factory=SolverSettings)
    simulation_settings: SimulationSettings = field(default_factory=SimulationSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Plan":
        return cls(
            plan_settings=PlanSettings.from_dict(_expect_dict(_require(data, "plan_settings", "plan"), "plan_settings")),
            people=[Person.from_dict(item, path) for item, path in _items(data, "people", "")],
            accounts=[
                Account.from_dict(_expect_dict(item, f"accounts[{idx}]"), f"accounts[{idx}]")
                for idx, item in enumerate(_expect_list(_require(data, "accounts", "plan"), "accounts"))
            ],
            income=[IncomeStream.from_dict(item, path) for item, path in _items(data, "income", "")],
            expenses=[ExpenseStream.from_dict(item, path) for item, path in _items(data, "expenses", "")],
            social_security=[SocialSecurity.from_dict(item, path) for item, path in _items(data, "social_security", "")],
            pensions=[Pension.from_dict(item, path) for item, path in _items(data, "pensions", "")],
            milestones=[Milestone.from_dict(item, path) for item, path in _items(data, "milestones", "")],
            properties=[Property.from_dict(item, path) for item, path in _items(data, "properties", "")],
            rent=[Rent.from_dict(item, path) for item, path in _items(data, "rent", "")],
            loans=[Loan.from_dict(item, path) for item, path in _items(data, "loans", "")],
            credit_cards=[CreditCard.from_dict(item, path) for item, path in _items(data, "credit_cards", "")],
            glide_path=sorted(
                (GlidePathSegment.from_dict(item, path) for item, path in _items(data, "glide_path", "")),
                key=lambda segment: segment.start_year,
            ),
            withdrawal_strategy=WithdrawalStrategy.from_dict(
                _expect_dict(_optional(data, "withdrawal_strategy", {}), "withdrawal_strategy")
            ),
            solver=SolverSettings.from_dict(_expect_dict(_optional(data, "solver", {}), "solver")),
            simulation_settings=SimulationSettings.from_dict(
                _expect_dict(_optional(data, "simulation_settings", {}), "simulation_settings")
            ),
        )

    @property
    def years(self) -> list[int]:
        return list(range(self.plan_settings.start_year, self.plan_settings.end_year + 1))


def load_plan(path: str | Path) -> Plan:
    """Load plan JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("plan: root must be a JSON object")
    return Plan.from_dict(raw)
