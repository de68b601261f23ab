import copy
import json
from pathlib import Path

from horizon.schema import Plan


def write_plan(tmp_path: Path, data: dict, filename: str = "plan.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_plan(data: dict) -> dict:
    return copy.deepcopy(data)


def minimal_plan_dict(years: int = 5) -> dict:
    """Single retiree, zero inflation and zero returns so balances are easy to follow."""
    return {
        "plan_settings": {"start_year": 2025, "years": years, "inflation_rate": 0.0, "filing_status": "single"},
        "people": [{"name": "Pat", "birth_year": 1960, "retirement_age": 65}],
        "accounts": [
            {"name": "Cash", "type": "cash", "balance": 0, "return_rate": 0.0},
            {"name": "Brokerage", "type": "taxable", "balance": 100000, "return_rate": 0.0},
            {"name": "IRA", "type": "traditional", "balance": 100000, "return_rate": 0.0},
        ],
    }


def build_plan(data: dict) -> Plan:
    return Plan.from_dict(clone_plan(data))
