"""Federal bracket and standard deduction reference data."""

from __future__ import annotations

from typing import Final

FILING_STATUSES: Final[set[str]] = {"single", "married"}

FILING_STATUS_ALIASES: Final[dict[str, str]] = {
    "married_filing_jointly": "married",
    "mfj": "married",
    "joint": "married",
}

STANDARD_DEDUCTIONS: Final[dict[str, float]] = {
    "single": 14_600.0,
    "married": 29_200.0,
}

# Brackets are (upper_bound, marginal_rate). Upper bound None means infinity.
FEDERAL_BRACKETS: Final[dict[str, list[tuple[float | None, float]]]] = {
    "single": [
        (11_600.0, 0.10),
        (47_150.0, 0.12),
        (100_525.0, 0.22),
        (191_950.0, 0.24),
        (243_725.0, 0.32),
        (609_350.0, 0.35),
        (None, 0.37),
    ],
    "married": [
        (23_200.0, 0.10),
        (94_300.0, 0.12),
        (201_050.0, 0.22),
        (383_900.0, 0.24),
        (487_450.0, 0.32),
        (731_200.0, 0.35),
        (None, 0.37),
    ],
}
