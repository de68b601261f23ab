"""Required Minimum Distribution helpers."""

from __future__ import annotations

RMD_START_AGE = 73

# IRS Uniform Lifetime Table. Ages past the last entry reuse its divisor.
UNIFORM_LIFETIME_DIVISORS: dict[int, float] = {
    73: 26.5,
    74: 25.5,
    75: 24.6,
    76: 23.7,
    77: 22.9,
    78: 22.0,
    79: 21.1,
    80: 20.2,
    81: 19.4,
    82: 18.5,
    83: 17.7,
    84: 16.8,
    85: 16.0,
    86: 15.2,
    87: 14.4,
    88: 13.7,
    89: 12.9,
    90: 12.2,
    91: 11.5,
    92: 10.8,
    93: 10.1,
    94: 9.5,
    95: 8.9,
    96: 8.4,
    97: 7.8,
    98: 7.3,
    99: 6.8,
    100: 6.4,
}


def divisor_for_age(age: int) -> float | None:
    if age < min(UNIFORM_LIFETIME_DIVISORS):
        return None
    if age > max(UNIFORM_LIFETIME_DIVISORS):
        return UNIFORM_LIFETIME_DIVISORS[max(UNIFORM_LIFETIME_DIVISORS)]
    return UNIFORM_LIFETIME_DIVISORS[age]


def compute_rmd_amount(traditional_balance: float, age: int) -> float:
    divisor = divisor_for_age(int(age))
    if divisor is None or traditional_balance <= 0:
        return 0.0
    return traditional_balance / divisor
