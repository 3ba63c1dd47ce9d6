"""Simplified Social Security benefit estimator.

The projection engine does not model an earnings history.  Each person
receives a flat annual base amount (``$20 000`` for the planner and
``$15 000`` for a spouse by default, both configurable) once they reach the
configured start age.  Claiming before full retirement age scales the base
down:

* Full retirement age (FRA) is 67.
* Each year of age before FRA removes 5 % of the base, never going below 70 %.
* From FRA onward the full base is paid.
* Amounts are in today's dollars and are inflated with the projection.

Note that the multiplier follows the person's *current* age, so a benefit
started at 62 rises towards the full base as they approach 67.

``calculate_estimated_benefit`` offers a rough base amount from a salary
using tiered replacement rates; it is used by the scenario entry point.

Example
-------

>>> claiming_multiplier(62)
0.75
>>> round(annual_benefit(age=65, start_age=62, base_amount=20000), 2)
18000.0
"""

from __future__ import annotations

from typing import Optional

FULL_RETIREMENT_AGE = 67
EARLY_REDUCTION_PER_YEAR = 0.05
MIN_MULTIPLIER = 0.7

PLANNER_BASE_BENEFIT = 20000.0
SPOUSE_BASE_BENEFIT = 15000.0
WAGE_BASE_2024 = 168600.0


def claiming_multiplier(age: int, FRA: int = FULL_RETIREMENT_AGE) -> float:
    """Share of the base benefit paid at ``age``."""
    if age >= FRA:
        return 1.0
    return max(MIN_MULTIPLIER, 1.0 - (FRA - age) * EARLY_REDUCTION_PER_YEAR)


def annual_benefit(
    age: Optional[int],
    start_age: int,
    base_amount: float,
    inflation_multiplier: float = 1.0,
    end_age: Optional[int] = None,
) -> float:
    """Estimate the annual benefit paid at ``age``.

    Parameters
    ----------
    age : int or None
        Age of the recipient in the projection year.  ``None`` means the
        person is not part of the plan and yields zero.
    start_age : int
        Age at which payments begin.
    base_amount : float
        Annual benefit at full retirement age in today's dollars.
    inflation_multiplier : float, optional
        Cumulative inflation since the projection start.
    end_age : int, optional
        Last age with a payment (life expectancy).  Unbounded by default.

    Returns
    -------
    float
        The nominal benefit for the year.
    """
    if age is None or age < start_age:
        return 0.0
    if end_age is not None and age > end_age:
        return 0.0
    return base_amount * claiming_multiplier(age) * inflation_multiplier


def calculate_estimated_benefit(annual_income: float = 0.0, is_planner: bool = True) -> float:
    """Roughly estimate an annual base benefit from current earnings.

    Without an income the default base amounts are returned.  Otherwise
    earnings (capped at the 2024 wage base) are replaced at 40 % up to
    $50 000, 30 % up to $100 000 and 20 % above.  A spouse is assumed to
    receive 75 % of that.  The result is clamped to $15 000 to $45 000 for the
    planner and $10 000 to $35 000 for a spouse.
    """
    if not annual_income or annual_income <= 0:
        return PLANNER_BASE_BENEFIT if is_planner else SPOUSE_BASE_BENEFIT

    capped = min(annual_income, WAGE_BASE_2024)
    if capped <= 50000:
        estimate = capped * 0.40
    elif capped <= 100000:
        estimate = 50000 * 0.40 + (capped - 50000) * 0.30
    else:
        estimate = 50000 * 0.40 + 50000 * 0.30 + (capped - 100000) * 0.20

    if not is_planner:
        estimate *= 0.75

    low, high = (15000.0, 45000.0) if is_planner else (10000.0, 35000.0)
    return max(low, min(high, estimate))


__all__ = [
    "FULL_RETIREMENT_AGE",
    "PLANNER_BASE_BENEFIT",
    "SPOUSE_BASE_BENEFIT",
    "annual_benefit",
    "calculate_estimated_benefit",
    "claiming_multiplier",
]
