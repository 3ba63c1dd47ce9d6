"""Helper package that exposes the projection calculators.

The `calculators` package contains small, focused modules that each implement
specific pieces of the retirement projection:

* ``taxes`` – 2024 federal ordinary and long-term capital gains brackets.
* ``rmd`` – Required Minimum Distribution age, distribution period and pro-rata draw.
* ``social_security`` – flat-base benefit with an early-claiming reduction.
* ``cost_basis`` – average-cost basis of the Taxable category.
* ``roth`` – Roth conversions used by the conversion-bridge strategy.
* ``withdrawals`` – withdrawal strategies and the shortfall top-up.
* ``projections`` – the year-by-year projection engine.
* ``monte_carlo`` – randomized growth-rate runs and outcome statistics.
* ``scenario`` – runs a stored scenario and returns its persistence records.

Each module exposes a few public functions with clear parameters and returns.  See
individual docstrings for details.
"""

from . import (  # noqa: F401
    cost_basis,
    monte_carlo,
    projections,
    rmd,
    roth,
    scenario,
    social_security,
    taxes,
    withdrawals,
)

__all__ = [
    "cost_basis",
    "monte_carlo",
    "projections",
    "rmd",
    "roth",
    "scenario",
    "social_security",
    "taxes",
    "withdrawals",
]
