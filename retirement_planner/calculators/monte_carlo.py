"""Monte Carlo driver around the deterministic projection engine.

Each run replaces the two growth-rate assumptions with a normal draw around
them (15 % standard deviation before retirement, 12 % during), clamped at
zero, and runs the full projection.  Draws come from a seedable
``numpy.random.Generator`` through a Box-Muller transform and are all taken
up front in run order, so a seeded result is the same whether runs execute
in-process or on a ``multiprocessing`` pool.

A run succeeds when its final net worth is positive and fewer than 20 % of its
years show a negative cash flow.

Example
-------

>>> from retirement_planner.models import build_calculator_settings
>>> settings = build_calculator_settings(None, None, 2025, 65, 0, 0)
>>> result = run_monte_carlo_simulation(
...     1960, [], [], [], settings, 70, num_simulations=10, seed=1,
...     include_planner_benefit=False)
>>> result.summary.success_rate
0.0
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from multiprocessing import Pool
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..models import CalculatorSettings, ConfigurationError, ProjectionDetail
from .projections import calculate_retirement_projections

logger = logging.getLogger(__name__)

STDEV_BEFORE_RETIREMENT = 0.15
STDEV_DURING_RETIREMENT = 0.12
NEGATIVE_YEAR_LIMIT = 0.2
PERCENTILES = (25, 75, 90, 95)
SEQUENCE_RISK_YEARS = 10


@dataclass(frozen=True)
class SimulationRun:
    run: int
    growth_rate_before_retirement: float
    growth_rate_during_retirement: float
    final_net_worth: float
    min_net_worth: float
    negative_years: int
    total_taxes: float
    success: bool


@dataclass(frozen=True)
class MonteCarloSummary:
    success_rate: float
    mean_final_net_worth: float
    median_final_net_worth: float
    min_final_net_worth: float
    max_final_net_worth: float
    average_min_net_worth: float
    average_negative_years: float
    average_taxes: float
    percentiles: Dict[int, float] = field(default_factory=dict)


@dataclass(frozen=True)
class MonteCarloResult:
    runs: List[SimulationRun]
    summary: MonteCarloSummary


@dataclass(frozen=True)
class SequenceRiskAnalysis:
    worst_case_sequence: float
    best_case_sequence: float
    average_sequence: float
    risk_level: str
    description: str


def standard_normal(rng: np.random.Generator, size) -> np.ndarray:
    """Standard normal draws via the Box-Muller transform.

    ``u1`` is taken from ``(0, 1]`` so the logarithm is always finite.
    """
    u1 = 1.0 - rng.random(size)
    u2 = rng.random(size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)


def draw_growth_rates(
    rng: np.random.Generator,
    settings: CalculatorSettings,
    num_simulations: int,
) -> np.ndarray:
    """Return an ``(num_simulations, 2)`` array of (before, during) growth rates."""
    z = standard_normal(rng, (num_simulations, 2))
    means = np.array([settings.growth_rate_before_retirement, settings.growth_rate_during_retirement])
    stdevs = np.array([STDEV_BEFORE_RETIREMENT, STDEV_DURING_RETIREMENT])
    return np.maximum(0.0, means + stdevs * z)


def _summarize_run(index: int, before: float, during: float, rows: Sequence[ProjectionDetail]) -> SimulationRun:
    final = rows[-1].networth if rows else 0.0
    min_nw = min((r.networth for r in rows), default=0.0)
    negative_years = sum(1 for r in rows if r.gap_excess < 0)
    total_taxes = sum(r.tax for r in rows)
    success = final > 0 and negative_years < len(rows) * NEGATIVE_YEAR_LIMIT
    return SimulationRun(index, before, during, final, min_nw, negative_years, total_taxes, success)


def _run_once(job: tuple) -> SimulationRun:
    index, before, during, args, kwargs = job
    birth_year, accounts, expenses, other_income, settings, terminal_age = args
    run_settings = replace(
        settings,
        growth_rate_before_retirement=before,
        growth_rate_during_retirement=during,
    )
    rows = calculate_retirement_projections(
        birth_year, accounts, expenses, other_income, run_settings, terminal_age, **kwargs
    )
    return _summarize_run(index, before, during, rows)


def summarize_runs(runs: Sequence[SimulationRun]) -> MonteCarloSummary:
    """Aggregate run outcomes.

    The median is the element at ``n // 2`` of the sorted final net worths and
    each percentile ``p`` the element at ``floor(n * p / 100)``.
    """
    n = len(runs)
    if n == 0:
        return MonteCarloSummary(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, {p: 0.0 for p in PERCENTILES})

    finals = np.sort(np.array([r.final_net_worth for r in runs], dtype=float))
    successes = sum(1 for r in runs if r.success)
    return MonteCarloSummary(
        success_rate=successes * 100.0 / n,
        mean_final_net_worth=float(np.mean(finals)),
        median_final_net_worth=float(finals[n // 2]),
        min_final_net_worth=float(finals[0]),
        max_final_net_worth=float(finals[-1]),
        average_min_net_worth=float(np.mean([r.min_net_worth for r in runs])),
        average_negative_years=float(np.mean([r.negative_years for r in runs])),
        average_taxes=float(np.mean([r.total_taxes for r in runs])),
        percentiles={p: float(finals[min(n - 1, math.floor(n * p / 100))]) for p in PERCENTILES},
    )


def run_monte_carlo_simulation(
    birth_year: int,
    accounts: list,
    expenses: list,
    other_income: list,
    base_settings: CalculatorSettings,
    terminal_age: int = 100,
    num_simulations: int = 1000,
    seed: Optional[int] = None,
    processes: Optional[int] = None,
    **projection_kwargs,
) -> MonteCarloResult:
    """Run ``num_simulations`` projections with randomized growth rates.

    Parameters
    ----------
    birth_year, accounts, expenses, other_income, base_settings, terminal_age
        Passed to ``calculate_retirement_projections`` for every run.
    num_simulations : int, optional
        Number of runs; must be positive.
    seed : int, optional
        Seed for ``numpy.random.default_rng``.  The same seed gives the same
        result.
    processes : int, optional
        When greater than one, runs are mapped over a process pool of that
        size.  Results keep run order.
    **projection_kwargs
        Extra keyword arguments for the projection driver (spouse, benefits).

    Returns
    -------
    MonteCarloResult
        Per-run outcomes and their summary.
    """
    if num_simulations < 1:
        raise ConfigurationError("num_simulations must be at least 1")

    rng = np.random.default_rng(seed)
    rates = draw_growth_rates(rng, base_settings, num_simulations)
    args = (birth_year, accounts, expenses, other_income, base_settings, terminal_age)
    jobs = [
        (i, float(rates[i, 0]), float(rates[i, 1]), args, projection_kwargs)
        for i in range(num_simulations)
    ]

    if processes and processes > 1:
        with Pool(processes) as pool:
            runs = pool.map(_run_once, jobs)
    else:
        runs = [_run_once(job) for job in jobs]

    summary = summarize_runs(runs)
    logger.info(
        "monte carlo: %d runs, success rate %.1f%%", num_simulations, summary.success_rate
    )
    return MonteCarloResult(runs=runs, summary=summary)


def analyze_sequence_of_returns_risk(
    projections: Sequence[ProjectionDetail],
    retirement_age: int,
) -> SequenceRiskAnalysis:
    """Gauge how exposed a plan is to poor returns early in retirement.

    Yearly returns over the first ten retirement years are approximated as
    ``(networth - previous networth + withdrawals) / previous networth``.
    Returns are reported in percent; the worst one sets the risk level.
    """
    if not projections:
        return SequenceRiskAnalysis(0.0, 0.0, 0.0, "Low", "No projections available")

    start = next((i for i, p in enumerate(projections) if p.age >= retirement_age), None)
    if start is None:
        return SequenceRiskAnalysis(0.0, 0.0, 0.0, "Low", "Retirement not yet reached")

    window = projections[start:start + SEQUENCE_RISK_YEARS]
    returns = []
    for prev, cur in zip(window, window[1:]):
        if prev.networth <= 0:
            continue
        withdrawals = (
            cur.distribution_401k + cur.distribution_ira + cur.distribution_roth
            + cur.distribution_taxable + cur.distribution_hsa + cur.distribution_other
        )
        r = (cur.networth - prev.networth + withdrawals) / prev.networth
        if r != 0:
            returns.append(r)

    if not returns:
        return SequenceRiskAnalysis(0.0, 0.0, 0.0, "Low", "Not enough retirement years to assess")

    worst, best = min(returns), max(returns)
    average = sum(returns) / len(returns)
    if worst < -0.2:
        level = "High"
        description = (
            "High sequence of returns risk: poor returns early in retirement could "
            "seriously weaken the plan."
        )
    elif worst < -0.1:
        level = "Medium"
        description = "Moderate sequence of returns risk: keep a cash reserve for down years."
    else:
        level = "Low"
        description = "Low sequence of returns risk: early retirement years look stable."
    return SequenceRiskAnalysis(worst * 100.0, best * 100.0, average * 100.0, level, description)


__all__ = [
    "MonteCarloResult",
    "MonteCarloSummary",
    "SequenceRiskAnalysis",
    "SimulationRun",
    "analyze_sequence_of_returns_risk",
    "draw_growth_rates",
    "run_monte_carlo_simulation",
    "standard_normal",
    "summarize_runs",
]
