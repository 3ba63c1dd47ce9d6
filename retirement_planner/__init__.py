"""Retirement projection engine.

``calculate_retirement_projections`` produces the deterministic year-by-year
ledger of a plan, ``run_monte_carlo_simulation`` repeats it with randomized
growth rates and ``calculate_projections_for_scenario`` runs a stored scenario
end to end.  Calculator modules live in ``retirement_planner.calculators`` and
DataFrame/chart helpers in ``retirement_planner.components``.
"""

from .models import (
    Account,
    AccountType,
    CalculatorSettings,
    ConfigurationError,
    Expense,
    OtherIncome,
    Phase,
    ProjectionDetail,
    StrategyType,
    WithdrawalPriority,
    build_calculator_settings,
)
from .calculators.projections import calculate_retirement_projections
from .calculators.monte_carlo import analyze_sequence_of_returns_risk, run_monte_carlo_simulation
from .calculators.scenario import calculate_projections_for_scenario
from .calculators.social_security import calculate_estimated_benefit

__all__ = [
    "Account",
    "AccountType",
    "CalculatorSettings",
    "ConfigurationError",
    "Expense",
    "OtherIncome",
    "Phase",
    "ProjectionDetail",
    "StrategyType",
    "WithdrawalPriority",
    "analyze_sequence_of_returns_risk",
    "build_calculator_settings",
    "calculate_estimated_benefit",
    "calculate_projections_for_scenario",
    "calculate_retirement_projections",
    "run_monte_carlo_simulation",
]
