"""Run the projection for one stored scenario and shape the output rows.

The persistence layer hands over plain rows: the plan, its accounts, expenses
and income streams, and the scenario's settings row.  This module validates
them, builds ``CalculatorSettings``, decides which Social Security benefits
apply and returns one record per ``(scenario_id, year)`` ready to upsert.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..models import (
    Account,
    ConfigurationError,
    Expense,
    OtherIncome,
    WithdrawalPriority,
    build_calculator_settings,
)
from . import social_security as ssa
from .projections import calculate_retirement_projections
from .taxes import normalize_filing_status

logger = logging.getLogger(__name__)

DEFAULT_RETIREMENT_AGE = 65


def _as(cls, items: Optional[Iterable]) -> list:
    return [item if isinstance(item, cls) else cls.from_row(item) for item in (items or [])]


def upsert_projection_records(
    store: Dict[Tuple, dict],
    records: Iterable[dict],
) -> Dict[Tuple, dict]:
    """Insert or replace records keyed by ``(scenario_id, year)``."""
    for record in records:
        store[(record["scenario_id"], record["year"])] = record
    return store


def calculate_projections_for_scenario(
    plan: Optional[Mapping],
    accounts: Optional[Iterable],
    expenses: Optional[Iterable],
    other_income: Optional[Iterable],
    settings_row: Optional[Mapping],
    plan_id,
    scenario_id,
    life_expectancy: int = 100,
    current_year: Optional[int] = None,
) -> List[dict]:
    """Project a scenario and return its persistence records.

    Parameters
    ----------
    plan : mapping
        Plan row with ``birth_year`` and optionally ``filing_status``,
        ``include_spouse``, ``spouse_birth_year`` and ``spouse_life_expectancy``.
    accounts, expenses, other_income : iterable
        Rows (or model instances) belonging to the plan.
    settings_row : mapping
        The scenario's stored calculator settings.
    plan_id, scenario_id
        Keys copied onto every record.
    life_expectancy : int, optional
        Terminal age of the projection.
    current_year : int, optional
        Defaults to this calendar year.

    Returns
    -------
    list of dict
        One record per year, unique on ``(scenario_id, year)``.

    Raises
    ------
    ConfigurationError
        If the plan has no birth year or the scenario has no settings.
    """
    if not plan or not plan.get("birth_year"):
        raise ConfigurationError("plan has no birth year")
    if not settings_row:
        raise ConfigurationError(f"scenario {scenario_id!r} has no calculator settings")

    current_year = int(current_year or datetime.date.today().year)
    birth_year = int(plan["birth_year"])
    accounts = _as(Account, accounts)
    expenses = _as(Expense, expenses)
    other_income = _as(OtherIncome, other_income)

    retirement_age = int(settings_row.get("retirement_age") or DEFAULT_RETIREMENT_AGE)
    years_to_retirement = retirement_age - (current_year - birth_year)
    annual_expenses = sum(exp.monthly_amount(retirement_age) for exp in expenses) * 12.0

    settings = build_calculator_settings(
        settings_row, plan, current_year, retirement_age, years_to_retirement, annual_expenses
    )
    settings = replace(
        settings,
        withdrawal_priority=WithdrawalPriority.DEFAULT,
        withdrawal_secondary_priority=WithdrawalPriority.TAX_OPTIMIZATION,
    )

    planner_flag = settings_row.get("planner_ssa_income")
    include_planner = True if planner_flag is None else bool(planner_flag)
    include_spouse = (
        bool(settings_row.get("spouse_ssa_income"))
        or bool(plan.get("include_spouse"))
        or normalize_filing_status(settings.filing_status) == "married_joint"
    )

    rows = calculate_retirement_projections(
        birth_year,
        accounts,
        expenses,
        other_income,
        settings,
        terminal_age=life_expectancy,
        spouse_birth_year=plan.get("spouse_birth_year") or None,
        spouse_life_expectancy=plan.get("spouse_life_expectancy") or None,
        include_planner_benefit=include_planner,
        include_spouse_benefit=include_spouse,
        planner_benefit_override=ssa.calculate_estimated_benefit(0, True) if include_planner else None,
        spouse_benefit_override=ssa.calculate_estimated_benefit(0, False) if include_spouse else None,
    )
    logger.debug("scenario %s: %d projection rows", scenario_id, len(rows))

    store = upsert_projection_records(
        {}, (row.to_record(plan_id=plan_id, scenario_id=scenario_id) for row in rows)
    )
    return list(store.values())


__all__ = [
    "calculate_projections_for_scenario",
    "upsert_projection_records",
]
