"""Tests for the scenario entry point."""

import math

import pytest

from retirement_planner.calculators.scenario import (
    calculate_projections_for_scenario,
    upsert_projection_records,
)
from retirement_planner.models import ConfigurationError

ACCOUNTS = [{"account_name": "401k", "balance": 500000, "account_type": "401k", "owner": "planner"}]
EXPENSES = [{"expense_name": "Living", "amount_before_65": 3000, "amount_after_65": 4000}]
INCOME = [{"income_source": "Pension", "annual_amount": 12000}]


def _records(plan, settings_row=None, **kwargs):
    return calculate_projections_for_scenario(
        plan, ACCOUNTS, EXPENSES, INCOME,
        settings_row if settings_row is not None else {"retirement_age": 65},
        plan_id=3, scenario_id=11, life_expectancy=70, current_year=2025, **kwargs
    )


def test_missing_birth_year_rejected():
    with pytest.raises(ConfigurationError):
        _records({"filing_status": "Single"})


def test_missing_settings_rejected():
    with pytest.raises(ConfigurationError):
        _records({"birth_year": 1960}, settings_row={})


def test_unknown_strategy_rejected():
    with pytest.raises(ConfigurationError):
        _records({"birth_year": 1960}, settings_row={"withdrawal_strategy_type": "yolo"})


def test_records_keyed_by_scenario_and_year():
    records = _records({"birth_year": 1960, "filing_status": "Single"})
    assert len(records) == 6
    assert len({(r["scenario_id"], r["year"]) for r in records}) == 6
    assert all(r["plan_id"] == 3 and r["scenario_id"] == 11 for r in records)
    first = records[0]
    assert first["age"] == 65
    assert first["event"] == "Retirement"
    assert math.isclose(first["living_expenses"], 48000)
    assert math.isclose(first["other_recurring_income"], 12000)
    assert math.isclose(first["ssa_income"], 20000 * 0.9)


def test_joint_filers_include_spouse_benefit():
    plan = {
        "birth_year": 1960,
        "filing_status": "Married Filing Jointly",
        "spouse_birth_year": 1960,
        "spouse_life_expectancy": 90,
    }
    first = _records(plan)[0]
    assert math.isclose(first["ssa_income"], 20000 * 0.9 + 15000 * 0.9)


def test_planner_benefit_can_be_switched_off():
    first = _records({"birth_year": 1960}, settings_row={"retirement_age": 65, "planner_ssa_income": False})[0]
    assert first["ssa_income"] == 0


def test_upsert_last_write_wins():
    store = upsert_projection_records({}, [
        {"scenario_id": 1, "year": 2030, "tax": 1.0},
        {"scenario_id": 1, "year": 2031, "tax": 2.0},
        {"scenario_id": 1, "year": 2030, "tax": 3.0},
    ])
    assert len(store) == 2
    assert store[(1, 2030)]["tax"] == 3.0
