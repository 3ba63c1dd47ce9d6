"""Unit tests for the taxes module.

These tests verify that federal income and capital gains calculations using
the embedded 2024 tax tables produce expected results for several filing
statuses.
"""

import math

import pytest

from retirement_planner.calculators import taxes as tax_calc
from retirement_planner.models import ConfigurationError


def test_federal_tax_example():
    """Federal tax on $45.4k of taxable income for a single filer (2024)."""
    tax = tax_calc.compute_federal_tax(45400, year=2024)
    assert math.isclose(tax, 5216.0, rel_tol=1e-4)


def test_federal_married_joint():
    """Married filing jointly should use the wider brackets."""
    tax = tax_calc.compute_federal_tax(30800, filing_status="married_joint", year=2024)
    assert math.isclose(tax, 3232.0, rel_tol=1e-4)


def test_display_names_are_accepted():
    by_label = tax_calc.compute_federal_tax(30800, filing_status="Married Filing Jointly")
    by_key = tax_calc.compute_federal_tax(30800, filing_status="married_joint")
    assert by_label == by_key
    assert tax_calc.normalize_filing_status(None) == "single"
    assert tax_calc.normalize_filing_status("Head of Household") == "head_of_household"


def test_unknown_filing_status_rejected():
    with pytest.raises(ConfigurationError):
        tax_calc.compute_federal_tax(1000, filing_status="widowed-ish")


def test_top_bracket_is_unbounded():
    tax_at_cap = tax_calc.compute_federal_tax(609350)
    tax_above = tax_calc.compute_federal_tax(709350)
    assert math.isclose(tax_above - tax_at_cap, 100000 * 0.37, rel_tol=1e-9)


def test_capital_gains_tax_example():
    """Capital gains tax on $100k of gains for a single filer (2024)."""
    tax = tax_calc.compute_capital_gains_tax(100000, year=2024)
    assert math.isclose(tax, 7946.25, rel_tol=1e-4)


def test_capital_gains_zero_bracket():
    assert tax_calc.compute_capital_gains_tax(47025) == 0.0
    assert tax_calc.compute_capital_gains_tax(90000, filing_status="married_joint") == 0.0


@pytest.mark.parametrize("amount", [0, -500])
def test_non_positive_amounts_untaxed(amount):
    assert tax_calc.compute_federal_tax(amount) == 0.0
    assert tax_calc.compute_capital_gains_tax(amount) == 0.0


def test_standard_deductions():
    assert tax_calc.standard_deduction("single") == 14600
    assert tax_calc.standard_deduction("married_joint") == 29200
    assert tax_calc.standard_deduction("head_of_household") == 21900


def test_marginal_rate_subtracts_deduction():
    # 60 000 - 14 600 = 45 400 sits in the 12 % bracket
    assert tax_calc.estimate_marginal_rate(60000) == 0.12
    assert tax_calc.estimate_marginal_rate(10000) == 0.10
    assert tax_calc.estimate_marginal_rate(200000, "single") == 0.24


def test_capital_gains_rate_estimate():
    assert tax_calc.estimate_capital_gains_rate(40000) == 0.0
    assert tax_calc.estimate_capital_gains_rate(100000) == 0.15
    assert tax_calc.estimate_capital_gains_rate(600000) == 0.20


def test_bracket_ceiling():
    assert tax_calc.bracket_ceiling(0.12) == 47150
    assert tax_calc.bracket_ceiling(0.12, "married_joint") == 94300
    assert tax_calc.bracket_ceiling(0.37) == float("inf")
    with pytest.raises(ConfigurationError):
        tax_calc.bracket_ceiling(0.5)


def test_custom_tax_tables():
    """Callers may pass their own tables using the same schema."""
    tables = {
        "2024": {
            "federal": {
                "single": {
                    "standard_deduction": 0,
                    "brackets": [{"start": 0, "end": None, "rate": 0.10}],
                    "cap_gains": [{"start": 0, "end": None, "rate": 0.05}],
                }
            }
        }
    }
    assert math.isclose(tax_calc.compute_federal_tax(1000, tax_tables=tables), 100.0)
    assert math.isclose(tax_calc.compute_capital_gains_tax(1000, tax_tables=tables), 50.0)
