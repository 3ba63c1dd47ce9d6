"""Tests for the Roth conversion helpers and the Taxable cost basis."""

import math

from retirement_planner.calculators import roth
from retirement_planner.calculators.cost_basis import TaxableBasis
from retirement_planner.models import AccountBalances


def test_conversion_amount_is_capped():
    assert math.isclose(roth.decide_conversion(50000, 65), 5000.0)
    assert math.isclose(roth.decide_conversion(500000, 65), 10000.0)


def test_no_conversion_at_rmd_age():
    assert roth.decide_conversion(500000, 73) == 0.0
    assert roth.decide_conversion(0, 65) == 0.0


def test_apply_conversion_moves_money_and_charges_flat_tax():
    balances = AccountBalances({"401k": 60000, "IRA": 40000})
    converted, tax_due = roth.apply_conversion(balances, 10000)
    assert math.isclose(converted, 10000.0)
    assert math.isclose(tax_due, 1500.0)
    assert math.isclose(balances["RothIRA"], 10000.0)
    assert math.isclose(balances["401k"], 54000.0)
    assert math.isclose(balances["IRA"], 36000.0)
    assert math.isclose(balances.total(), 100000.0)


def test_basis_withdrawal_realizes_proportional_gain():
    basis = TaxableBasis(principal=200000)
    gain = basis.withdraw(100000, total_before=500000)
    # 100k * (500k - 200k) / 500k
    assert math.isclose(gain, 60000.0)
    assert math.isclose(basis.principal, 160000.0)


def test_basis_full_withdrawal():
    basis = TaxableBasis(principal=200000)
    gain = basis.withdraw(500000, total_before=500000)
    assert math.isclose(gain, 300000.0)
    assert basis.principal == 0.0


def test_basis_above_value_realizes_no_gain():
    basis = TaxableBasis(principal=120000)
    assert basis.withdraw(50000, total_before=100000) == 0.0
    assert basis.principal >= 0.0


def test_basis_add_ignores_non_positive():
    basis = TaxableBasis()
    basis.add(-10)
    basis.add(250)
    assert basis.principal == 250
