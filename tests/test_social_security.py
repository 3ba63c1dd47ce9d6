"""Tests for the simplified Social Security benefit estimator."""

import math

import pytest

from retirement_planner.calculators import social_security as ss


@pytest.mark.parametrize(
    "age, expected",
    [(60, 0.7), (62, 0.75), (65, 0.9), (67, 1.0), (70, 1.0)],
)
def test_claiming_multiplier(age, expected):
    """Each year before 67 removes 5 %, never below 70 %."""
    assert math.isclose(ss.claiming_multiplier(age), expected)


def test_no_benefit_before_start_age():
    assert ss.annual_benefit(61, start_age=62, base_amount=20000) == 0.0
    assert ss.annual_benefit(None, start_age=62, base_amount=20000) == 0.0


def test_benefit_is_inflated():
    benefit = ss.annual_benefit(67, start_age=62, base_amount=20000, inflation_multiplier=1.5)
    assert math.isclose(benefit, 30000.0)


def test_benefit_stops_after_end_age():
    assert ss.annual_benefit(90, 62, 15000, end_age=90) > 0
    assert ss.annual_benefit(91, 62, 15000, end_age=90) == 0.0


def test_estimated_benefit_defaults():
    assert ss.calculate_estimated_benefit() == 20000
    assert ss.calculate_estimated_benefit(is_planner=False) == 15000


def test_estimated_benefit_tiers():
    # 50k * 40 % + 30k * 30 % = 29 000
    assert math.isclose(ss.calculate_estimated_benefit(80000), 29000.0)
    # spouse gets 75 % of that
    assert math.isclose(ss.calculate_estimated_benefit(80000, is_planner=False), 21750.0)


def test_estimated_benefit_clamped():
    assert ss.calculate_estimated_benefit(10000) == 15000.0
    # income above the wage base: 20 000 + 15 000 + 68 600 * 0.2 = 48 720 -> 45 000
    assert ss.calculate_estimated_benefit(500000) == 45000.0
