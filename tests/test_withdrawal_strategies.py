"""Tests for the withdrawal strategies."""

import math

import pytest

from retirement_planner.calculators import rmd
from retirement_planner.calculators.cost_basis import TaxableBasis
from retirement_planner.calculators.withdrawals import (
    BracketTopping,
    Bucket,
    FixedDollar,
    FixedPercentage,
    FloorUpside,
    FourPercentRule,
    GoalBased,
    Guardrails,
    Proportional,
    QualifiedCharitableDistribution,
    RothConversionBridge,
    StrategyState,
    SystematicWithdrawal,
    WithdrawalContext,
    WithdrawalResult,
    build_strategy,
    convert_to_roth,
    cover_shortfall,
    execute_strategy,
)
from retirement_planner.models import (
    AccountBalances,
    AccountType,
    WithdrawalPriority,
    build_calculator_settings,
)


def _ctx(**overrides):
    base = dict(age=65, year=2030, need=10000.0, net_worth=100000.0)
    base.update(overrides)
    return WithdrawalContext(**base)


def _run(strategy, balances, ctx, state=None):
    balances = AccountBalances(balances)
    basis = TaxableBasis(balances[AccountType.TAXABLE])
    result = execute_strategy(strategy, ctx, balances, basis, state or StrategyState())
    return result, balances


def _dist(result, category):
    return result.distributions[AccountType(category)]


def test_default_order_draws_taxable_first():
    result, balances = _run(GoalBased(), {"Taxable": 50000, "401k": 50000}, _ctx())
    assert _dist(result, "Taxable") == 10000
    assert _dist(result, "401k") == 0
    assert balances["Taxable"] == 40000


def test_legacy_draws_traditional_first():
    priority = GoalBased(WithdrawalPriority.LEGACY)
    result, _ = _run(priority, {"Taxable": 50000, "401k": 50000, "RothIRA": 50000}, _ctx())
    assert _dist(result, "401k") == 10000
    assert _dist(result, "RothIRA") == 0


def test_sequence_risk_spares_traditional_early():
    priority = GoalBased(WithdrawalPriority.SEQUENCE_RISK)
    accounts = {"Taxable": 5000, "RothIRA": 50000, "401k": 50000}

    early, _ = _run(priority, accounts, _ctx(years_remaining=25))
    assert _dist(early, "RothIRA") == 5000
    assert _dist(early, "401k") == 0

    late, _ = _run(priority, accounts, _ctx(years_remaining=10))
    assert _dist(late, "401k") == 5000
    assert _dist(late, "RothIRA") == 0


ONE_OF_EACH = {"Taxable": 1000, "HSA": 1000, "401k": 1000, "IRA": 1000, "RothIRA": 1000, "Other": 1000}


@pytest.mark.parametrize(
    "priority, expected",
    [
        (WithdrawalPriority.DEFAULT, {"Taxable": 1000, "HSA": 1000, "401k": 500}),
        (WithdrawalPriority.LONGEVITY, {"Taxable": 1000, "HSA": 1000, "401k": 500}),
        (WithdrawalPriority.TAX_OPTIMIZATION, {"Taxable": 1000, "HSA": 1000, "401k": 500}),
        (WithdrawalPriority.STABLE_INCOME, {"Taxable": 1000, "401k": 1000, "IRA": 500}),
        (WithdrawalPriority.LIQUIDITY, {"Taxable": 1000, "RothIRA": 1000, "HSA": 500}),
        (WithdrawalPriority.LEGACY, {"401k": 1000, "IRA": 1000, "HSA": 500}),
        (WithdrawalPriority.SEQUENCE_RISK, {"Taxable": 1000, "HSA": 1000, "401k": 500}),
    ],
    ids=lambda p: p.value if isinstance(p, WithdrawalPriority) else None,
)
def test_goal_order_before_rmd_age(priority, expected):
    result, _ = _run(GoalBased(priority), ONE_OF_EACH, _ctx(age=65, need=2500.0))
    drawn = {cat.value: amount for cat, amount in result.distributions.items() if amount}
    assert drawn == expected


@pytest.mark.parametrize(
    "priority, expected",
    [
        (WithdrawalPriority.DEFAULT, {"RothIRA": 1000, "Taxable": 1000, "HSA": 500}),
        (WithdrawalPriority.LONGEVITY, {"RothIRA": 1000, "Taxable": 1000, "HSA": 500}),
        (WithdrawalPriority.TAX_OPTIMIZATION, {"RothIRA": 1000, "Taxable": 1000, "HSA": 500}),
        (WithdrawalPriority.STABLE_INCOME, {"RothIRA": 1000, "Taxable": 1000, "HSA": 500}),
        (WithdrawalPriority.LIQUIDITY, {"RothIRA": 1000, "Taxable": 1000, "HSA": 500}),
        (WithdrawalPriority.SEQUENCE_RISK, {"RothIRA": 1000, "Taxable": 1000, "HSA": 500}),
        (WithdrawalPriority.LEGACY, {"RothIRA": 1000, "HSA": 1000, "Taxable": 500}),
    ],
    ids=lambda p: p.value if isinstance(p, WithdrawalPriority) else None,
)
@pytest.mark.parametrize("age", [73, 80])
def test_goal_order_once_rmds_apply_takes_roth_next(priority, expected, age):
    # RMD set to zero so only the post-RMD order shows; traditional money is never drawn
    result, balances = _run(GoalBased(priority), ONE_OF_EACH, _ctx(age=age, need=2500.0))
    drawn = {cat.value: amount for cat, amount in result.distributions.items() if amount}
    assert drawn == expected
    assert balances["401k"] == 1000
    assert balances["IRA"] == 1000


def test_rmd_drawn_pro_rata_before_strategy():
    accounts = {"401k": 300000, "IRA": 100000, "RothIRA": 50000}
    required = rmd.compute_rmd(400000, 75)
    ctx = _ctx(age=75, need=30000.0, rmd_amount=required)
    result, _ = _run(GoalBased(), accounts, ctx)

    assert math.isclose(result.rmd_taken, required)
    assert math.isclose(_dist(result, "401k"), required * 0.75)
    assert math.isclose(_dist(result, "IRA"), required * 0.25)
    # after RMD age the rest of the need comes from Roth, not more traditional money
    assert math.isclose(_dist(result, "RothIRA"), 30000 - required)


def test_proportional_split_by_balance():
    result, _ = _run(Proportional(), {"Taxable": 60000, "401k": 40000}, _ctx())
    assert math.isclose(_dist(result, "Taxable"), 6000)
    assert math.isclose(_dist(result, "401k"), 4000)


def test_bracket_topping_fills_bracket_with_traditional():
    result, _ = _run(BracketTopping(), {"401k": 100000, "Taxable": 50000}, _ctx(need=20000.0))
    # top of the 12 % bracket plus the standard deduction
    assert math.isclose(_dist(result, "401k"), 47150 + 14600)
    assert _dist(result, "Taxable") == 0


def test_bracket_topping_without_room_uses_taxable():
    ctx = _ctx(need=20000.0, ordinary_income=14600.0)
    result, _ = _run(BracketTopping(threshold=0.0), {"401k": 100000, "Taxable": 50000}, ctx)
    assert _dist(result, "401k") == 0
    assert _dist(result, "Taxable") == 20000


@pytest.mark.parametrize(
    "years_in, category",
    [(1, "Taxable"), (5, "401k"), (12, "RothIRA")],
)
def test_bucket_by_years_into_retirement(years_in, category):
    accounts = {"Taxable": 50000, "401k": 50000, "RothIRA": 50000}
    result, _ = _run(Bucket(), accounts, _ctx(years_into_retirement=years_in))
    assert _dist(result, category) == 10000


def test_bucket_falls_back_to_default_order():
    accounts = {"Taxable": 50000, "RothIRA": 3000}
    result, _ = _run(Bucket(), accounts, _ctx(years_into_retirement=12))
    assert _dist(result, "RothIRA") == 3000
    assert _dist(result, "Taxable") == 7000


def test_floor_upside_funds_discretionary_from_roth():
    ctx = _ctx(need=30000.0, expenses=50000.0, guaranteed_income=20000.0)
    result, _ = _run(FloorUpside(), {"Taxable": 100000, "RothIRA": 100000}, ctx)
    # essential floor: 70 % of 50k less 20k guaranteed
    assert math.isclose(_dist(result, "Taxable"), 15000)
    assert math.isclose(_dist(result, "RothIRA"), 15000)


def test_roth_conversion_bridge():
    result, balances = _run(RothConversionBridge(), {"401k": 200000, "Taxable": 50000}, _ctx())
    assert math.isclose(result.roth_conversion, 10000)
    assert math.isclose(result.conversion_tax, 1500)
    assert math.isclose(balances["RothIRA"], 10000)
    assert _dist(result, "Taxable") == 10000
    # a conversion is not a distribution
    assert _dist(result, "401k") == 0


def test_qcd_diverts_half_the_rmd():
    required = rmd.compute_rmd(400000, 75)
    ctx = _ctx(age=75, need=20000.0, rmd_amount=required)
    result, balances = _run(QualifiedCharitableDistribution(), {"401k": 400000, "Taxable": 50000}, ctx)

    assert math.isclose(result.qcd_amount, required / 2)
    assert math.isclose(_dist(result, "401k"), required / 2)
    assert math.isclose(_dist(result, "Taxable"), 20000 - required / 2)
    assert math.isclose(balances["401k"], 400000 - required)


def test_qcd_capped_at_100k():
    required = rmd.compute_rmd(10_000_000, 75)
    assert required / 2 > 100000
    ctx = _ctx(age=75, need=50000.0, net_worth=10_000_000.0, rmd_amount=required)
    result, balances = _run(QualifiedCharitableDistribution(), {"IRA": 10_000_000}, ctx)

    assert math.isclose(result.qcd_amount, 100000)
    assert math.isclose(result.rmd_taken, required - 100000)
    assert math.isclose(_dist(result, "IRA"), required - 100000)
    assert math.isclose(balances["IRA"], 10_000_000 - required)


def test_convert_to_roth_stops_at_rmd_age():
    balances = AccountBalances({"IRA": 200000})
    result = WithdrawalResult()
    assert convert_to_roth(_ctx(age=73), balances, result) == 0.0
    assert result.roth_conversion == 0
    assert balances["IRA"] == 200000

    assert convert_to_roth(_ctx(age=70), balances, result) == 10000
    assert balances["RothIRA"] == 10000


def test_fixed_dollar_ignores_need():
    result, _ = _run(FixedDollar(40000), {"Taxable": 100000}, _ctx(need=60000.0))
    assert math.isclose(result.total, 40000)


def test_fixed_percentage_counts_rmd_toward_target():
    required = rmd.compute_rmd(1_000_000, 75)
    ctx = _ctx(age=75, need=80000.0, net_worth=1_000_000.0, rmd_amount=required)
    result, _ = _run(FixedPercentage(0.05), {"401k": 1_000_000}, ctx)
    assert math.isclose(result.rmd_taken, required)
    assert math.isclose(_dist(result, "401k"), 50000)


def test_systematic_withdrawal_takes_expected_growth():
    ctx = _ctx(need=50000.0, net_worth=500000.0, growth_rate=0.05)
    result, _ = _run(SystematicWithdrawal(), {"Taxable": 500000}, ctx)
    assert math.isclose(result.total, 25000)


def test_four_percent_rule_inflates_initial_amount():
    state = StrategyState()
    first, _ = _run(FourPercentRule(), {"Taxable": 1_000_000},
                    _ctx(need=90000.0, net_worth=1_000_000.0, inflation_rate=0.03), state)
    assert math.isclose(first.total, 40000)

    later, _ = _run(FourPercentRule(), {"Taxable": 500000},
                    _ctx(year=2032, need=90000.0, net_worth=500000.0, inflation_rate=0.03), state)
    assert math.isclose(later.total, 40000 * 1.03 ** 2)


def test_guardrails_cut_spending_when_portfolio_falls():
    state = StrategyState()
    first, _ = _run(Guardrails(), {"Taxable": 1_000_000},
                    _ctx(need=90000.0, net_worth=1_000_000.0), state)
    assert math.isclose(first.total, 40000)

    second, _ = _run(Guardrails(), {"Taxable": 600000},
                     _ctx(year=2031, need=90000.0, net_worth=600000.0), state)
    assert math.isclose(second.total, 36000)


def test_build_strategy_from_settings():
    row = {"withdrawal_strategy_type": "fixed_dollar", "fixed_dollar_amount": 40000}
    settings = build_calculator_settings(row, None, 2025, 65, 0, 0)
    assert build_strategy(settings) == FixedDollar(40000)

    row = {"withdrawal_priority": "legacy"}
    settings = build_calculator_settings(row, None, 2025, 65, 0, 0)
    assert build_strategy(settings) == GoalBased(WithdrawalPriority.LEGACY)


def test_cover_shortfall_prefers_roth():
    balances = AccountBalances({"RothIRA": 1000, "Taxable": 10000})
    basis = TaxableBasis(10000)
    result = WithdrawalResult()
    left = cover_shortfall(3000, balances, basis, result, ordinary_income=0.0, filing_status="single")
    assert left == 0.0
    assert _dist(result, "RothIRA") == 1000
    assert math.isclose(_dist(result, "Taxable"), 2000)


def test_cover_shortfall_reports_unfunded_remainder():
    balances = AccountBalances({"HSA": 500})
    result = WithdrawalResult()
    left = cover_shortfall(2000, balances, TaxableBasis(), result, ordinary_income=0.0, filing_status="single")
    assert math.isclose(left, 1500)
    assert balances.total() == 0


ALL_STRATEGIES = [
    GoalBased(),
    FourPercentRule(),
    FixedPercentage(),
    FixedDollar(1e9),
    SystematicWithdrawal(),
    Guardrails(),
    Proportional(),
    BracketTopping(),
    Bucket(),
    FloorUpside(),
    RothConversionBridge(),
    QualifiedCharitableDistribution(),
]


@pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: type(s).__name__)
@pytest.mark.parametrize("age", [65, 80])
def test_balances_never_negative(strategy, age):
    accounts = {"401k": 20000, "IRA": 5000, "RothIRA": 3000, "Taxable": 4000, "HSA": 1000, "Other": 500}
    ctx = _ctx(
        age=age,
        need=1e9,
        net_worth=33500.0,
        expenses=1e9,
        rmd_amount=rmd.compute_rmd(25000, age),
        growth_rate=0.05,
    )
    result, balances = _run(strategy, accounts, ctx)
    assert all(value >= 0 for _, value in balances.items())
    assert all(value >= 0 for value in result.distributions.values())
    assert math.isclose(
        balances.total() + result.total + result.qcd_amount,
        33500.0,
    )
