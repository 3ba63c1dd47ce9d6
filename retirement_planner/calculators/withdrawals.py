"""Withdrawal strategies.

Every strategy is a small frozen dataclass holding only its own parameters.
``execute_strategy`` resolves the variant through one dispatch table, so a new
strategy is a new dataclass plus one handler.

Strategies fall into three families:

* goal-based: a fixed account-draw *order* chosen by a priority,
* amount-based: a *target* gross withdrawal (4 % rule, fixed percentage,
  fixed dollar, systematic withdrawal, guardrails) that may under- or
  over-fund the year's need on purpose,
* rules-based: proportional, bracket topping, buckets, floor and upside,
  Roth conversion bridge and qualified charitable distributions.

Before any strategy runs, a due RMD is drawn pro-rata from ``401k``/``IRA``;
the QCD strategy replaces that step with its own split.  All draws go through
``draw`` so balances never go negative and every Taxable withdrawal realizes
its share of gains on the ``TaxableBasis`` tracker.

Example
-------

>>> from retirement_planner.models import AccountBalances
>>> from retirement_planner.calculators.cost_basis import TaxableBasis
>>> balances = AccountBalances({"Taxable": 50000, "401k": 50000})
>>> ctx = WithdrawalContext(age=65, year=2030, need=10000, net_worth=100000)
>>> result = execute_strategy(GoalBased(), ctx, balances, TaxableBasis(50000), StrategyState())
>>> result.distributions[AccountType.TAXABLE]
10000.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, Optional, Sequence

from ..models import (
    CATEGORIES,
    AccountBalances,
    AccountType,
    CalculatorSettings,
    StrategyType,
    WithdrawalPriority,
)
from . import roth, taxes
from .cost_basis import TaxableBasis
from .rmd import RMD_AGE, take_pro_rata

K401, IRA, ROTH, HSA, TAXABLE, OTHER = (
    AccountType.K401,
    AccountType.IRA,
    AccountType.ROTH,
    AccountType.HSA,
    AccountType.TAXABLE,
    AccountType.OTHER,
)

EARLY_RETIREMENT_YEARS = 20
ESSENTIAL_EXPENSE_SHARE = 0.7
QCD_SHARE = 0.5
QCD_CAP = 100000.0
GUARDRAIL_ADJUSTMENT = 0.10

DEFAULT_ORDER = (TAXABLE, HSA, K401, IRA, ROTH, OTHER)
POST_RMD_ORDER = (ROTH, TAXABLE, HSA, OTHER)

# priority -> (order before RMD age, order once RMDs apply)
GOAL_ORDERS: Dict[WithdrawalPriority, tuple] = {
    WithdrawalPriority.LONGEVITY: (DEFAULT_ORDER, POST_RMD_ORDER),
    WithdrawalPriority.LEGACY: ((K401, IRA, HSA, ROTH, TAXABLE, OTHER), (ROTH, HSA, TAXABLE, OTHER)),
    WithdrawalPriority.TAX_OPTIMIZATION: (DEFAULT_ORDER, POST_RMD_ORDER),
    WithdrawalPriority.STABLE_INCOME: ((TAXABLE, K401, IRA, HSA, ROTH, OTHER), POST_RMD_ORDER),
    WithdrawalPriority.SEQUENCE_RISK: (DEFAULT_ORDER, POST_RMD_ORDER),
    WithdrawalPriority.LIQUIDITY: ((TAXABLE, ROTH, HSA, K401, IRA, OTHER), POST_RMD_ORDER),
    WithdrawalPriority.DEFAULT: (DEFAULT_ORDER, POST_RMD_ORDER),
}
SEQUENCE_RISK_EARLY_ORDER = (TAXABLE, ROTH, HSA, K401, IRA, OTHER)


@dataclass(frozen=True)
class WithdrawalContext:
    """What a strategy may know about the current year."""

    age: int
    year: int
    need: float
    net_worth: float
    expenses: float = 0.0
    guaranteed_income: float = 0.0
    ordinary_income: float = 0.0
    rmd_amount: float = 0.0
    years_remaining: int = 0
    years_into_retirement: int = 0
    inflation_rate: float = 0.0
    growth_rate: float = 0.0
    filing_status: str = "single"
    rmd_age: int = RMD_AGE

    @property
    def requires_rmd(self) -> bool:
        return self.age >= self.rmd_age


@dataclass
class WithdrawalResult:
    distributions: Dict[AccountType, float] = field(
        default_factory=lambda: {cat: 0.0 for cat in CATEGORIES}
    )
    realized_gains: float = 0.0
    rmd_taken: float = 0.0
    qcd_amount: float = 0.0
    roth_conversion: float = 0.0
    conversion_tax: float = 0.0

    @property
    def total(self) -> float:
        return sum(self.distributions.values())

    @property
    def traditional(self) -> float:
        return self.distributions[K401] + self.distributions[IRA]


@dataclass
class StrategyState:
    """Cross-year memory of the amount-based strategies, owned by one run."""

    start_year: Optional[int] = None
    start_portfolio: float = 0.0
    last_year: Optional[int] = None
    last_withdrawal: Optional[float] = None

    def begin(self, year: int, portfolio: float) -> None:
        if self.start_year is None:
            self.start_year = year
            self.start_portfolio = max(0.0, portfolio)


# ---------- Strategy variants ----------
@dataclass(frozen=True)
class GoalBased:
    priority: WithdrawalPriority = WithdrawalPriority.DEFAULT
    secondary_priority: WithdrawalPriority = WithdrawalPriority.TAX_OPTIMIZATION
    amount_based: ClassVar[bool] = False


@dataclass(frozen=True)
class FourPercentRule:
    rate: float = 0.04
    amount_based: ClassVar[bool] = True


@dataclass(frozen=True)
class FixedPercentage:
    rate: float = 0.04
    amount_based: ClassVar[bool] = True


@dataclass(frozen=True)
class FixedDollar:
    amount: float
    amount_based: ClassVar[bool] = True


@dataclass(frozen=True)
class SystematicWithdrawal:
    amount_based: ClassVar[bool] = True


@dataclass(frozen=True)
class Guardrails:
    initial_rate: float = 0.04
    ceiling: float = 0.05
    floor: float = 0.03
    amount_based: ClassVar[bool] = True


@dataclass(frozen=True)
class Proportional:
    amount_based: ClassVar[bool] = False


@dataclass(frozen=True)
class BracketTopping:
    threshold: Optional[float] = None
    amount_based: ClassVar[bool] = False


@dataclass(frozen=True)
class Bucket:
    amount_based: ClassVar[bool] = False


@dataclass(frozen=True)
class FloorUpside:
    essential_share: float = ESSENTIAL_EXPENSE_SHARE
    amount_based: ClassVar[bool] = False


@dataclass(frozen=True)
class RothConversionBridge:
    amount_based: ClassVar[bool] = False


@dataclass(frozen=True)
class QualifiedCharitableDistribution:
    share: float = QCD_SHARE
    cap: float = QCD_CAP
    amount_based: ClassVar[bool] = False


def build_strategy(settings: CalculatorSettings):
    """Create the strategy variant configured in ``settings``."""
    kind = settings.strategy_type
    if kind is StrategyType.GOAL_BASED:
        return GoalBased(settings.withdrawal_priority, settings.withdrawal_secondary_priority)
    if kind is StrategyType.FOUR_PERCENT:
        return FourPercentRule()
    if kind is StrategyType.FIXED_PERCENTAGE:
        return FixedPercentage(settings.fixed_percentage_rate)
    if kind is StrategyType.FIXED_DOLLAR:
        return FixedDollar(settings.fixed_dollar_amount)
    if kind is StrategyType.SYSTEMATIC_WITHDRAWAL:
        return SystematicWithdrawal()
    if kind is StrategyType.GUARDRAILS:
        return Guardrails(settings.fixed_percentage_rate, settings.guardrail_ceiling, settings.guardrail_floor)
    if kind is StrategyType.PROPORTIONAL:
        return Proportional()
    if kind is StrategyType.BRACKET_TOPPING:
        return BracketTopping(settings.bracket_topping_threshold)
    if kind is StrategyType.BUCKET:
        return Bucket()
    if kind is StrategyType.FLOOR_UPSIDE:
        return FloorUpside()
    if kind is StrategyType.ROTH_CONVERSION_BRIDGE:
        return RothConversionBridge()
    return QualifiedCharitableDistribution()


# ---------- Draw helpers ----------
def draw(
    category: AccountType,
    amount: float,
    balances: AccountBalances,
    basis: TaxableBasis,
    result: WithdrawalResult,
) -> float:
    """Withdraw up to ``amount`` from one category and record it on ``result``."""
    total_before = balances[category]
    taken = balances.withdraw(category, amount)
    if taken <= 0:
        return 0.0
    if category is TAXABLE:
        result.realized_gains += basis.withdraw(taken, total_before)
    result.distributions[category] += taken
    return taken


def draw_in_order(
    order: Sequence[AccountType],
    need: float,
    balances: AccountBalances,
    basis: TaxableBasis,
    result: WithdrawalResult,
) -> float:
    """Fund ``need`` from ``order``; return whatever is left unfunded."""
    for category in order:
        if need <= 0:
            break
        need -= draw(category, need, balances, basis, result)
    return max(0.0, need)


def withdrawal_order(priority: WithdrawalPriority, ctx: WithdrawalContext) -> tuple:
    """Account-draw order of a goal-based priority for this year."""
    before, after = GOAL_ORDERS.get(priority, GOAL_ORDERS[WithdrawalPriority.DEFAULT])
    if ctx.requires_rmd:
        return after
    if priority is WithdrawalPriority.SEQUENCE_RISK and ctx.years_remaining > EARLY_RETIREMENT_YEARS:
        return SEQUENCE_RISK_EARLY_ORDER
    return before


def satisfy_rmd(strategy, ctx: WithdrawalContext, balances: AccountBalances, result: WithdrawalResult) -> float:
    """Draw this year's RMD before anything else; return the amount taken.

    Under the QCD strategy part of the requirement goes to charity instead:
    it leaves the traditional accounts but is neither income nor a
    distribution on the ledger.
    """
    required = ctx.rmd_amount if ctx.requires_rmd else 0.0
    if required <= 0 or balances.traditional() <= 0:
        return 0.0
    if isinstance(strategy, QualifiedCharitableDistribution):
        qcd = min(required * strategy.share, strategy.cap)
        from_401k, from_ira = take_pro_rata(balances, qcd)
        result.qcd_amount += from_401k + from_ira
        required -= qcd
    from_401k, from_ira = take_pro_rata(balances, required)
    result.distributions[K401] += from_401k
    result.distributions[IRA] += from_ira
    result.rmd_taken += from_401k + from_ira
    return from_401k + from_ira


# ---------- Handlers ----------
def _goal_based(strategy: GoalBased, ctx, need, balances, basis, state, result) -> None:
    draw_in_order(withdrawal_order(strategy.priority, ctx), need, balances, basis, result)


def _execute_target(target: float, balances, basis, result) -> None:
    remaining = max(0.0, target - result.rmd_taken)
    draw_in_order(DEFAULT_ORDER, remaining, balances, basis, result)


def _inflated(amount: float, ctx: WithdrawalContext, since_year: Optional[int]) -> float:
    years = max(0, ctx.year - since_year) if since_year is not None else 0
    return amount * (1.0 + ctx.inflation_rate) ** years


def _four_percent(strategy: FourPercentRule, ctx, need, balances, basis, state, result) -> None:
    state.begin(ctx.year, ctx.net_worth)
    target = _inflated(state.start_portfolio * strategy.rate, ctx, state.start_year)
    _execute_target(target, balances, basis, result)


def _fixed_percentage(strategy: FixedPercentage, ctx, need, balances, basis, state, result) -> None:
    _execute_target(max(0.0, ctx.net_worth) * strategy.rate, balances, basis, result)


def _fixed_dollar(strategy: FixedDollar, ctx, need, balances, basis, state, result) -> None:
    _execute_target(max(0.0, strategy.amount), balances, basis, result)


def _systematic(strategy: SystematicWithdrawal, ctx, need, balances, basis, state, result) -> None:
    _execute_target(max(0.0, ctx.net_worth * ctx.growth_rate), balances, basis, result)


def _guardrails(strategy: Guardrails, ctx, need, balances, basis, state, result) -> None:
    state.begin(ctx.year, ctx.net_worth)
    if state.last_withdrawal is None:
        target = state.start_portfolio * strategy.initial_rate
    else:
        target = _inflated(state.last_withdrawal, ctx, state.last_year)
    if ctx.net_worth > 0:
        current_rate = target / ctx.net_worth
        if current_rate > strategy.ceiling:
            target *= 1.0 - GUARDRAIL_ADJUSTMENT
        elif current_rate < strategy.floor:
            target *= 1.0 + GUARDRAIL_ADJUSTMENT
    state.last_year, state.last_withdrawal = ctx.year, target
    _execute_target(target, balances, basis, result)


def _proportional(strategy: Proportional, ctx, need, balances, basis, state, result) -> None:
    total = balances.total()
    if need <= 0 or total <= 0:
        return
    shares = {cat: bal / total for cat, bal in balances.items()}
    for category, share in shares.items():
        draw(category, need * share, balances, basis, result)


def _bracket_topping(strategy: BracketTopping, ctx, need, balances, basis, state, result) -> None:
    threshold = strategy.threshold
    if threshold is None:
        threshold = taxes.bracket_ceiling(0.12, ctx.filing_status)
    ordinary_so_far = ctx.ordinary_income + result.traditional
    room = threshold + taxes.standard_deduction(ctx.filing_status) - ordinary_so_far
    filled = 0.0
    for category in (K401, IRA):
        if room - filled <= 0:
            break
        filled += draw(category, room - filled, balances, basis, result)
    draw_in_order((TAXABLE, ROTH, HSA, OTHER), need - filled, balances, basis, result)


def _bucket(strategy: Bucket, ctx, need, balances, basis, state, result) -> None:
    years = ctx.years_into_retirement
    if years < 3:
        bucket = (TAXABLE, HSA)
    elif years < 10:
        bucket = (K401, IRA)
    else:
        bucket = (ROTH,)
    need = draw_in_order(bucket, need, balances, basis, result)
    draw_in_order(DEFAULT_ORDER, need, balances, basis, result)


def _floor_upside(strategy: FloorUpside, ctx, need, balances, basis, state, result) -> None:
    essential = max(0.0, strategy.essential_share * ctx.expenses - ctx.guaranteed_income)
    essential_need = min(need, essential)
    draw_in_order((TAXABLE, HSA, K401, IRA, OTHER), essential_need, balances, basis, result)
    draw(ROTH, need - essential_need, balances, basis, result)


def convert_to_roth(ctx: WithdrawalContext, balances: AccountBalances, result: WithdrawalResult) -> float:
    """Run this year's bridge conversion; return the amount converted.

    Conversions happen in every retired pre-RMD year, whether or not the
    year needs a withdrawal.
    """
    amount = roth.decide_conversion(balances.traditional(), ctx.age)
    if amount <= 0:
        return 0.0
    converted, tax_due = roth.apply_conversion(balances, amount)
    result.roth_conversion += converted
    result.conversion_tax += tax_due
    return converted


def _roth_bridge(strategy: RothConversionBridge, ctx, need, balances, basis, state, result) -> None:
    convert_to_roth(ctx, balances, result)
    draw_in_order(withdrawal_order(WithdrawalPriority.DEFAULT, ctx), need, balances, basis, result)


def _qcd(strategy: QualifiedCharitableDistribution, ctx, need, balances, basis, state, result) -> None:
    draw_in_order(withdrawal_order(WithdrawalPriority.DEFAULT, ctx), need, balances, basis, result)


_HANDLERS: Dict[type, Callable] = {
    GoalBased: _goal_based,
    FourPercentRule: _four_percent,
    FixedPercentage: _fixed_percentage,
    FixedDollar: _fixed_dollar,
    SystematicWithdrawal: _systematic,
    Guardrails: _guardrails,
    Proportional: _proportional,
    BracketTopping: _bracket_topping,
    Bucket: _bucket,
    FloorUpside: _floor_upside,
    RothConversionBridge: _roth_bridge,
    QualifiedCharitableDistribution: _qcd,
}


def execute_strategy(
    strategy,
    ctx: WithdrawalContext,
    balances: AccountBalances,
    basis: TaxableBasis,
    state: StrategyState,
    result: Optional[WithdrawalResult] = None,
) -> WithdrawalResult:
    """Satisfy the RMD, then run ``strategy`` for the remaining need.

    ``balances`` and ``basis`` are updated in place.  The returned result
    carries per-category distributions and the side amounts (RMD, QCD,
    conversion) for the ledger.
    """
    result = result if result is not None else WithdrawalResult()
    rmd_taken = satisfy_rmd(strategy, ctx, balances, result)
    need = max(0.0, ctx.need - rmd_taken)
    _HANDLERS[type(strategy)](strategy, ctx, need, balances, basis, state, result)
    return result


def cover_shortfall(
    shortfall: float,
    balances: AccountBalances,
    basis: TaxableBasis,
    result: WithdrawalResult,
    ordinary_income: float,
    filing_status: str,
) -> float:
    """Top up a post-tax shortfall; return the part left unfunded.

    Untaxed Roth money goes first, then Taxable grossed up by the estimated
    gains rate, then 401k/IRA grossed up by the marginal rate, then HSA and
    Other.  The estimates only size the draws; the caller recomputes the tax.
    """
    remaining = shortfall - draw(ROTH, shortfall, balances, basis, result)
    if remaining <= 0:
        return 0.0

    income = ordinary_income + result.realized_gains
    cg_rate = taxes.estimate_capital_gains_rate(income, filing_status)
    taken = draw(TAXABLE, remaining / (1.0 - cg_rate), balances, basis, result)
    remaining -= taken * (1.0 - cg_rate)
    if remaining <= 0:
        return 0.0

    marginal = taxes.estimate_marginal_rate(ordinary_income, filing_status)
    for category in (K401, IRA):
        if remaining <= 0:
            break
        taken = draw(category, remaining / (1.0 - marginal), balances, basis, result)
        remaining -= taken * (1.0 - marginal)

    return draw_in_order((HSA, OTHER), remaining, balances, basis, result)


__all__ = [
    "BracketTopping",
    "Bucket",
    "FixedDollar",
    "FixedPercentage",
    "FloorUpside",
    "FourPercentRule",
    "GoalBased",
    "Guardrails",
    "Proportional",
    "QualifiedCharitableDistribution",
    "RothConversionBridge",
    "StrategyState",
    "SystematicWithdrawal",
    "WithdrawalContext",
    "WithdrawalResult",
    "build_strategy",
    "convert_to_roth",
    "cover_shortfall",
    "draw",
    "draw_in_order",
    "execute_strategy",
    "satisfy_rmd",
    "withdrawal_order",
]
