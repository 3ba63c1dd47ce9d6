"""Plan inputs, settings and ledger rows shared by the calculators.

Inputs arrive from the outside world as loosely-typed rows (the persistence
layer stores one row per account, expense, income stream and scenario).  This
module turns them into small immutable records the engine can rely on:

* ``Account``, ``Expense`` and ``OtherIncome`` describe the plan.
* ``CalculatorSettings`` holds the per-scenario assumptions.
* ``AccountBalances`` is the running per-category total mutated by one run.
* ``ProjectionDetail`` is one year of the output ledger.

Example
-------

>>> settings = build_calculator_settings(None, None, 2025, 65, 10, 60000)
>>> settings.strategy_type.value, settings.withdrawal_priority.value
('goal_based', 'default')
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional


class ConfigurationError(ValueError):
    """Raised when plan or scenario inputs are missing or malformed."""


class AccountType(Enum):
    K401 = "401k"
    IRA = "IRA"
    ROTH = "RothIRA"
    HSA = "HSA"
    TAXABLE = "Taxable"
    OTHER = "Other"


CATEGORIES = tuple(AccountType)
TRADITIONAL = (AccountType.K401, AccountType.IRA)

_TYPE_ALIASES = {
    "401k": AccountType.K401,
    "401(k)": AccountType.K401,
    "ira": AccountType.IRA,
    "traditional ira": AccountType.IRA,
    "rothira": AccountType.ROTH,
    "roth ira": AccountType.ROTH,
    "roth": AccountType.ROTH,
    "hsa": AccountType.HSA,
    "taxable": AccountType.TAXABLE,
    "other": AccountType.OTHER,
}


def normalize_account_type(value) -> AccountType:
    """Map a stored account-type label onto one of the six categories.

    Unknown or empty labels fall into ``Other``.
    """
    if isinstance(value, AccountType):
        return value
    key = str(value or "").strip().lower()
    return _TYPE_ALIASES.get(key, AccountType.OTHER)


class WithdrawalPriority(Enum):
    LONGEVITY = "longevity"
    LEGACY = "legacy"
    TAX_OPTIMIZATION = "tax_optimization"
    STABLE_INCOME = "stable_income"
    SEQUENCE_RISK = "sequence_risk"
    LIQUIDITY = "liquidity"
    DEFAULT = "default"


class StrategyType(Enum):
    GOAL_BASED = "goal_based"
    FOUR_PERCENT = "four_percent"
    FIXED_PERCENTAGE = "fixed_percentage"
    FIXED_DOLLAR = "fixed_dollar"
    SYSTEMATIC_WITHDRAWAL = "systematic_withdrawal"
    GUARDRAILS = "guardrails"
    PROPORTIONAL = "proportional"
    BRACKET_TOPPING = "bracket_topping"
    BUCKET = "bucket"
    FLOOR_UPSIDE = "floor_upside"
    ROTH_CONVERSION_BRIDGE = "roth_conversion_bridge"
    QCD = "qcd"


class Phase(Enum):
    PRE_RETIREMENT = "pre_retirement"
    RETIRED = "retired"

    @classmethod
    def for_age(cls, age: int, retirement_age: int) -> "Phase":
        return cls.RETIRED if age >= retirement_age else cls.PRE_RETIREMENT


def _or_default(value, default):
    # 0.0 is a real rate; only missing values fall back
    return default if value is None or value == "" else value


def _enum_value(enum_cls, value, default):
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(f"unknown {enum_cls.__name__}: {value!r}") from None


@dataclass(frozen=True)
class Account:
    account_name: str
    balance: float
    account_type: AccountType = AccountType.OTHER
    owner: str = "planner"
    annual_contribution: float = 0.0
    cost_basis: Optional[float] = None

    @classmethod
    def from_row(cls, row: Mapping) -> "Account":
        basis = row.get("cost_basis")
        return cls(
            account_name=str(row.get("account_name", "")),
            balance=max(0.0, float(row.get("balance") or 0.0)),
            account_type=normalize_account_type(row.get("account_type")),
            owner=str(row.get("owner") or "planner"),
            annual_contribution=float(row.get("annual_contribution") or 0.0),
            cost_basis=None if basis is None else float(basis),
        )


@dataclass(frozen=True)
class Expense:
    expense_name: str
    amount_before_65: float = 0.0
    amount_after_65: float = 0.0

    def monthly_amount(self, retirement_age: int) -> float:
        return self.amount_after_65 if retirement_age >= 65 else self.amount_before_65

    @classmethod
    def from_row(cls, row: Mapping) -> "Expense":
        return cls(
            expense_name=str(row.get("expense_name", "")),
            amount_before_65=float(row.get("amount_before_65") or 0.0),
            amount_after_65=float(row.get("amount_after_65") or 0.0),
        )


@dataclass(frozen=True)
class OtherIncome:
    income_name: str
    amount: float
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    inflation_adjusted: bool = False

    def active_in(self, year: int) -> bool:
        if self.start_year and year < self.start_year:
            return False
        if self.end_year and year > self.end_year:
            return False
        return True

    @classmethod
    def from_row(cls, row: Mapping) -> "OtherIncome":
        return cls(
            income_name=str(row.get("income_name") or row.get("income_source") or ""),
            amount=float(row.get("amount") or row.get("annual_amount") or 0.0),
            start_year=row.get("start_year") or None,
            end_year=row.get("end_year") or None,
            inflation_adjusted=bool(row.get("inflation_adjusted", False)),
        )


@dataclass(frozen=True)
class CalculatorSettings:
    current_year: int
    retirement_age: int
    years_to_retirement: int
    growth_rate_before_retirement: float
    growth_rate_during_retirement: float
    inflation_rate: float
    filing_status: str = "single"
    debt_interest_rate: float = 0.06
    enable_borrowing: bool = False
    ssa_start_age: int = 62
    strategy_type: StrategyType = StrategyType.GOAL_BASED
    withdrawal_priority: WithdrawalPriority = WithdrawalPriority.DEFAULT
    withdrawal_secondary_priority: WithdrawalPriority = WithdrawalPriority.TAX_OPTIMIZATION
    fixed_percentage_rate: float = 0.04
    fixed_dollar_amount: float = 0.0
    guardrail_ceiling: float = 0.05
    guardrail_floor: float = 0.03
    bracket_topping_threshold: Optional[float] = None
    annual_retirement_expenses: Optional[float] = None
    retirement_start_year: Optional[int] = None
    planner_benefit_base: float = 20000.0
    spouse_benefit_base: float = 15000.0

    @property
    def start_of_retirement(self) -> int:
        if self.retirement_start_year is not None:
            return self.retirement_start_year
        return self.current_year + max(0, self.years_to_retirement)


class AccountBalances:
    """Running balance per account category for one projection run."""

    def __init__(self, initial: Optional[Mapping] = None):
        self._values: Dict[AccountType, float] = {cat: 0.0 for cat in CATEGORIES}
        for key, value in (initial or {}).items():
            self._values[normalize_account_type(key)] += float(value)

    @classmethod
    def from_accounts(cls, accounts: Iterable[Account]) -> "AccountBalances":
        balances = cls()
        for acct in accounts:
            balances.deposit(acct.account_type, acct.balance)
        return balances

    def __getitem__(self, key) -> float:
        return self._values[normalize_account_type(key)]

    def __iter__(self):
        return iter(self._values)

    def items(self):
        return self._values.items()

    def total(self) -> float:
        return sum(self._values.values())

    def traditional(self) -> float:
        return sum(self._values[cat] for cat in TRADITIONAL)

    def deposit(self, category, amount: float) -> None:
        if amount > 0:
            self._values[normalize_account_type(category)] += amount

    def withdraw(self, category, amount: float) -> float:
        """Take up to ``amount`` from ``category`` and return what was taken."""
        cat = normalize_account_type(category)
        take = min(max(0.0, amount), self._values[cat])
        if take <= 0:
            return 0.0
        self._values[cat] -= take
        return take

    def apply_growth(self, rate: float) -> None:
        for cat, bal in self._values.items():
            if bal > 0:
                self._values[cat] = bal * (1.0 + rate)

    def snapshot(self) -> Dict[AccountType, float]:
        return dict(self._values)


@dataclass(frozen=True)
class ProjectionDetail:
    year: int
    age: int
    phase: Phase
    event: Optional[str] = None
    spouse_age: Optional[int] = None
    ssa_income: float = 0.0
    distribution_401k: float = 0.0
    distribution_ira: float = 0.0
    distribution_roth: float = 0.0
    distribution_taxable: float = 0.0
    distribution_hsa: float = 0.0
    distribution_other: float = 0.0
    investment_income: float = 0.0
    other_recurring_income: float = 0.0
    total_income: float = 0.0
    after_tax_income: float = 0.0
    living_expenses: float = 0.0
    special_expenses: float = 0.0
    total_expenses: float = 0.0
    gap_excess: float = 0.0
    cumulative_liability: float = 0.0
    debt_balance: float = 0.0
    debt_interest_paid: float = 0.0
    debt_principal_paid: float = 0.0
    assets_remaining: float = 0.0
    networth: float = 0.0
    balance_401k: float = 0.0
    balance_ira: float = 0.0
    balance_roth: float = 0.0
    balance_investment: float = 0.0
    balance_hsa: float = 0.0
    balance_other_investments: float = 0.0
    taxable_basis: float = 0.0
    required_minimum_distribution: float = 0.0
    qcd_amount: float = 0.0
    roth_conversion: float = 0.0
    conversion_tax: float = 0.0
    ordinary_income: float = 0.0
    capital_gains: float = 0.0
    taxable_income: float = 0.0
    income_tax: float = 0.0
    capital_gains_tax: float = 0.0
    tax: float = 0.0
    gross_up_iterations: int = 0
    tax_converged: bool = True

    @property
    def traditional_distribution(self) -> float:
        return self.distribution_401k + self.distribution_ira

    def to_record(self, **keys) -> dict:
        """Flatten the row into the shape stored per ``(scenario_id, year)``."""
        record = dict(keys)
        for name, value in asdict(self).items():
            record[name] = value.value if isinstance(value, Enum) else value
        return record


def build_calculator_settings(
    settings_row: Optional[Mapping],
    plan_row: Optional[Mapping],
    current_year: int,
    retirement_age: int,
    years_to_retirement: int,
    annual_expenses: float,
) -> CalculatorSettings:
    """Build ``CalculatorSettings`` from stored scenario and plan rows.

    Either row may be ``None``; missing values take the defaults used by new
    scenarios.  ``annual_expenses`` is today's annual spending and is inflated
    to the first year of retirement to give the retirement baseline.
    """
    from .calculators.taxes import normalize_filing_status

    s = dict(settings_row or {})
    p = dict(plan_row or {})

    inflation = float(s.get("inflation_rate", 0.03) or 0.0)
    years = max(0, int(years_to_retirement))

    threshold = s.get("bracket_topping_threshold")
    return CalculatorSettings(
        current_year=int(current_year),
        retirement_age=int(retirement_age),
        years_to_retirement=int(years_to_retirement),
        growth_rate_before_retirement=float(_or_default(s.get("growth_rate_before_retirement"), 0.07)),
        growth_rate_during_retirement=float(_or_default(s.get("growth_rate_during_retirement"), 0.05)),
        inflation_rate=inflation,
        filing_status=normalize_filing_status(p.get("filing_status") or s.get("filing_status")),
        debt_interest_rate=float(s.get("debt_interest_rate") or 0.06),
        enable_borrowing=s.get("enable_borrowing") is True,
        ssa_start_age=int(s.get("ssa_start_age") or 62),
        strategy_type=_enum_value(StrategyType, s.get("withdrawal_strategy_type"), StrategyType.GOAL_BASED),
        withdrawal_priority=_enum_value(
            WithdrawalPriority, s.get("withdrawal_priority"), WithdrawalPriority.DEFAULT
        ),
        withdrawal_secondary_priority=_enum_value(
            WithdrawalPriority,
            s.get("withdrawal_secondary_priority"),
            WithdrawalPriority.TAX_OPTIMIZATION,
        ),
        fixed_percentage_rate=float(s.get("fixed_percentage_rate") or 0.04),
        fixed_dollar_amount=float(s.get("fixed_dollar_amount") or 0.0),
        guardrail_ceiling=float(s.get("guardrail_ceiling") or 0.05),
        guardrail_floor=float(s.get("guardrail_floor") or 0.03),
        bracket_topping_threshold=None if threshold is None else float(threshold),
        annual_retirement_expenses=float(annual_expenses) * (1.0 + inflation) ** years,
        retirement_start_year=int(current_year) + years,
    )


__all__ = [
    "Account",
    "AccountBalances",
    "AccountType",
    "CATEGORIES",
    "CalculatorSettings",
    "ConfigurationError",
    "Expense",
    "OtherIncome",
    "Phase",
    "ProjectionDetail",
    "StrategyType",
    "TRADITIONAL",
    "WithdrawalPriority",
    "build_calculator_settings",
    "normalize_account_type",
]
