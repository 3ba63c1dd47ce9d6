"""Deterministic year-by-year projection of a retirement plan.

``calculate_retirement_projections`` walks from the planner's current age to
the terminal age and emits one ``ProjectionDetail`` per year.  Each year it

1. inflates expenses and other income,
2. adds Social Security for the planner and, optionally, a spouse,
3. forces the RMD and runs the withdrawal strategy in retirement,
4. grosses withdrawals up until after-tax income covers expenses,
5. settles the optional debt ledger and reinvests any surplus,
6. grows balances and adds pre-retirement contributions.

Shortfalls never raise: they show up as a negative ``gap_excess`` and a growing
``cumulative_liability``.

Example
-------

>>> from retirement_planner.models import Account, Expense, build_calculator_settings
>>> settings = build_calculator_settings(None, None, 2025, 65, 5, 0)
>>> rows = calculate_retirement_projections(
...     1965, [Account("401k", 500000, AccountType.K401)],
...     [Expense("Living", 3000, 3000)], [], settings, terminal_age=90)
>>> rows[0].age, rows[-1].age
(60, 90)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..models import (
    Account,
    AccountBalances,
    AccountType,
    CalculatorSettings,
    Expense,
    OtherIncome,
    Phase,
    ProjectionDetail,
)
from . import rmd, social_security as ssa, taxes
from .cost_basis import TaxableBasis
from .withdrawals import (
    RothConversionBridge,
    StrategyState,
    WithdrawalContext,
    WithdrawalResult,
    build_strategy,
    convert_to_roth,
    cover_shortfall,
    execute_strategy,
    satisfy_rmd,
)

logger = logging.getLogger(__name__)

MAX_GROSS_UP_ITERATIONS = 10
GROSS_UP_TOLERANCE = 1.0
MEDICARE_AGE = 65
MAX_SSA_AGE = 70


@dataclass(frozen=True)
class YearTaxes:
    ordinary_income: float
    capital_gains: float
    taxable_income: float
    income_tax: float
    capital_gains_tax: float
    conversion_tax: float

    @property
    def total(self) -> float:
        return self.income_tax + self.capital_gains_tax + self.conversion_tax


def compute_year_taxes(result: WithdrawalResult, other_income: float, filing_status: str) -> YearTaxes:
    """Tax one year's withdrawals and other income.

    Ordinary income is 401k/IRA distributions plus other income, reduced by
    the standard deduction.  Realized Taxable gains are taxed on their own
    ladder, not stacked on ordinary income.  Social Security is untaxed.
    """
    ordinary = other_income + result.traditional
    taxable_ordinary = max(0.0, ordinary - taxes.standard_deduction(filing_status))
    gains = result.realized_gains
    return YearTaxes(
        ordinary_income=ordinary,
        capital_gains=gains,
        taxable_income=taxable_ordinary + gains,
        income_tax=taxes.compute_federal_tax(taxable_ordinary, filing_status),
        capital_gains_tax=taxes.compute_capital_gains_tax(gains, filing_status),
        conversion_tax=result.conversion_tax,
    )


def living_expenses(settings: CalculatorSettings, base_annual: float, year: int, phase: Phase) -> float:
    """Annual living expenses for ``year``.

    Before retirement today's spending is inflated from the current year.  In
    retirement the baseline at the first retirement year is inflated from
    that year, so the curve is continuous across the boundary.
    """
    inflation = settings.inflation_rate
    if phase is Phase.PRE_RETIREMENT:
        return base_annual * (1.0 + inflation) ** (year - settings.current_year)
    baseline = settings.annual_retirement_expenses
    if baseline is None:
        baseline = base_annual * (1.0 + inflation) ** max(0, settings.years_to_retirement)
    return baseline * (1.0 + inflation) ** max(0, year - settings.start_of_retirement)


def event_label(
    age: int,
    retirement_age: int,
    ssa_start_age: int,
    spouse_age: Optional[int] = None,
) -> Optional[str]:
    """Milestone label for the ledger; the first matching planner event wins."""
    event = None
    if age == retirement_age:
        event = "Retirement"
    elif age == ssa_start_age:
        event = "SSA Eligibility"
    elif age == MEDICARE_AGE:
        event = "Medicare Eligibility"
    elif age == ssa.FULL_RETIREMENT_AGE:
        event = "Full SSA"
    elif age == MAX_SSA_AGE:
        event = "Max SSA"
    elif age == rmd.RMD_AGE:
        event = "RMD Starts"

    if spouse_age is not None and spouse_age == ssa_start_age:
        event = f"{event}, Spouse SSA Eligibility" if event else "Spouse SSA Eligibility"
    return event


def _other_income_for(year: int, streams: Iterable[OtherIncome], inflation_multiplier: float) -> float:
    total = 0.0
    for stream in streams:
        if not stream.active_in(year):
            continue
        total += stream.amount * (inflation_multiplier if stream.inflation_adjusted else 1.0)
    return total


def calculate_retirement_projections(
    birth_year: int,
    accounts: List[Account],
    expenses: List[Expense],
    other_income: List[OtherIncome],
    settings: CalculatorSettings,
    terminal_age: int = 100,
    spouse_birth_year: Optional[int] = None,
    spouse_life_expectancy: Optional[int] = None,
    include_planner_benefit: bool = True,
    include_spouse_benefit: Optional[bool] = None,
    planner_benefit_override: Optional[float] = None,
    spouse_benefit_override: Optional[float] = None,
) -> List[ProjectionDetail]:
    """Project a plan year by year from today to ``terminal_age``.

    Parameters
    ----------
    birth_year : int
        Planner's birth year; the current age is ``settings.current_year - birth_year``.
    accounts, expenses, other_income : list
        Plan inputs.  Expenses are monthly amounts.
    settings : CalculatorSettings
        Economic, tax and strategy assumptions for this run.
    terminal_age : int, optional
        Last age projected (inclusive).
    spouse_birth_year, spouse_life_expectancy : int, optional
        A spouse receives benefits only when both are given.
    include_planner_benefit : bool, optional
        Whether the planner collects Social Security.
    include_spouse_benefit : bool, optional
        ``None`` includes the spouse whenever ``spouse_birth_year`` is given.
    planner_benefit_override, spouse_benefit_override : float, optional
        Replace the flat base benefit amounts from ``settings``.

    Returns
    -------
    list of ProjectionDetail
        One row per year, in order.
    """
    current_age = settings.current_year - int(birth_year)
    retirement_age = settings.retirement_age
    filing_status = settings.filing_status
    if include_spouse_benefit is None:
        include_spouse_benefit = spouse_birth_year is not None

    planner_base = settings.planner_benefit_base if planner_benefit_override is None else planner_benefit_override
    spouse_base = settings.spouse_benefit_base if spouse_benefit_override is None else spouse_benefit_override

    base_annual = sum(exp.monthly_amount(retirement_age) for exp in expenses) * 12.0

    strategy = build_strategy(settings)
    strategy_state = StrategyState()
    balances = AccountBalances.from_accounts(accounts)
    basis = TaxableBasis()
    for acct in accounts:
        if acct.account_type is AccountType.TAXABLE:
            basis.add(acct.balance if acct.cost_basis is None else min(acct.cost_basis, acct.balance))

    debt_balance = 0.0
    cumulative_liability = 0.0
    rows: List[ProjectionDetail] = []

    logger.debug(
        "projecting %s from age %s to %s with %s",
        birth_year, current_age, terminal_age, type(strategy).__name__,
    )

    for age in range(current_age, terminal_age + 1):
        year = settings.current_year + (age - current_age)
        phase = Phase.for_age(age, retirement_age)
        retired = phase is Phase.RETIRED

        # --- inflation, expenses, growth ---
        inflation_multiplier = (1.0 + settings.inflation_rate) ** (year - settings.current_year)
        expenses_total = living_expenses(settings, base_annual, year, phase)
        growth_rate = (
            settings.growth_rate_during_retirement if retired else settings.growth_rate_before_retirement
        )

        # --- guaranteed income ---
        spouse_age = (year - spouse_birth_year) if spouse_birth_year is not None else None
        ssa_income = 0.0
        if include_planner_benefit:
            ssa_income += ssa.annual_benefit(age, settings.ssa_start_age, planner_base, inflation_multiplier)
        if include_spouse_benefit and spouse_age is not None and spouse_life_expectancy is not None:
            ssa_income += ssa.annual_benefit(
                spouse_age, settings.ssa_start_age, spouse_base, inflation_multiplier,
                end_age=spouse_life_expectancy,
            )
        other_total = _other_income_for(year, other_income, inflation_multiplier)
        guaranteed = ssa_income + other_total

        # --- withdrawals ---
        rmd_amount = rmd.compute_rmd(balances.traditional(), age)
        need = max(0.0, expenses_total - guaranteed) if retired else 0.0
        if retired:
            strategy_state.begin(year, balances.total())
        ctx = WithdrawalContext(
            age=age,
            year=year,
            need=need,
            net_worth=balances.total(),
            expenses=expenses_total,
            guaranteed_income=guaranteed,
            ordinary_income=other_total,
            rmd_amount=rmd_amount,
            years_remaining=terminal_age - age,
            years_into_retirement=max(0, age - retirement_age),
            inflation_rate=settings.inflation_rate,
            growth_rate=growth_rate,
            filing_status=filing_status,
        )
        result = WithdrawalResult()
        if retired and need > 0:
            execute_strategy(strategy, ctx, balances, basis, strategy_state, result)
        else:
            satisfy_rmd(strategy, ctx, balances, result)
            if retired and isinstance(strategy, RothConversionBridge):
                convert_to_roth(ctx, balances, result)

        # --- taxes and gross-up ---
        year_taxes = compute_year_taxes(result, other_total, filing_status)
        iterations = 0
        converged = True
        if retired and not strategy.amount_based:
            for iteration in range(1, MAX_GROSS_UP_ITERATIONS + 1):
                shortfall = expenses_total - (guaranteed + result.total - year_taxes.total)
                if shortfall <= GROSS_UP_TOLERANCE or balances.total() <= 0:
                    break
                cover_shortfall(
                    shortfall, balances, basis, result,
                    ordinary_income=year_taxes.ordinary_income,
                    filing_status=filing_status,
                )
                iterations = iteration
                year_taxes = compute_year_taxes(result, other_total, filing_status)
            residual = expenses_total - (guaranteed + result.total - year_taxes.total)
            converged = residual <= GROSS_UP_TOLERANCE
            if not converged:
                logger.debug(
                    "year %s: gross-up left %.2f unfunded after %s iterations",
                    year, residual, iterations,
                )

        total_income = guaranteed + result.total
        after_tax_income = total_income - year_taxes.total
        initial_gap = after_tax_income - expenses_total if retired else after_tax_income

        # --- debt ledger ---
        interest_paid = principal_paid = 0.0
        if settings.enable_borrowing:
            rate = settings.debt_interest_rate
            if debt_balance > 0:
                debt_balance *= 1.0 + rate
            if initial_gap < 0:
                debt_balance += -initial_gap
            elif initial_gap > 0 and debt_balance > 0:
                interest_paid = min(initial_gap, debt_balance * rate)
                debt_balance = max(0.0, debt_balance - interest_paid)
                remaining = initial_gap - interest_paid
                if remaining > 0 and debt_balance > 0:
                    principal_paid = min(remaining, debt_balance)
                    debt_balance = max(0.0, debt_balance - principal_paid)
        gap_excess = initial_gap - interest_paid - principal_paid

        if gap_excess < 0:
            cumulative_liability += -gap_excess
        elif gap_excess > 0:
            cumulative_liability = max(0.0, cumulative_liability - gap_excess)

        # --- reinvest surplus, grow, contribute ---
        if gap_excess > 0 and debt_balance <= 0:
            balances.deposit(AccountType.TAXABLE, gap_excess)
            basis.add(gap_excess)

        balances.apply_growth(growth_rate)

        if not retired:
            for acct in accounts:
                if acct.annual_contribution > 0:
                    balances.deposit(acct.account_type, acct.annual_contribution)
                    if acct.account_type is AccountType.TAXABLE:
                        basis.add(acct.annual_contribution)

        # --- bookkeeping ---
        networth = balances.total() - debt_balance
        dist = result.distributions
        rows.append(
            ProjectionDetail(
                year=year,
                age=age,
                phase=phase,
                event=event_label(
                    age, retirement_age, settings.ssa_start_age,
                    spouse_age if include_spouse_benefit else None,
                ),
                spouse_age=spouse_age,
                ssa_income=ssa_income,
                distribution_401k=dist[AccountType.K401],
                distribution_ira=dist[AccountType.IRA],
                distribution_roth=dist[AccountType.ROTH],
                distribution_taxable=dist[AccountType.TAXABLE],
                distribution_hsa=dist[AccountType.HSA],
                distribution_other=dist[AccountType.OTHER],
                investment_income=result.realized_gains,
                other_recurring_income=other_total,
                total_income=total_income,
                after_tax_income=after_tax_income,
                living_expenses=expenses_total,
                special_expenses=0.0,
                total_expenses=expenses_total,
                gap_excess=gap_excess,
                cumulative_liability=cumulative_liability,
                debt_balance=debt_balance,
                debt_interest_paid=interest_paid,
                debt_principal_paid=principal_paid,
                assets_remaining=networth,
                networth=networth,
                balance_401k=balances[AccountType.K401],
                balance_ira=balances[AccountType.IRA],
                balance_roth=balances[AccountType.ROTH],
                balance_investment=balances[AccountType.TAXABLE],
                balance_hsa=balances[AccountType.HSA],
                balance_other_investments=balances[AccountType.OTHER],
                taxable_basis=basis.principal,
                required_minimum_distribution=result.rmd_taken + result.qcd_amount,
                qcd_amount=result.qcd_amount,
                roth_conversion=result.roth_conversion,
                conversion_tax=result.conversion_tax,
                ordinary_income=year_taxes.ordinary_income,
                capital_gains=year_taxes.capital_gains,
                taxable_income=year_taxes.taxable_income,
                income_tax=year_taxes.income_tax,
                capital_gains_tax=year_taxes.capital_gains_tax,
                tax=year_taxes.total,
                gross_up_iterations=iterations,
                tax_converged=converged,
            )
        )

    return rows


__all__ = [
    "GROSS_UP_TOLERANCE",
    "MAX_GROSS_UP_ITERATIONS",
    "YearTaxes",
    "calculate_retirement_projections",
    "compute_year_taxes",
    "event_label",
    "living_expenses",
]
