"""Required Minimum Distribution (RMD) calculator.

Tax-deferred accounts (``401k`` and ``IRA``) must start paying out once the
owner reaches ``RMD_AGE``.  The yearly requirement is the combined traditional
balance at the start of the year divided by a distribution period.  Rather than
carrying the full IRS Uniform Lifetime Table, the engine uses a straight-line
approximation of it: 27.4 years at 73, one year less for each year of age,
never below one.

The required amount is drawn from ``401k`` and ``IRA`` in proportion to their
balances, whatever the withdrawal strategy would otherwise prefer.

Example
-------

>>> round(compute_rmd(balance=1_000_000, age=73), 2)
36496.35

>>> distribution_period(80)
20.4
"""

from __future__ import annotations

from typing import Tuple

from ..models import AccountBalances, AccountType

RMD_AGE = 73
RMD_BASE_PERIOD = 27.4


def rmd_required(age: int) -> bool:
    """Return True when ``age`` is at or past the RMD trigger age."""
    return age >= RMD_AGE


def distribution_period(age: int) -> float:
    """Distribution period (years) used to divide the traditional balance."""
    return max(1.0, round(RMD_BASE_PERIOD - (age - RMD_AGE), 6))


def compute_rmd(balance: float, age: int) -> float:
    """Compute the Required Minimum Distribution for a given age and balance.

    Parameters
    ----------
    balance : float
        Combined traditional balance at the start of the distribution year.
    age : int
        Age of the account owner in the distribution year.

    Returns
    -------
    float
        The RMD amount.  Zero below ``RMD_AGE`` or for a non-positive balance.
    """
    if balance <= 0 or not rmd_required(age):
        return 0.0
    return balance / distribution_period(age)


def take_pro_rata(balances: AccountBalances, amount: float) -> Tuple[float, float]:
    """Withdraw ``amount`` from 401k and IRA in proportion to their balances.

    Returns ``(from_401k, from_ira)``; each leg is clamped to its balance.
    """
    total = balances.traditional()
    if amount <= 0 or total <= 0:
        return 0.0, 0.0
    share_401k = balances[AccountType.K401] / total
    from_401k = balances.withdraw(AccountType.K401, amount * share_401k)
    from_ira = balances.withdraw(AccountType.IRA, amount * (1.0 - share_401k))
    return from_401k, from_ira


__all__ = [
    "RMD_AGE",
    "RMD_BASE_PERIOD",
    "compute_rmd",
    "distribution_period",
    "rmd_required",
    "take_pro_rata",
]
