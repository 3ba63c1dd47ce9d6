"""Roth conversions used by the conversion-bridge withdrawal strategy.

Between retirement and the RMD age the bridge strategy moves part of the
traditional balance into the Roth category every year.  The converted amount
is the smaller of ``CONVERSION_SHARE`` of the traditional balance and
``CONVERSION_CAP``.  Conversion tax is charged at a flat
``CONVERSION_TAX_RATE`` and paid from the year's cash flow, so the converted
dollars reach the Roth account in full.
"""

from __future__ import annotations

from typing import Tuple

from ..models import AccountBalances, AccountType
from .rmd import RMD_AGE, take_pro_rata

CONVERSION_SHARE = 0.10
CONVERSION_CAP = 10000.0
CONVERSION_TAX_RATE = 0.15


def decide_conversion(traditional_balance: float, age: int) -> float:
    """Return the gross amount to convert this year.

    Conversions only happen before ``RMD_AGE``.
    """
    if age >= RMD_AGE or traditional_balance <= 0:
        return 0.0
    return min(traditional_balance * CONVERSION_SHARE, CONVERSION_CAP)


def apply_conversion(
    balances: AccountBalances,
    amount: float,
    tax_rate: float = CONVERSION_TAX_RATE,
) -> Tuple[float, float]:
    """Move ``amount`` from 401k/IRA (pro-rata) into the Roth category.

    Parameters
    ----------
    balances : AccountBalances
        Balances for the current year, updated in place.
    amount : float
        Gross amount to convert; clamped to the traditional balance.
    tax_rate : float, optional
        Flat rate applied to the converted amount.

    Returns
    -------
    tuple
        ``(converted, tax_due)``.
    """
    from_401k, from_ira = take_pro_rata(balances, amount)
    converted = from_401k + from_ira
    balances.deposit(AccountType.ROTH, converted)
    return converted, converted * max(0.0, tax_rate)


__all__ = [
    "CONVERSION_CAP",
    "CONVERSION_SHARE",
    "CONVERSION_TAX_RATE",
    "apply_conversion",
    "decide_conversion",
]
