"""Federal tax tables and bracket arithmetic.

This module implements simplified U.S. federal income and long-term capital
gains tax calculations.  The defaults embed IRS data for 2024 for the four
filing statuses (single, married filing jointly, married filing separately and
head of household).  Each table is a ladder of ``(start, end, rate)`` brackets:
income fills the lowest bracket first and spills into the next, and the top
bracket is unbounded.

Two deliberate simplifications apply:

* ``compute_federal_tax`` receives income that is *already* taxable; callers
  subtract the standard deduction themselves (see ``standard_deduction``).
* ``compute_capital_gains_tax`` applies the 0/15/20 % ladder to the gains
  amount on its own.  Real returns stack gains on top of ordinary income; the
  projection engine does not, and its results depend on that.

Example
-------

>>> # Federal tax on $45 400 of taxable income for a single filer
>>> round(compute_federal_tax(45400), 2)
5216.0

>>> # Capital gains tax on $100 000 of gains for the same filer
>>> round(compute_capital_gains_tax(100000), 2)
7946.25

The tables can be customised by passing a dictionary matching the schema in
``data/tax_tables.json``.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from ..models import ConfigurationError

_DEFAULT_TAX_TABLE_PATH = Path(__file__).resolve().parent.parent / "data" / "tax_tables.json"
DEFAULT_TAX_YEAR = 2024

FILING_STATUSES = ("single", "married_joint", "married_separate", "head_of_household")

_STATUS_ALIASES = {
    "single": "single",
    "married filing jointly": "married_joint",
    "married_filing_jointly": "married_joint",
    "married_joint": "married_joint",
    "mfj": "married_joint",
    "married filing separately": "married_separate",
    "married_filing_separately": "married_separate",
    "married_separate": "married_separate",
    "mfs": "married_separate",
    "head of household": "head_of_household",
    "head_of_household": "head_of_household",
    "hoh": "head_of_household",
}


def normalize_filing_status(status: Optional[str]) -> str:
    """Return the table key for ``status``; ``None`` means single.

    Display labels such as ``"Married Filing Jointly"`` are accepted.
    """
    if not status:
        return "single"
    key = _STATUS_ALIASES.get(str(status).strip().lower())
    if key is None:
        raise ConfigurationError(f"unknown filing status: {status!r}")
    return key


@lru_cache(maxsize=4)
def _read_tax_tables(path: str) -> Dict[str, Dict]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _load_tax_tables(path: Optional[Path] = None) -> Dict[str, Dict]:
    """Load tax tables from JSON.  If ``path`` is not provided, load the
    default file shipped with the package.

    Parameters
    ----------
    path : Path, optional
        Path to a JSON file containing the tax tables.

    Returns
    -------
    dict
        The parsed tax tables.  Files are parsed once and cached, so callers
        must not mutate the result.
    """
    return _read_tax_tables(str(path or _DEFAULT_TAX_TABLE_PATH))


def _status_table(
    filing_status: Optional[str],
    year: int,
    tax_tables: Optional[Dict[str, Dict]],
) -> Dict:
    tables = tax_tables or _load_tax_tables()
    return tables[str(year)]["federal"][normalize_filing_status(filing_status)]


def _ladder_tax(amount: float, brackets: List[Dict]) -> float:
    tax = 0.0
    remaining = amount
    for bracket in brackets:
        rate = bracket["rate"]
        start = bracket["start"]
        end = bracket["end"] if bracket["end"] is not None else float("inf")
        width = end - start
        if remaining <= 0:
            break
        if amount > start:
            portion = min(remaining, width)
            tax += portion * rate
            remaining -= portion
        else:
            break
    return tax


def _bracket_rate(amount: float, brackets: List[Dict]) -> float:
    for bracket in brackets:
        end = bracket["end"] if bracket["end"] is not None else float("inf")
        if bracket["start"] <= amount < end:
            return bracket["rate"]
    return brackets[-1]["rate"]


def standard_deduction(
    filing_status: Optional[str] = "single",
    year: int = DEFAULT_TAX_YEAR,
    tax_tables: Optional[Dict[str, Dict]] = None,
) -> float:
    """Flat standard deduction for the filing status."""
    return float(_status_table(filing_status, year, tax_tables).get("standard_deduction", 0.0))


def compute_federal_tax(
    taxable_income: float,
    filing_status: Optional[str] = "single",
    year: int = DEFAULT_TAX_YEAR,
    tax_tables: Optional[Dict[str, Dict]] = None,
) -> float:
    """Compute federal income tax due on ordinary taxable income.

    The tax is calculated progressively using the brackets defined under the
    chosen year and filing status.  No deduction is applied here.
    """
    if taxable_income <= 0:
        return 0.0
    brackets = _status_table(filing_status, year, tax_tables)["brackets"]
    return _ladder_tax(taxable_income, brackets)


def compute_capital_gains_tax(
    gain: float,
    filing_status: Optional[str] = "single",
    year: int = DEFAULT_TAX_YEAR,
    tax_tables: Optional[Dict[str, Dict]] = None,
) -> float:
    """Compute long-term capital gains tax on a given amount of gains."""
    if gain <= 0:
        return 0.0
    cg_brackets = _status_table(filing_status, year, tax_tables).get("cap_gains")
    if not cg_brackets:
        return 0.0
    return _ladder_tax(gain, cg_brackets)


def estimate_marginal_rate(
    ordinary_income: float,
    filing_status: Optional[str] = "single",
    year: int = DEFAULT_TAX_YEAR,
    tax_tables: Optional[Dict[str, Dict]] = None,
) -> float:
    """Marginal ordinary rate for the next dollar above ``ordinary_income``.

    ``ordinary_income`` is gross; the standard deduction is subtracted before
    the bracket lookup.  Only used to size gross-up withdrawals.
    """
    table = _status_table(filing_status, year, tax_tables)
    taxable = max(0.0, ordinary_income - table.get("standard_deduction", 0.0))
    return _bracket_rate(taxable, table["brackets"])


def estimate_capital_gains_rate(
    income: float,
    filing_status: Optional[str] = "single",
    year: int = DEFAULT_TAX_YEAR,
    tax_tables: Optional[Dict[str, Dict]] = None,
) -> float:
    """Long-term gains rate of the bracket ``income`` falls into after the deduction."""
    table = _status_table(filing_status, year, tax_tables)
    cg_brackets = table.get("cap_gains")
    if not cg_brackets:
        return 0.0
    taxable = max(0.0, income - table.get("standard_deduction", 0.0))
    return _bracket_rate(taxable, cg_brackets)


def bracket_ceiling(
    rate: float,
    filing_status: Optional[str] = "single",
    year: int = DEFAULT_TAX_YEAR,
    tax_tables: Optional[Dict[str, Dict]] = None,
) -> float:
    """Upper bound of taxable income taxed at ``rate`` (``inf`` for the top bracket)."""
    for bracket in _status_table(filing_status, year, tax_tables)["brackets"]:
        if abs(bracket["rate"] - rate) < 1e-9:
            return float(bracket["end"]) if bracket["end"] is not None else float("inf")
    raise ConfigurationError(f"no {rate:.0%} bracket for {filing_status!r}")


__all__ = [
    "FILING_STATUSES",
    "bracket_ceiling",
    "compute_capital_gains_tax",
    "compute_federal_tax",
    "estimate_capital_gains_rate",
    "estimate_marginal_rate",
    "normalize_filing_status",
    "standard_deduction",
]
