"""pandas views of projection and Monte Carlo output."""

from __future__ import annotations

from dataclasses import asdict
from typing import Sequence

import pandas as pd

from ..calculators.monte_carlo import MonteCarloResult
from ..models import ProjectionDetail

BALANCE_COLUMNS = {
    "balance_401k": "401k",
    "balance_ira": "IRA",
    "balance_roth": "RothIRA",
    "balance_investment": "Taxable",
    "balance_hsa": "HSA",
    "balance_other_investments": "Other",
}

DISTRIBUTION_COLUMNS = {
    "distribution_401k": "401k",
    "distribution_ira": "IRA",
    "distribution_roth": "RothIRA",
    "distribution_taxable": "Taxable",
    "distribution_hsa": "HSA",
    "distribution_other": "Other",
}


def ledger_frame(rows: Sequence[ProjectionDetail]) -> pd.DataFrame:
    """One row per projection year, indexed by ``year``.

    Enum columns hold their string values so the frame serializes cleanly.
    """
    if not rows:
        return pd.DataFrame(columns=["age"]).rename_axis("year")
    frame = pd.DataFrame([row.to_record() for row in rows])
    frame["total_distributions"] = frame[list(DISTRIBUTION_COLUMNS)].sum(axis=1)
    return frame.set_index("year")


def balances_frame(rows: Sequence[ProjectionDetail]) -> pd.DataFrame:
    """Ending balance per account category, indexed by age."""
    frame = ledger_frame(rows)
    if frame.empty:
        return pd.DataFrame(columns=list(BALANCE_COLUMNS.values()))
    return frame.set_index("age")[list(BALANCE_COLUMNS)].rename(columns=BALANCE_COLUMNS)


def runs_frame(result: MonteCarloResult) -> pd.DataFrame:
    """Per-run Monte Carlo outcomes, indexed by run number."""
    return pd.DataFrame([asdict(run) for run in result.runs]).set_index("run")


__all__ = ["BALANCE_COLUMNS", "DISTRIBUTION_COLUMNS", "balances_frame", "ledger_frame", "runs_frame"]
