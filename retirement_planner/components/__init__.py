"""Expose component submodules for convenience."""

from .charts import (
    account_area_chart,
    cash_flow_chart,
    distribution_chart,
    final_networth_histogram,
    success_gauge,
    tax_chart,
)
from .insights import generate_insights
from .ledger import balances_frame, ledger_frame, runs_frame

__all__ = [
    "account_area_chart",
    "balances_frame",
    "cash_flow_chart",
    "distribution_chart",
    "final_networth_histogram",
    "generate_insights",
    "ledger_frame",
    "runs_frame",
    "success_gauge",
    "tax_chart",
]
