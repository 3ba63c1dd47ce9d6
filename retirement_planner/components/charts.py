# components/charts.py
# Plotly chart helpers for projection and Monte Carlo output.
# All functions return a Plotly Figure.

from typing import Sequence

import plotly.graph_objects as go

from ..calculators.monte_carlo import MonteCarloResult
from ..models import ProjectionDetail
from .ledger import DISTRIBUTION_COLUMNS, balances_frame, ledger_frame

_LAYOUT = dict(
    template="plotly_white",
    height=380,
    margin=dict(l=10, r=10, t=40, b=10),
    legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
)


# ---------- Account balances (stacked) ----------
def account_area_chart(rows: Sequence[ProjectionDetail],
                       title: str = "Account Balances") -> go.Figure:
    frame = balances_frame(rows)
    fig = go.Figure()
    for category in frame.columns:
        fig.add_trace(go.Scatter(
            x=list(frame.index), y=list(frame[category]), mode="lines", name=category,
            stackgroup="one",
            hovertemplate="Age %{x}<br>$%{y:,.0f}<extra></extra>"
        ))
    fig.update_layout(title=title, xaxis_title="Age", yaxis_title="Dollars (nominal)", **_LAYOUT)
    return fig


# ---------- Cash flow ----------
def cash_flow_chart(rows: Sequence[ProjectionDetail],
                    title: str = "Cash Flow") -> go.Figure:
    """After-tax income and expenses as lines, gap/excess as bars."""
    frame = ledger_frame(rows)
    ages = list(frame.get("age", []))
    fig = go.Figure()
    if not frame.empty:
        fig.add_bar(x=ages, y=list(frame["gap_excess"]), name="Gap / excess",
                    marker_color=["#ef4444" if v < 0 else "#22c55e" for v in frame["gap_excess"]])
        fig.add_trace(go.Scatter(x=ages, y=list(frame["after_tax_income"]), mode="lines",
                                 name="After-tax income"))
        fig.add_trace(go.Scatter(x=ages, y=list(frame["total_expenses"]), mode="lines",
                                 name="Expenses"))
    fig.update_layout(title=title, xaxis_title="Age", yaxis_title="Dollars (nominal)", **_LAYOUT)
    return fig


# ---------- Taxes over time (stacked bars) ----------
def tax_chart(rows: Sequence[ProjectionDetail],
              title: str = "Taxes Over Time") -> go.Figure:
    """Stacked bars of income tax, capital gains tax and conversion tax."""
    frame = ledger_frame(rows)
    ages = list(frame.get("age", []))
    fig = go.Figure()
    for column, name in (("income_tax", "Ordinary"),
                         ("capital_gains_tax", "Cap gains"),
                         ("conversion_tax", "Roth conversion")):
        fig.add_bar(x=ages, y=list(frame.get(column, [])), name=name)
    fig.update_layout(barmode="stack", title=title, xaxis_title="Age",
                      yaxis_title="Dollars (nominal)", **_LAYOUT)
    return fig


# ---------- Withdrawals by account (stacked bars) ----------
def distribution_chart(rows: Sequence[ProjectionDetail],
                       title: str = "Withdrawals by Account") -> go.Figure:
    frame = ledger_frame(rows)
    ages = list(frame.get("age", []))
    fig = go.Figure()
    for column, name in DISTRIBUTION_COLUMNS.items():
        fig.add_bar(x=ages, y=list(frame.get(column, [])), name=name)
    fig.update_layout(barmode="stack", title=title, xaxis_title="Age",
                      yaxis_title="Dollars (nominal)", **_LAYOUT)
    return fig


# ---------- Monte Carlo outcomes ----------
def final_networth_histogram(result: MonteCarloResult,
                             title: str = "Final Net Worth Across Runs") -> go.Figure:
    finals = [run.final_net_worth for run in result.runs]
    fig = go.Figure(go.Histogram(x=finals, nbinsx=40, name="Runs",
                                 hovertemplate="$%{x:,.0f}<br>%{y} runs<extra></extra>"))
    median = result.summary.median_final_net_worth
    fig.add_vline(x=median, line_dash="dash", annotation_text="Median")
    fig.update_layout(title=title, xaxis_title="Final net worth", yaxis_title="Runs", **_LAYOUT)
    return fig


def success_gauge(success_rate: float) -> go.Figure:
    """Gauge of the Monte Carlo success rate, given in percent."""
    pct = max(0.0, min(100.0, float(success_rate)))  # clamp 0–100
    fig = go.Figure(go.Indicator(
        mode="gauge+number",
        value=round(pct, 1),
        number={"suffix": "%"},
        gauge={
            "axis": {"range": [0, 100]},
            "bar": {"thickness": 0.35},
            "steps": [
                {"range": [0, 60],  "color": "#ef4444"},  # red-500
                {"range": [60, 80], "color": "#f59e0b"},  # amber-500
                {"range": [80, 100], "color": "#22c55e"},  # green-500
            ],
        }
    ))
    fig.update_layout(template="plotly_white", height=220, margin=dict(l=10, r=10, t=10, b=10))
    return fig
