from typing import Optional

from ..calculators.monte_carlo import MonteCarloSummary, SequenceRiskAnalysis


def generate_insights(summary: MonteCarloSummary,
                      terminal_age: int,
                      sequence_risk: Optional[SequenceRiskAnalysis] = None) -> str:
    """Return a short rule-based insight about Monte Carlo results."""
    success = summary.success_rate
    if success >= 85:
        outlook = "high chance of success"
    elif success >= 60:
        outlook = "moderate chance of success"
    else:
        outlook = "plan may be at risk"

    text = (
        f"Your plan has a {outlook} ({success:.1f}% of runs). Median projected net worth "
        f"at age {terminal_age} is ${summary.median_final_net_worth:,.0f}."
    )
    if summary.average_negative_years >= 1:
        text += f" On average {summary.average_negative_years:.1f} years run a cash shortfall."
    if sequence_risk is not None and sequence_risk.risk_level != "Low":
        text += f" {sequence_risk.description}"
    return text
