"""AI Agents package."""

from fintrack.agents.advisor import (
    NO_RECENT_DATA_ANALYSIS,
    AdvisorServiceError,
    FinancialAdvisorAgent,
)

__all__ = [
    "NO_RECENT_DATA_ANALYSIS",
    "AdvisorServiceError",
    "FinancialAdvisorAgent",
]
