"""Read-only analytics over cached snapshots."""

from .analytics import (
    AnalyticsEngine,
    DemandDate,
    DerivedStats,
    MonthSummary,
    OwnPropertyPosition,
    PriceAlert,
    RateChange,
    percent_change,
    raw_percent_change,
)
from .recommendations import pricing_recommendations, revenue_scenarios

__all__ = [
    "AnalyticsEngine",
    "DemandDate",
    "DerivedStats",
    "MonthSummary",
    "OwnPropertyPosition",
    "PriceAlert",
    "RateChange",
    "percent_change",
    "raw_percent_change",
    "pricing_recommendations",
    "revenue_scenarios",
]
