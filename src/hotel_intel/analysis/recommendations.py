"""Rule-of-thumb pricing advice derived from market position."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .analytics import AnalyticsEngine, round_currency

LOW_PERCENTILE = 20.0
HIGH_PERCENTILE = 80.0
PRICE_ELASTICITY = -1.5
SCENARIO_ADJUSTMENTS = (
    ("Current", 0.0),
    ("-10%", -0.10),
    ("-5%", -0.05),
    ("+5%", 0.05),
    ("+10%", 0.10),
)


@dataclass(frozen=True)
class PricingRecommendation:
    hotel: str
    current_price: float
    suggestion: str
    suggested_price: float
    reason: str


@dataclass(frozen=True)
class RevenueScenario:
    label: str
    rate: float
    occupancy: float
    revenue: float
    difference: float

    def to_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "rate": round(self.rate, 2),
            "occupancy_pct": round_currency(self.occupancy * 100),
            "revenue": round_currency(self.revenue),
            "difference": round_currency(self.difference),
        }


def pricing_recommendations(engine: AnalyticsEngine, day: str) -> Optional[List[PricingRecommendation]]:
    """Suggest a price move for each own property quoted on ``day``.

    Properties priced in the cheapest fifth of the market are nudged up 5%;
    those in the most expensive fifth are pointed at 110% of the market
    average. Returns ``None`` when the date has no data or no own quotes.
    """
    stats = engine.date_stats(day)
    if stats is None:
        return None
    positions = [
        (entry, entry.quote, entry.percentile)
        for entry in engine.own_property_positions(day)
        if entry.quote is not None and entry.percentile is not None
    ]
    if not positions:
        return None

    recommendations: List[PricingRecommendation] = []
    for entry, quote, percentile in positions:
        if percentile < LOW_PERCENTILE:
            recommendations.append(
                PricingRecommendation(
                    hotel=quote.name,
                    current_price=quote.price,
                    suggestion="Consider increasing",
                    suggested_price=float(round_currency(quote.price * 1.05)),
                    reason=(
                        "Currently in the lowest 20% of market prices. "
                        f"Market average is ${round_currency(stats.average)}."
                    ),
                )
            )
        elif percentile > HIGH_PERCENTILE:
            recommendations.append(
                PricingRecommendation(
                    hotel=quote.name,
                    current_price=quote.price,
                    suggestion="Consider reviewing",
                    suggested_price=float(round_currency(stats.average * 1.1)),
                    reason="Currently in the highest 20% of market prices. May impact occupancy.",
                )
            )
        else:
            recommendations.append(
                PricingRecommendation(
                    hotel=quote.name,
                    current_price=quote.price,
                    suggestion="Well positioned",
                    suggested_price=quote.price,
                    reason=f"Competitively positioned at rank #{entry.position} of {stats.count} hotels.",
                )
            )
    return recommendations


def revenue_scenarios(rooms: int, rate: float, occupancy_pct: float, days: int) -> List[RevenueScenario]:
    """Project revenue for rate moves of -10%..+10% under a fixed price elasticity."""
    if rooms <= 0 or rate <= 0 or days <= 0:
        raise ValueError("rooms, rate and days must be positive")
    if not 0 <= occupancy_pct <= 100:
        raise ValueError("occupancy_pct must be between 0 and 100")
    occupancy = occupancy_pct / 100
    baseline = rooms * rate * occupancy * days
    scenarios: List[RevenueScenario] = []
    for label, adjustment in SCENARIO_ADJUSTMENTS:
        scenario_rate = rate * (1 + adjustment)
        adjusted = max(0.1, min(1.0, occupancy + adjustment * PRICE_ELASTICITY))
        revenue = rooms * scenario_rate * adjusted * days
        scenarios.append(
            RevenueScenario(
                label=label,
                rate=scenario_rate,
                occupancy=adjusted,
                revenue=revenue,
                difference=revenue - baseline,
            )
        )
    return scenarios
