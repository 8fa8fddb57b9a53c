from __future__ import annotations

import pytest

from hotel_intel.analysis import AnalyticsEngine, pricing_recommendations, revenue_scenarios
from hotel_intel.hotels import DateSnapshot, HotelQuote, OwnProperty, PropertyMatcher

MATCHER = PropertyMatcher(own_properties=[OwnProperty(name="Riviera Motel", aliases=("riviera",))])


def _engine(prices: dict[str, float]) -> AnalyticsEngine:
    snapshot = DateSnapshot(
        date="2026-05-01",
        quotes=[HotelQuote(name=name, price=price) for name, price in prices.items()],
    )
    return AnalyticsEngine({snapshot.date: snapshot}, MATCHER)


def _market(own_price: float) -> dict[str, float]:
    prices = {f"Hotel {index}": 100.0 + index * 10 for index in range(9)}
    prices["Riviera Motel"] = own_price
    return prices


def test_cheapest_fifth_suggests_increase():
    recommendations = pricing_recommendations(_engine(_market(60)), "2026-05-01")

    assert recommendations is not None
    (item,) = recommendations
    assert item.suggestion == "Consider increasing"
    assert item.suggested_price == 63
    assert "lowest 20%" in item.reason


def test_most_expensive_fifth_points_at_market_average():
    engine = _engine(_market(500))
    stats = engine.date_stats("2026-05-01")

    (item,) = pricing_recommendations(engine, "2026-05-01")

    assert item.suggestion == "Consider reviewing"
    assert item.suggested_price == round(stats.average * 1.1)


def test_middle_of_market_is_well_positioned():
    (item,) = pricing_recommendations(_engine(_market(145)), "2026-05-01")

    assert item.suggestion == "Well positioned"
    assert item.suggested_price == 145
    assert "rank #6 of 10" in item.reason


def test_no_recommendations_without_own_quotes():
    assert pricing_recommendations(_engine({"Other Inn": 100}), "2026-05-01") is None
    assert pricing_recommendations(_engine({"Other Inn": 100}), "2026-06-01") is None


def test_revenue_scenarios_apply_elasticity_and_clamp():
    scenarios = {scenario.label: scenario for scenario in revenue_scenarios(20, 100, 80, 30)}

    current = scenarios["Current"]
    assert current.revenue == pytest.approx(20 * 100 * 0.8 * 30)
    assert current.difference == pytest.approx(0)

    cheaper = scenarios["-10%"]
    assert cheaper.occupancy == pytest.approx(0.95)
    assert cheaper.rate == pytest.approx(90)

    modest = scenarios["-5%"]
    assert modest.occupancy == pytest.approx(0.875)

    pricier = scenarios["+10%"].to_dict()
    assert pricier["occupancy_pct"] == 65
    assert pricier["revenue"] == 42900

    full = {s.label: s for s in revenue_scenarios(10, 100, 95, 1)}
    assert full["-10%"].occupancy == 1.0


def test_revenue_scenarios_validate_inputs():
    with pytest.raises(ValueError):
        revenue_scenarios(0, 100, 50, 30)
    with pytest.raises(ValueError):
        revenue_scenarios(10, 100, 150, 30)
