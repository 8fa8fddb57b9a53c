from __future__ import annotations

import pytest

from hotel_intel.analysis import AnalyticsEngine, percent_change
from hotel_intel.hotels import DateSnapshot, HotelQuote, OwnProperty, PropertyMatcher

MATCHER = PropertyMatcher(
    own_properties=[
        OwnProperty(name="Riviera Motel", aliases=("riviera",)),
        OwnProperty(name="American Boutique Inn", aliases=("american boutique",)),
    ],
    tracked_competitors=["Super 8"],
)


def _snap(day: str, *pairs: tuple[str, float]) -> DateSnapshot:
    return DateSnapshot(date=day, quotes=[HotelQuote(name=name, price=price) for name, price in pairs])


def _engine(*snapshots: DateSnapshot) -> AnalyticsEngine:
    return AnalyticsEngine({snapshot.date: snapshot for snapshot in snapshots}, MATCHER)


def test_date_stats_scenario():
    engine = _engine(_snap("2026-05-01", ("A", 100), ("B", 60), ("C", 80)))

    stats = engine.date_stats("2026-05-01")

    assert stats is not None
    assert (stats.lowest, stats.highest, stats.average, stats.median, stats.spread) == (60, 100, 80, 80, 40)
    assert stats.count == 3
    assert stats.lowest_quote.name == "B"
    assert stats.highest_quote.name == "A"


def test_date_stats_even_count_takes_middle_index_without_averaging():
    engine = _engine(_snap("2026-05-01", ("A", 60), ("B", 80), ("C", 100), ("D", 120)))

    stats = engine.date_stats("2026-05-01")

    assert stats is not None
    assert stats.median == 100


def test_date_stats_absent_without_data():
    engine = _engine(_snap("2026-05-01", ("A", 60)))

    assert engine.date_stats("2026-05-09") is None


def test_market_position_rank_and_absence():
    engine = _engine(
        _snap("2026-05-01", ("Other Inn", 100), ("The Riviera Motel & Suites", 92), ("Cheap Stay", 50)),
        _snap("2026-05-02", ("Riviera Motel", 80)),
    )

    assert engine.market_position("2026-05-01", "Riviera Motel") == 2
    assert engine.market_position("2026-05-02", "Riviera Motel") == 1
    assert engine.market_position("2026-05-01", "American Boutique Inn") is None
    assert engine.market_position("2026-05-03", "Riviera Motel") is None


def test_own_property_positions_reports_each_property():
    engine = _engine(_snap("2026-05-01", ("Riviera Motel", 80), ("Other Inn", 100), ("Bayside", 120)))

    positions = {entry.property_name: entry for entry in engine.own_property_positions("2026-05-01")}

    assert positions["Riviera Motel"].position == 1
    assert positions["Riviera Motel"].market_size == 3
    assert positions["American Boutique Inn"].position is None
    assert positions["American Boutique Inn"].quote is None


def test_rate_changes_scenario():
    engine = _engine(
        _snap("2026-05-01", ("Riviera Motel", 80), ("Other Inn", 100)),
        _snap("2026-05-02", ("Riviera Motel", 92), ("Other Inn", 100)),
    )

    changes = engine.rate_changes("2026-05-01", "2026-05-02")

    assert len(changes) == 1
    change = changes[0]
    assert (change.name, change.old_price, change.new_price, change.percent_change) == ("Riviera Motel", 80, 92, 15.0)
    assert change.is_own


def test_rate_changes_sorted_by_magnitude_and_paired_by_name():
    engine = _engine(
        _snap("2026-05-01", ("A", 100), ("B", 100), ("C", 100), ("Gone", 90)),
        _snap("2026-05-02", ("a ", 95), ("B", 130), ("C", 80), ("New", 70)),
    )

    changes = engine.rate_changes("2026-05-01", "2026-05-02")

    assert [change.percent_change for change in changes] == [30.0, -20.0, -5.0]
    assert changes[2].name == "a "


def test_percent_change_rounds_half_up():
    assert percent_change(80, 92) == 15.0
    assert percent_change(3, 4) == 33.3
    assert percent_change(1000, 1002.5) == 0.3
    assert percent_change(0, 10) is None


def test_price_alerts_flag_large_moves_in_recent_window():
    engine = _engine(
        _snap("2026-05-01", ("Super 8", 50)),
        _snap("2026-05-02", ("Super 8", 100), ("Other Inn", 100)),
        _snap("2026-05-03", ("Super 8", 110), ("Other Inn", 85)),
        _snap("2026-05-04", ("Super 8", 110), ("Other Inn", 100)),
    )

    alerts = engine.price_alerts(window=3, threshold_pct=15.0)

    assert [(alert.name, alert.from_date, alert.percent_change) for alert in alerts] == [
        ("Other Inn", "2026-05-02", -15.0),
        ("Other Inn", "2026-05-03", 17.6),
    ]
    assert alerts[0].direction == "down"


def test_price_alerts_compare_unrounded_moves():
    engine = _engine(
        _snap("2026-05-01", ("A", 100.0)),
        _snap("2026-05-02", ("A", 114.96)),
    )

    assert engine.rate_changes("2026-05-01", "2026-05-02")[0].percent_change == 15.0
    assert engine.price_alerts(window=7) == []


def test_rate_changes_order_by_unrounded_magnitude():
    engine = _engine(
        _snap("2026-05-01", ("A", 1000.0), ("B", 1000.0)),
        _snap("2026-05-02", ("A", 1000.4), ("B", 1000.6)),
    )

    changes = engine.rate_changes("2026-05-01", "2026-05-02")

    assert [change.name for change in changes] == ["B", "A"]
    assert [change.percent_change for change in changes] == [0.1, 0.0]


def test_high_demand_dates_above_ratio_sorted_and_capped():
    snapshots = [_snap(f"2026-05-{day:02d}", ("A", 100)) for day in range(1, 9)]
    snapshots.append(_snap("2026-05-09", ("A", 200)))
    snapshots.append(_snap("2026-05-10", ("A", 180)))
    engine = _engine(*snapshots)

    demand = engine.high_demand_dates(top_n=1)

    assert [item.date for item in demand] == ["2026-05-09"]
    assert demand[0].ratio == pytest.approx(200 / 118)
    assert [item.date for item in engine.high_demand_dates()] == ["2026-05-09", "2026-05-10"]


def test_month_summary_and_comparison():
    engine = _engine(
        _snap("2026-05-01", ("Riviera Motel", 80), ("Other Inn", 120)),
        _snap("2026-05-02", ("Riviera Motel", 100), ("Other Inn", 140)),
        _snap("2026-06-01", ("Riviera Motel", 110), ("Other Inn", 150)),
    )

    may = engine.month_summary(2026, 5)
    assert may is not None
    assert may.days_with_data == 2
    assert may.market_average == 110
    assert may.own_average == 90
    assert (may.lowest_rate, may.highest_rate) == (80, 140)
    assert engine.month_summary(2026, 7) is None

    comparison = engine.compare_months((2026, 5), (2026, 6))
    assert comparison is not None
    assert comparison.market_average_change == 18.2
    assert comparison.own_average_change == 22.2


def test_trend_and_position_series_respect_limits():
    engine = _engine(
        _snap("2026-05-01", ("Riviera Motel", 80), ("Other Inn", 120)),
        _snap("2026-05-02", ("Riviera Motel", 130), ("Other Inn", 120)),
        _snap("2026-05-03", ("Other Inn", 120)),
    )

    trend = engine.trend_series(limit=2)
    assert [point.date for point in trend] == ["2026-05-02", "2026-05-03"]
    assert trend[0].own_average == 130
    assert trend[1].own_average is None

    series = engine.position_series(limit=31)
    assert series.dates == ["2026-05-01", "2026-05-02", "2026-05-03"]
    assert series.ranks["Riviera Motel"] == [1, 2, None]


def test_price_distribution_bins():
    engine = _engine(_snap("2026-05-01", ("Riviera Motel", 80), ("B", 99), ("C", 125), ("D", 140)))

    bins = engine.price_distribution("2026-05-01", bin_width=25)

    assert [(item.lower, item.upper, item.count) for item in bins] == [(75, 100, 2), (100, 125, 0), (125, 150, 2)]
    assert [item.contains_own for item in bins] == [True, False, False]
    assert engine.price_distribution("2026-06-01") == []


def test_engine_does_not_mutate_snapshots():
    snapshot = _snap("2026-05-01", ("Riviera Motel", 80), ("Other Inn", 100))
    before = snapshot.to_dict()
    engine = _engine(snapshot)

    engine.date_stats("2026-05-01")
    engine.own_property_positions("2026-05-01")
    engine.price_distribution("2026-05-01")

    assert snapshot.to_dict() == before
