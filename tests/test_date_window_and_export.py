from __future__ import annotations

import csv
import json
from datetime import date, datetime, timezone

import pytest

from hotel_intel.hotels import DateSnapshot, HotelQuote
from hotel_intel.storage import export_date_csv, export_json
from hotel_intel.tasks.date_window import collection_window, dates_in_month, missing_dates, month_sequence


def test_dates_in_month_handles_leap_years():
    assert len(dates_in_month(2028, 2)) == 29
    assert dates_in_month(2026, 2)[-1] == "2026-02-28"


def test_collection_window_rolls_over_year():
    assert month_sequence(11, 2026, 3) == [(2026, 11), (2026, 12), (2027, 1)]

    window = collection_window(11, 2026, 3)
    assert window[0] == "2026-11-01"
    assert window[-1] == "2027-01-31"
    assert len(window) == 30 + 31 + 31

    trimmed = collection_window(5, 2026, 1, not_before=date(2026, 5, 30))
    assert trimmed == ["2026-05-30", "2026-05-31"]

    with pytest.raises(ValueError):
        collection_window(13, 2026, 1)


def test_missing_dates_preserves_request_order():
    assert missing_dates(["2026-05-03", "2026-05-01", "2026-05-02"], ["2026-05-01"]) == [
        "2026-05-03",
        "2026-05-02",
    ]


def _snapshot() -> DateSnapshot:
    return DateSnapshot(
        date="2026-05-01",
        quotes=[
            HotelQuote(name="Other Inn", stable_id="2", price=100, vendor="Agoda", rating=4.2, review_count=310),
            HotelQuote(name="Riviera Motel", stable_id="1", price=80, vendor="Expedia"),
        ],
    )


def test_export_date_csv_ranks_by_price(tmp_path):
    target = export_date_csv(_snapshot(), tmp_path / "exports" / "day.csv")

    with target.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))

    assert rows[0] == ["Rank", "Hotel Name", "Hotel ID", "Price", "Vendor", "Rating", "Review Count"]
    assert rows[1] == ["1", "Riviera Motel", "1", "80", "Expedia", "", ""]
    assert rows[2] == ["2", "Other Inn", "2", "100", "Agoda", "4.2", "310"]


def test_export_json_includes_timestamps(tmp_path):
    last_update = datetime(2026, 5, 2, 8, 30, tzinfo=timezone.utc)

    target = export_json({"2026-05-01": _snapshot()}, tmp_path / "all.json", last_update=last_update)

    payload = json.loads(target.read_text())
    assert payload["last_update"] == last_update.isoformat()
    assert payload["exported_at"]
    assert [quote["name"] for quote in payload["dates"]["2026-05-01"]["quotes"]] == ["Riviera Motel", "Other Inn"]


def test_export_date_csv_keeps_full_price_precision(tmp_path):
    snapshot = DateSnapshot(
        date="2026-07-04",
        quotes=[
            HotelQuote(name="Grand Lakefront Suites", price=12345.67),
            HotelQuote(name="Harbor Lodge", price=149.5),
        ],
    )

    target = export_date_csv(snapshot, tmp_path / "day.csv")

    with target.open(newline="", encoding="utf-8") as handle:
        prices = [row[3] for row in csv.reader(handle)][1:]
    assert prices == ["149.50", "12345.67"]
