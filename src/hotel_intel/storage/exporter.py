"""JSON and CSV exports of cached snapshots."""
from __future__ import annotations

import csv
import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Mapping, Optional

from hotel_intel.hotels.models import DateSnapshot

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("Rank", "Hotel Name", "Hotel ID", "Price", "Vendor", "Rating", "Review Count")


def default_export_name(kind: str, day: Optional[str] = None) -> str:
    if kind == "csv":
        return f"hotel-intel-{day}.csv"
    return f"hotel-intel-export-{date.today().isoformat()}.json"


def format_price(price: float) -> str:
    """Cents precision; whole amounts drop the decimals."""
    text = f"{float(price):.2f}"
    return text[:-3] if text.endswith(".00") else text


def export_json(
    snapshots: Mapping[str, DateSnapshot],
    path: Path,
    *,
    last_update: Optional[datetime] = None,
) -> Path:
    """Dump every snapshot, sorted by date, with the export and last-update timestamps."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "last_update": last_update.isoformat() if last_update else None,
        "dates": {day: snapshots[day].to_dict() for day in sorted(snapshots)},
    }
    path.write_text(json.dumps(payload, indent=2))
    logger.info("Exported %s dates to %s", len(snapshots), path)
    return path


def export_date_csv(snapshot: DateSnapshot, path: Path) -> Path:
    """Write one date's market as CSV, ranked cheapest first."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_COLUMNS)
        for rank, quote in enumerate(snapshot.quotes, start=1):
            writer.writerow(
                [
                    rank,
                    quote.name,
                    quote.stable_id or "",
                    format_price(quote.price),
                    quote.vendor or "",
                    "" if quote.rating is None else quote.rating,
                    "" if quote.review_count is None else quote.review_count,
                ]
            )
    logger.info("Exported %s quotes for %s to %s", len(snapshot.quotes), snapshot.date, path)
    return path
