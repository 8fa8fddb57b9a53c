"""Persistence for collected snapshots."""

from .exporter import export_date_csv, export_json
from .sqlite_store import ApiCallEntry, DataCoverage, SnapshotCache

__all__ = [
    "ApiCallEntry",
    "DataCoverage",
    "SnapshotCache",
    "export_date_csv",
    "export_json",
]
