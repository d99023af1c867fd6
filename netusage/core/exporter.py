"""
Daily usage export.

Turns a time range into daily rows in megabytes and serializes them as
CSV to a stream supplied by the caller. This module never opens files.
"""

import csv
from dataclasses import dataclass
from typing import Iterable, List, TextIO

from netusage.errors import ExportFailed
from netusage.storage.repository import UsageStore

BYTES_PER_MB = 1024 * 1024

CSV_HEADER = ["Date", "Download_MB", "Upload_MB", "Total_MB"]


@dataclass(frozen=True)
class ExportRow:
    """One exported day."""
    date: str
    download_mb: float
    upload_mb: float
    total_mb: float


def export(store: UsageStore, start: int, end: int) -> List[ExportRow]:
    """Build one row per local calendar day with usage in [start, end].

    Days without samples are omitted.
    """
    rows = []
    for day in store.query_daily_rollup(start, end):
        download_mb = day.download_bytes / BYTES_PER_MB
        upload_mb = day.upload_bytes / BYTES_PER_MB
        rows.append(ExportRow(
            date=day.day.isoformat(),
            download_mb=download_mb,
            upload_mb=upload_mb,
            total_mb=download_mb + upload_mb
        ))
    return rows


def write_csv(rows: Iterable[ExportRow], stream: TextIO) -> int:
    """Write rows as CSV with two decimal places and return the row count.

    Raises:
        ExportFailed: If the stream cannot be written
    """
    count = 0
    try:
        writer = csv.writer(stream, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for row in rows:
            writer.writerow([
                row.date,
                f"{row.download_mb:.2f}",
                f"{row.upload_mb:.2f}",
                f"{row.total_mb:.2f}",
            ])
            count += 1
    except (OSError, ValueError) as e:
        raise ExportFailed(f"Cannot write export: {e}") from e
    return count
