"""
Flattened tabular export of persisted weather records.

CSV keeps a fixed column order; XLSX carries the same columns with a styled
header row. JSON keeps the full records plus the analytics history.
"""

import csv
import io
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from home_weather.models import AnalyticsRecord, PersistedRecord

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Location", "Timestamp", "Temperature", "Condition", "Humidity",
    "Wind Speed", "Pressure", "PM2.5", "PM10",
]

EXPORT_FORMATS = ("json", "csv", "xlsx")


def record_row(record: PersistedRecord) -> Dict[str, Any]:
    """One flat row per record; missing readings stay None."""
    current = record.snapshot.current
    aq = record.snapshot.air_quality
    return {
        "Location": record.location,
        "Timestamp": record.stored_at.isoformat(),
        "Temperature": current.temperature if current else None,
        "Condition": current.condition if current else None,
        "Humidity": current.humidity if current else None,
        "Wind Speed": current.wind_speed if current else None,
        "Pressure": current.pressure if current else None,
        "PM2.5": aq.pm2_5 if aq else None,
        "PM10": aq.pm10 if aq else None,
    }


def records_to_frame(records: Iterable[PersistedRecord]) -> pd.DataFrame:
    rows = [record_row(r) for r in records]
    # object dtype keeps ints as ints and None as None
    return pd.DataFrame(rows, columns=CSV_COLUMNS, dtype=object)


def to_csv(records: List[PersistedRecord]) -> bytes:
    if not records:
        return b""
    frame = records_to_frame(records)
    text = frame.to_csv(index=False, quoting=csv.QUOTE_ALL, na_rep="", lineterminator="\n")
    return text.rstrip("\n").encode("utf-8")


def to_json(
    records: List[PersistedRecord],
    analytics: List[AnalyticsRecord],
    location: Optional[str],
    export_date: datetime,
) -> bytes:
    payload = {
        "weather_data": [r.to_dict() for r in records],
        "analytics": [a.to_dict() for a in analytics],
        "export_date": export_date.isoformat(),
        "total_entries": len(records),
        "location": location,
    }
    return json.dumps(payload, indent=2, default=str).encode("utf-8")


def to_xlsx(records: List[PersistedRecord]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Weather"

    header_fill = PatternFill(start_color="003C78", end_color="003C78", fill_type="solid")
    header_font = Font(bold=True, size=10, color="FFFFFF")

    for col, name in enumerate(CSV_COLUMNS, start=1):
        cell = ws.cell(row=1, column=col, value=name)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
        ws.column_dimensions[get_column_letter(col)].width = max(12, len(name) + 2)
    ws.column_dimensions["B"].width = 28

    for row_num, record in enumerate(records, start=2):
        row = record_row(record)
        for col, name in enumerate(CSV_COLUMNS, start=1):
            ws.cell(row=row_num, column=col, value=row[name])

    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_records(
    records: List[PersistedRecord],
    analytics: List[AnalyticsRecord],
    fmt: str,
    location: Optional[str],
    export_date: datetime,
) -> bytes:
    """
    Serialize records in one of EXPORT_FORMATS.

    Raises:
        ValueError: unknown format
    """
    fmt = fmt.lower()
    logger.info(f"[export] {len(records)} records as {fmt} (location={location or 'all'})")
    if fmt == "csv":
        return to_csv(records)
    if fmt == "xlsx":
        return to_xlsx(records)
    if fmt == "json":
        return to_json(records, analytics, location, export_date)
    raise ValueError(f"Unsupported export format {fmt!r}; expected one of {EXPORT_FORMATS}")
