"""CSV ingestion of multi-channel sensor readings."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from models.records import SENSOR_CHANNELS, SensorReading

logger = logging.getLogger(__name__)

_SCORE_COLUMNS = ("anomaly_score", "quality_score")


class IngestStatus(str, Enum):
    processed = "processed"
    partial = "partial"
    failed = "failed"


@dataclass
class RowError:
    row_number: int
    reason: str


@dataclass
class IngestResult:
    status: IngestStatus
    readings: List[SensorReading] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)


def parse_timestamp(value: str) -> datetime:
    """ISO-8601 timestamp; naive values stay naive (reporting-local time)."""
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc


def _parse_optional_float(raw: Optional[str]) -> Optional[float]:
    candidate = (raw or "").strip()
    if not candidate or candidate.lower() in {"null", "none", "nan"}:
        return None
    return float(candidate)


def parse_readings_csv(contents: bytes) -> IngestResult:
    """Parse an uploaded CSV, collecting row errors instead of aborting."""
    if not contents:
        raise ValueError("Uploaded file is empty.")

    reader = csv.DictReader(io.StringIO(contents.decode("utf-8")))
    if not reader.fieldnames:
        raise ValueError("CSV file is missing a header row.")

    normalized = {name.lower().strip(): name for name in reader.fieldnames}
    missing = sorted({"timestamp", "location"} - normalized.keys())
    if missing:
        raise ValueError(f"CSV missing required columns: {', '.join(missing)}")

    numeric_columns = [
        column for column in (*SENSOR_CHANNELS, *_SCORE_COLUMNS) if column in normalized
    ]
    readings: List[SensorReading] = []
    errors: List[RowError] = []

    for row_number, row in enumerate(reader, start=2):
        timestamp_raw = (row.get(normalized["timestamp"]) or "").strip()
        location = (row.get(normalized["location"]) or "").strip() or "main"

        if not timestamp_raw:
            errors.append(RowError(row_number=row_number, reason="missing timestamp"))
            continue
        try:
            timestamp = parse_timestamp(timestamp_raw)
        except ValueError:
            errors.append(RowError(row_number=row_number, reason="invalid timestamp"))
            continue

        values: Dict[str, Optional[float]] = {}
        try:
            for column in numeric_columns:
                values[column] = _parse_optional_float(row.get(normalized[column]))
        except ValueError:
            errors.append(RowError(row_number=row_number, reason="invalid numeric value"))
            continue

        readings.append(SensorReading(timestamp=timestamp, location=location, **values))

    if not readings and errors:
        status = IngestStatus.failed
    elif errors:
        status = IngestStatus.partial
    else:
        status = IngestStatus.processed

    logger.info(
        "Parsed readings upload",
        extra={"row_count": len(readings), "error_count": len(errors), "state": status.value},
    )
    return IngestResult(status=status, readings=readings, errors=errors)
