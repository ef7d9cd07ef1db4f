import json
import logging
import math
from collections.abc import Iterable
from pathlib import Path

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from freightdash.dates import try_normalize_day
from freightdash.db_models import TripRow
from freightdash.schemas import TripRecord


logger = logging.getLogger(__name__)

# Column aliases seen in parser exports, first match wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "indent_id": ("indent", "indent_id"),
    "indent_day": ("indent_date", "indent_day"),
    "allocation_day": ("allocation_date", "allocation_day"),
    "range_label": ("range", "range_label"),
    "material": ("material",),
    "units": ("units", "no_of_buckets"),
    "load_kg": ("total_load", "load_kg"),
    "cost": ("total_cost", "cost"),
    "profit_loss": ("profit_loss",),
    "distance_km": ("total_km", "distance_km"),
    "vehicle": ("vehicle_number", "vehicle"),
    "remarks": ("remarks",),
    "month_label": ("freight_tiger_month", "month_label", "month"),
    "location": ("location",),
}


def _pick(raw: dict[str, object], field_name: str) -> object:
    for alias in FIELD_ALIASES[field_name]:
        if alias in raw:
            return raw[alias]
    return None


def parse_number(value: object, *, field_name: str) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    text = str(value).strip().replace(",", "")
    if text in {"", "-", "NA", "N/A"}:
        return 0.0
    try:
        number = float(text)
    except ValueError:
        logger.warning("unparseable number treated as zero", extra={"field": field_name, "value": text[:40]})
        return 0.0
    return number if math.isfinite(number) else 0.0


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def to_trip_record(raw: dict[str, object]) -> TripRecord:
    return TripRecord(
        indent_id=_text(_pick(raw, "indent_id")),
        indent_day=try_normalize_day(_pick(raw, "indent_day"), field_name="indent_date"),
        allocation_day=try_normalize_day(_pick(raw, "allocation_day"), field_name="allocation_date"),
        range_label=_text(_pick(raw, "range_label")),
        material=_text(_pick(raw, "material")),
        units=parse_number(_pick(raw, "units"), field_name="units"),
        load_kg=parse_number(_pick(raw, "load_kg"), field_name="total_load"),
        cost=parse_number(_pick(raw, "cost"), field_name="total_cost"),
        profit_loss=parse_number(_pick(raw, "profit_loss"), field_name="profit_loss"),
        distance_km=parse_number(_pick(raw, "distance_km"), field_name="total_km"),
        vehicle=_text(_pick(raw, "vehicle")),
        remarks=_text(_pick(raw, "remarks")),
        month_label=_text(_pick(raw, "month_label")),
        location=_text(_pick(raw, "location")),
    )


def ingest_records(input_path: Path) -> list[dict[str, object]]:
    if not input_path.exists():
        raise FileNotFoundError(f"input file not found: {input_path}")

    records: list[dict[str, object]] = []
    with input_path.open("r", encoding="utf-8") as infile:
        for line in infile:
            line = line.strip()
            if not line:
                continue
            records.append(json.loads(line))
    return records


def transform_records(raw_records: Iterable[dict[str, object]]) -> list[TripRecord]:
    return [to_trip_record(raw) for raw in raw_records]


def _to_row(record: TripRecord) -> TripRow:
    return TripRow(
        indent=record.indent_id,
        indent_day=record.indent_day,
        allocation_day=record.allocation_day,
        range_label=record.range_label,
        material=record.material,
        units=record.units,
        load_kg=record.load_kg,
        cost=record.cost,
        profit_loss=record.profit_loss,
        distance_km=record.distance_km,
        vehicle=record.vehicle,
        remarks=record.remarks,
        month_label=record.month_label,
        location=record.location,
    )


def _from_row(row: TripRow) -> TripRecord:
    return TripRecord(
        indent_id=row.indent,
        indent_day=row.indent_day,
        allocation_day=row.allocation_day,
        range_label=row.range_label,
        material=row.material,
        units=row.units,
        load_kg=row.load_kg,
        cost=row.cost,
        profit_loss=row.profit_loss,
        distance_km=row.distance_km,
        vehicle=row.vehicle,
        remarks=row.remarks,
        month_label=row.month_label,
        location=row.location,
    )


def replace_records(db: Session, records: Iterable[TripRecord]) -> int:
    """Swap the stored dataset for ``records`` in one transaction."""
    db.execute(delete(TripRow))
    rows = [_to_row(record) for record in records]
    db.add_all(rows)
    db.commit()
    return len(rows)


def load_records(db: Session) -> list[TripRecord]:
    rows = db.execute(select(TripRow).order_by(TripRow.id)).scalars().all()
    return [_from_row(row) for row in rows]


class DatabaseRecordSource:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def __call__(self) -> list[TripRecord]:
        with self.session_factory() as db:
            return load_records(db)
