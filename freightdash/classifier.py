from collections.abc import Iterable
import logging

from freightdash.constants import BARREL_MATERIAL, BUCKET_MATERIAL, TAXONOMY
from freightdash.dates import resolve_month_key, window_months
from freightdash.schemas import ClassificationResult, DayWindow, TripRecord


logger = logging.getLogger(__name__)


def indent_id(record: TripRecord) -> str:
    return (record.indent_id or "").strip()


def range_label(record: TripRecord) -> str:
    return (record.range_label or "").strip()


def material_kind(record: TripRecord) -> str:
    return (record.material or "").strip()


def material_units(record: TripRecord) -> float:
    """Units that count toward material totals; non-positive counts add nothing."""
    units = record.units or 0
    return units if units > 0 else 0


def bucket_units(record: TripRecord) -> float:
    return material_units(record) if material_kind(record) == BUCKET_MATERIAL else 0


def barrel_units(record: TripRecord) -> float:
    return material_units(record) if material_kind(record) == BARREL_MATERIAL else 0


def in_window(record: TripRecord, window: DayWindow, months: set[str] | None = None) -> bool:
    if window.is_open:
        return True
    if months is not None:
        return resolve_month_key(record) in months
    if record.indent_day is None:
        return False
    if window.start is not None and record.indent_day < window.start:
        return False
    if window.end is not None and record.indent_day > window.end:
        return False
    return True


def apply_window(records: Iterable[TripRecord], window: DayWindow | None) -> list[TripRecord]:
    # Whole-month windows select by business month, anything else by indent day.
    if window is None or window.is_open:
        return list(records)
    months = window_months(window)
    return [record for record in records if in_window(record, window, months)]


def find_conflicting_ids(valid: Iterable[TripRecord]) -> frozenset[str]:
    labels_by_indent: dict[str, set[str]] = {}
    for record in valid:
        labels_by_indent.setdefault(indent_id(record), set()).add(range_label(record))

    conflicting: set[str] = set()
    for identifier, labels in labels_by_indent.items():
        taxonomy_labels = labels & TAXONOMY
        if len(taxonomy_labels) > 1 or (taxonomy_labels and len(labels) > len(taxonomy_labels)):
            conflicting.add(identifier)
    return frozenset(conflicting)


def classify(records: Iterable[TripRecord]) -> ClassificationResult:
    all_records = tuple(record for record in records if indent_id(record))
    valid = tuple(record for record in all_records if range_label(record))
    conflicting_ids = find_conflicting_ids(valid)

    standard_valid: list[TripRecord] = []
    other: list[TripRecord] = []
    conflicting: list[TripRecord] = []
    for record in valid:
        if indent_id(record) in conflicting_ids:
            conflicting.append(record)
        elif range_label(record) in TAXONOMY:
            standard_valid.append(record)
        else:
            other.append(record)

    if conflicting_ids:
        logger.info(
            "indents span more than one range",
            extra={"conflicting_indents": len(conflicting_ids), "conflicting_rows": len(conflicting)},
        )

    return ClassificationResult(
        all=all_records,
        valid=valid,
        standard_valid=tuple(standard_valid),
        other=tuple(other),
        conflicting=tuple(conflicting),
        conflicting_ids=conflicting_ids,
    )
