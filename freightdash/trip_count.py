import re
from collections.abc import Iterable

from freightdash.constants import SECOND_TRIP_MARKER
from freightdash.schemas import TripCountResult, TripRecord


_WHITESPACE = re.compile(r"\s+")


def normalize_vehicle(vehicle: str | None) -> str:
    if not vehicle:
        return ""
    return _WHITESPACE.sub(" ", vehicle).strip()


def normalize_remarks(remarks: str | None) -> str:
    if not remarks:
        return ""
    return _WHITESPACE.sub(" ", remarks.lower()).strip()


def has_second_trip_marker(remarks: str | None) -> bool:
    return SECOND_TRIP_MARKER in normalize_remarks(remarks)


def count_trips(
    records: Iterable[TripRecord],
    window_start: int | None = None,
    window_end: int | None = None,
) -> TripCountResult:
    """A vehicle-day is one trip, or two when a remark mentions a second trip."""
    second_trip: dict[tuple[int, str], bool] = {}
    for record in records:
        if record.indent_day is None:
            continue
        if window_start is not None and record.indent_day < window_start:
            continue
        if window_end is not None and record.indent_day > window_end:
            continue
        vehicle = normalize_vehicle(record.vehicle)
        if not vehicle:
            continue

        key = (record.indent_day, vehicle)
        second_trip[key] = second_trip.get(key, False) or has_second_trip_marker(record.remarks)

    per_group = {key: 2 if marked else 1 for key, marked in second_trip.items()}
    return TripCountResult(total_trips=sum(per_group.values()), per_group=per_group)
