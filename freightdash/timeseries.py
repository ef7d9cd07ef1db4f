from collections.abc import Callable, Iterable

from freightdash.aggregations import record_revenue, taxonomy_rows
from freightdash.classifier import barrel_units, bucket_units, material_kind
from freightdash.constants import BARREL_CAPACITY_KG, BARREL_MATERIAL, BUCKET_CAPACITY_KG, GRANULARITIES
from freightdash.dates import day_key, month_key_for_day, period_sort_key, resolve_month_key, week_key
from freightdash.errors import InvalidGranularity
from freightdash.schemas import ClassificationResult, LoadPoint, TimePoint, TripRecord
from freightdash.trip_count import count_trips


def check_granularity(granularity: str) -> str:
    if granularity not in GRANULARITIES:
        raise InvalidGranularity(f"granularity must be one of {', '.join(GRANULARITIES)}, got {granularity!r}")
    return granularity


def day_period(day: int, granularity: str) -> str:
    if granularity == "daily":
        return day_key(day)
    if granularity == "weekly":
        return week_key(day)
    return month_key_for_day(day)


def period_key(record: TripRecord, granularity: str) -> str | None:
    if granularity == "monthly":
        return resolve_month_key(record)
    if record.indent_day is None:
        return None
    return day_period(record.indent_day, granularity)


def _sum_over_time(
    records: Iterable[TripRecord],
    granularity: str,
    value: Callable[[TripRecord], float],
) -> list[TimePoint]:
    check_granularity(granularity)
    totals: dict[str, float] = {}
    for record in records:
        period = period_key(record, granularity)
        if period is None:
            continue
        totals[period] = totals.get(period, 0.0) + value(record)
    return [TimePoint(period=period, value=totals[period]) for period in sorted(totals, key=period_sort_key)]


def revenue_over_time(classification: ClassificationResult, granularity: str = "monthly") -> list[TimePoint]:
    return _sum_over_time(taxonomy_rows(classification), granularity, record_revenue)


def cost_over_time(classification: ClassificationResult, granularity: str = "monthly") -> list[TimePoint]:
    return _sum_over_time(taxonomy_rows(classification), granularity, lambda record: record.cost or 0)


def profit_loss_over_time(classification: ClassificationResult, granularity: str = "monthly") -> list[TimePoint]:
    return _sum_over_time(taxonomy_rows(classification), granularity, lambda record: record.profit_loss or 0)


def capacity_fulfillment_pct(record: TripRecord) -> float:
    capacity = BARREL_CAPACITY_KG if material_kind(record) == BARREL_MATERIAL else BUCKET_CAPACITY_KG
    return (record.load_kg or 0) / capacity * 100


def load_over_time(classification: ClassificationResult, granularity: str = "monthly") -> list[LoadPoint]:
    check_granularity(granularity)
    grouped: dict[str, list[TripRecord]] = {}
    for record in classification.all:
        period = period_key(record, granularity)
        if period is not None:
            grouped.setdefault(period, []).append(record)

    points: list[LoadPoint] = []
    for period in sorted(grouped, key=period_sort_key):
        records = grouped[period]
        points.append(
            LoadPoint(
                period=period,
                total_load=sum(record.load_kg or 0 for record in records),
                row_count=len(records),
                bucket_units=sum(bucket_units(record) for record in records),
                barrel_units=sum(barrel_units(record) for record in records),
                avg_fulfillment_pct=sum(capacity_fulfillment_pct(record) for record in records) / len(records),
            )
        )
    return points


def trips_over_time(classification: ClassificationResult, granularity: str = "monthly") -> list[TimePoint]:
    check_granularity(granularity)
    totals: dict[str, float] = {}
    if granularity == "monthly":
        # Counted per business month, the same way a month window counts them.
        by_month: dict[str, list[TripRecord]] = {}
        for record in classification.valid:
            month = resolve_month_key(record)
            if month is not None:
                by_month.setdefault(month, []).append(record)
        for month, records in by_month.items():
            trips = count_trips(records).total_trips
            if trips:
                totals[month] = trips
        return [TimePoint(period=period, value=totals[period]) for period in sorted(totals)]

    for (day, _vehicle), trips in count_trips(classification.valid).per_group.items():
        period = day_period(day, granularity)
        totals[period] = totals.get(period, 0) + trips
    return [TimePoint(period=period, value=totals[period]) for period in sorted(totals, key=period_sort_key)]
