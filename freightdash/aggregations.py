from collections import Counter
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from freightdash.classifier import barrel_units, bucket_units, classify, indent_id, material_kind, range_label
from freightdash.constants import (
    BARREL_MATERIAL,
    BARREL_TO_BUCKET_RATIO,
    BUCKET_MATERIAL,
    CONFLICTING_ROW,
    DISTANCE_RANGES,
    FIXED_KM,
    FIXED_VEHICLES,
    FULFILLMENT_BANDS,
    KM_COST_RATE,
    OTHER_ROW,
    RATE_TABLE,
    TAXONOMY,
)
from freightdash.dates import day_key, resolve_month_key
from freightdash.schemas import (
    AmountByRange,
    ClassificationResult,
    DatasetMeta,
    Fulfillment,
    FulfillmentBand,
    LocationSummary,
    MonthSummary,
    RangeAmount,
    RangeRow,
    RangeWise,
    RevenueByRange,
    RevenueRow,
    SummaryCards,
    TripRecord,
    VehicleCost,
)
from freightdash.trip_count import count_trips, normalize_vehicle


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def distinct_indents(records: Iterable[TripRecord]) -> int:
    return len({indent_id(record) for record in records})


def rate_for(material: str, label: str) -> float:
    return RATE_TABLE.get((material, label), 0.0)


def record_revenue(record: TripRecord) -> float:
    """Units times the (material, range) rate; off-taxonomy rows earn nothing."""
    label = range_label(record)
    if label not in TAXONOMY:
        return 0.0
    return (bucket_units(record) + barrel_units(record)) * rate_for(material_kind(record), label)


def unit_equivalent(record: TripRecord) -> float:
    return bucket_units(record) + barrel_units(record) * BARREL_TO_BUCKET_RATIO


def taxonomy_rows(classification: ClassificationResult) -> list[TripRecord]:
    return [record for record in classification.valid if range_label(record) in TAXONOMY]


def summary_cards(classification: ClassificationResult) -> SummaryCards:
    trip_count = distinct_indents(classification.valid)
    buckets = sum(bucket_units(record) for record in classification.standard_valid)
    barrels = sum(barrel_units(record) for record in classification.standard_valid)
    avg_units = round_half_up((buckets + barrels * BARREL_TO_BUCKET_RATIO) / trip_count) if trip_count else 0
    priced = taxonomy_rows(classification)

    return SummaryCards(
        indent_count=distinct_indents(classification.all),
        trip_count=trip_count,
        total_load=sum(record.load_kg or 0 for record in classification.all),
        bucket_units=buckets,
        barrel_units=barrels,
        avg_units_per_trip=avg_units,
        total_cost=sum(record.cost or 0 for record in priced),
        total_profit_loss=sum(record.profit_loss or 0 for record in priced),
        total_revenue=sum(record_revenue(record) for record in priced),
        all_rows=len(classification.all),
        valid_rows=len(classification.valid),
        vehicle_day_trips=count_trips(classification.valid).total_trips,
    )


def _range_row(label: str, records: list[TripRecord], total_rows: int) -> RangeRow:
    return RangeRow(
        label=label,
        row_count=len(records),
        distinct_indent_count=distinct_indents(records),
        total_load=sum(record.load_kg or 0 for record in records),
        bucket_units=sum(bucket_units(record) for record in records),
        barrel_units=sum(barrel_units(record) for record in records),
        total_cost=sum(record.cost or 0 for record in records),
        profit_loss=sum(record.profit_loss or 0 for record in records),
        revenue=sum(record_revenue(record) for record in records),
        total_km=sum(record.distance_km or 0 for record in records),
        percentage=round(len(records) / total_rows * 100, 2) if total_rows else 0.0,
    )


def range_wise(classification: ClassificationResult) -> RangeWise:
    # Every row shares this denominator; the partitions cover valid exactly once.
    total_rows = len(classification.valid)

    by_label: dict[str, list[TripRecord]] = {label: [] for label in DISTANCE_RANGES}
    for record in classification.standard_valid:
        by_label[range_label(record)].append(record)

    rows = [_range_row(label, by_label[label], total_rows) for label in DISTANCE_RANGES]
    if classification.other:
        rows.append(_range_row(OTHER_ROW, list(classification.other), total_rows))
    if classification.conflicting:
        rows.append(_range_row(CONFLICTING_ROW, list(classification.conflicting), total_rows))

    standard_rows = rows[: len(DISTANCE_RANGES)]
    return RangeWise(
        rows=rows,
        total_rows=total_rows,
        total_distinct_indents=sum(row.distinct_indent_count for row in rows),
        total_load=sum(row.total_load for row in rows),
        bucket_units=sum(row.bucket_units for row in standard_rows),
        barrel_units=sum(row.barrel_units for row in standard_rows),
        total_cost=sum(row.total_cost for row in rows),
        total_profit_loss=sum(row.profit_loss for row in rows),
        total_revenue=sum(row.revenue for row in rows),
    )


def revenue_by_range(classification: ClassificationResult) -> RevenueByRange:
    rows: list[RevenueRow] = []
    for label in DISTANCE_RANGES:
        records = [record for record in classification.valid if range_label(record) == label]
        buckets = sum(bucket_units(record) for record in records)
        barrels = sum(barrel_units(record) for record in records)
        bucket_rate = rate_for(BUCKET_MATERIAL, label)
        barrel_rate = rate_for(BARREL_MATERIAL, label)
        rows.append(
            RevenueRow(
                label=label,
                bucket_rate=bucket_rate,
                barrel_rate=barrel_rate,
                bucket_units=buckets,
                barrel_units=barrels,
                bucket_revenue=buckets * bucket_rate,
                barrel_revenue=barrels * barrel_rate,
                revenue=buckets * bucket_rate + barrels * barrel_rate,
            )
        )
    return RevenueByRange(rows=rows, total_revenue=sum(row.revenue for row in rows))


def _amount_by_range(classification: ClassificationResult, field_name: str) -> AmountByRange:
    totals = {label: 0.0 for label in DISTANCE_RANGES}
    for record in taxonomy_rows(classification):
        totals[range_label(record)] += getattr(record, field_name) or 0
    rows = [RangeAmount(label=label, amount=totals[label]) for label in DISTANCE_RANGES]
    return AmountByRange(rows=rows, total=sum(totals.values()))


def cost_by_range(classification: ClassificationResult) -> AmountByRange:
    return _amount_by_range(classification, "cost")


def profit_loss_by_range(classification: ClassificationResult) -> AmountByRange:
    return _amount_by_range(classification, "profit_loss")


def vehicle_cost(classification: ClassificationResult) -> list[VehicleCost]:
    actual_km = {vehicle: 0.0 for vehicle in FIXED_VEHICLES}
    for record in classification.all:
        vehicle = normalize_vehicle(record.vehicle).upper()
        if vehicle in actual_km:
            actual_km[vehicle] += record.distance_km or 0

    result: list[VehicleCost] = []
    for vehicle in FIXED_VEHICLES:
        actual = actual_km[vehicle]
        remaining = FIXED_KM - actual
        result.append(
            VehicleCost(
                vehicle=vehicle,
                fixed_km=FIXED_KM,
                actual_km=actual,
                remaining_km=remaining,
                cost_for_remaining_km=remaining * KM_COST_RATE,
                extra_cost=actual * KM_COST_RATE,
            )
        )
    return result


def vehicle_cost_with_other(classification: ClassificationResult) -> list[VehicleCost]:
    roster = set(FIXED_VEHICLES)
    other_km = sum(
        record.distance_km or 0
        for record in classification.all
        if normalize_vehicle(record.vehicle) and normalize_vehicle(record.vehicle).upper() not in roster
    )
    other = VehicleCost(
        vehicle=OTHER_ROW,
        fixed_km=0,
        actual_km=other_km,
        remaining_km=0,
        cost_for_remaining_km=0,
        extra_cost=other_km * KM_COST_RATE,
    )
    return [*vehicle_cost(classification), other]


def band_for(equivalent: float) -> str:
    for upper, label in FULFILLMENT_BANDS:
        if upper is None or equivalent <= upper:
            return label
    return FULFILLMENT_BANDS[-1][1]


def fulfillment(classification: ClassificationResult) -> Fulfillment:
    rows_by_band: dict[str, list[TripRecord]] = {label: [] for _, label in FULFILLMENT_BANDS}
    for record in classification.valid:
        rows_by_band[band_for(unit_equivalent(record))].append(record)

    bands = [
        FulfillmentBand(label=label, row_count=len(records), distinct_indent_count=distinct_indents(records))
        for label, records in rows_by_band.items()
    ]
    return Fulfillment(bands=bands, total_rows=sum(band.row_count for band in bands))


def missing_indents(classification: ClassificationResult, band: str | None = None) -> list[TripRecord]:
    # Non-positive unit counts are treated as already assigned.
    target = band or FULFILLMENT_BANDS[0][1]
    return [
        record
        for record in classification.valid
        if (record.units or 0) > 0 and band_for(unit_equivalent(record)) == target
    ]


def month_on_month(records: Iterable[TripRecord]) -> list[MonthSummary]:
    """Summary cards per business month, each month classified on its own."""
    by_month: dict[str, list[TripRecord]] = {}
    for record in records:
        month = resolve_month_key(record)
        if month is not None:
            by_month.setdefault(month, []).append(record)

    result: list[MonthSummary] = []
    for month in sorted(by_month):
        cards = summary_cards(classify(by_month[month]))
        if cards.all_rows == 0:
            continue
        result.append(
            MonthSummary(
                month=month,
                indent_count=cards.indent_count,
                trip_count=cards.trip_count,
                total_load=cards.total_load,
                total_cost=cards.total_cost,
                total_profit_loss=cards.total_profit_loss,
                total_revenue=cards.total_revenue,
            )
        )
    return result


def locations(classification: ClassificationResult) -> list[LocationSummary]:
    grouped: dict[str, list[TripRecord]] = {}
    for record in classification.valid:
        name = (record.location or "").strip()
        if name:
            grouped.setdefault(name, []).append(record)

    summaries: list[LocationSummary] = []
    for name, records in grouped.items():
        labels = Counter(range_label(record) for record in records)
        # Ties go to the lexically smallest label.
        top_label = min(labels, key=lambda label: (-labels[label], label))
        summaries.append(
            LocationSummary(
                name=name,
                row_count=len(records),
                total_load=sum(record.load_kg or 0 for record in records),
                range_label=top_label,
            )
        )
    summaries.sort(key=lambda item: (-item.row_count, item.name))
    return summaries


def meta(classification: ClassificationResult) -> DatasetMeta:
    days = [record.indent_day for record in classification.all if record.indent_day is not None]
    months = {resolve_month_key(record) for record in classification.all}
    return DatasetMeta(
        earliest_day=day_key(min(days)) if days else None,
        latest_day=day_key(max(days)) if days else None,
        available_months=sorted(month for month in months if month is not None),
        total_rows=len(classification.all),
    )
