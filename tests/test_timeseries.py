import pytest

from freightdash.aggregations import summary_cards
from freightdash.classifier import apply_window, classify
from freightdash.dates import month_bounds
from freightdash.errors import InvalidGranularity
from freightdash.schemas import DayWindow
from freightdash.timeseries import (
    cost_over_time,
    load_over_time,
    profit_loss_over_time,
    revenue_over_time,
    trips_over_time,
)

from factories import day, make_record


def test_monthly_revenue_follows_business_month() -> None:
    records = [
        make_record("T1", indent_day=day("2025-09-30"), month_label="Oct-25", units=10),
        make_record("T2", indent_day=day("2025-10-02"), month_label="", units=20),
        make_record("T3", "Local", indent_day=day("2025-10-03"), month_label="", units=99),
    ]

    points = revenue_over_time(classify(records), "monthly")

    assert [(point.period, point.value) for point in points] == [("2025-10", 30 * 21)]


def test_daily_and_weekly_buckets_use_indent_day() -> None:
    records = [
        make_record("T1", indent_day=day("2025-10-05"), cost=100),
        make_record("T2", indent_day=day("2025-10-06"), cost=200),
        make_record("T3", indent_day=None, month_label="", cost=400),
    ]
    classification = classify(records)

    daily = cost_over_time(classification, "daily")
    weekly = cost_over_time(classification, "weekly")

    assert [(point.period, point.value) for point in daily] == [("2025-10-05", 100), ("2025-10-06", 200)]
    assert [(point.period, point.value) for point in weekly] == [("Week 40, 2025", 100), ("Week 41, 2025", 200)]


def test_profit_loss_over_time_skips_off_taxonomy_rows() -> None:
    records = [make_record("T1", profit_loss=-20), make_record("T2", "Local", profit_loss=500)]

    points = profit_loss_over_time(classify(records))

    assert [(point.period, point.value) for point in points] == [("2025-10", -20)]


def test_unknown_granularity_is_rejected() -> None:
    with pytest.raises(InvalidGranularity):
        revenue_over_time(classify([make_record("T1")]), "hourly")


def test_load_over_time_reports_capacity_fulfillment() -> None:
    records = [
        make_record("L1", load_kg=3000, units=100),
        make_record("L2", material="210L Barrels", load_kg=6300, units=30),
    ]

    (point,) = load_over_time(classify(records), "monthly")

    assert point.period == "2025-10"
    assert point.total_load == 9300
    assert point.row_count == 2
    assert point.bucket_units == 100
    assert point.barrel_units == 30
    assert point.avg_fulfillment_pct == pytest.approx(75.0)


def test_trips_over_time_sums_vehicle_day_trips() -> None:
    records = [
        make_record("A1", vehicle="V1", indent_day=day("2025-10-05")),
        make_record("A2", vehicle="V1", indent_day=day("2025-10-05"), remarks="2nd trip"),
        make_record("A3", vehicle="V2", indent_day=day("2025-10-06")),
        make_record("A4", vehicle="V2", indent_day=day("2025-11-01")),
    ]

    monthly = trips_over_time(classify(records), "monthly")
    daily = trips_over_time(classify(records), "daily")

    assert [(point.period, point.value) for point in monthly] == [("2025-10", 4)]
    assert [point.value for point in daily] == [2, 1, 1]


def test_monthly_trips_match_month_window_summary() -> None:
    records = [
        make_record("A1", vehicle="V1", indent_day=day("2025-10-05"), month_label="Oct-25"),
        make_record("A2", vehicle="V2", indent_day=day("2025-11-01"), month_label="Oct-25"),
        make_record("A3", vehicle="V3", indent_day=day("2025-11-02"), month_label=""),
    ]

    monthly = {point.period: point.value for point in trips_over_time(classify(records), "monthly")}

    for month, trips in monthly.items():
        start, end = month_bounds(month)
        cards = summary_cards(classify(apply_window(records, DayWindow(start, end))))
        assert cards.vehicle_day_trips == trips
    assert monthly == {"2025-10": 2, "2025-11": 1}
