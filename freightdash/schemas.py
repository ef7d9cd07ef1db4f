from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class TripRecord:
    indent_id: str
    indent_day: int | None = None
    allocation_day: int | None = None
    range_label: str = ""
    material: str = ""
    units: float = 0
    load_kg: float = 0
    cost: float = 0
    profit_loss: float = 0
    distance_km: float = 0
    vehicle: str = ""
    remarks: str = ""
    month_label: str = ""
    location: str = ""

    @property
    def is_cancelled(self) -> bool:
        return not (self.range_label or "").strip()


@dataclass(frozen=True)
class DayWindow:
    start: int | None = None
    end: int | None = None

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True)
class ClassificationResult:
    all: tuple[TripRecord, ...]
    valid: tuple[TripRecord, ...]
    standard_valid: tuple[TripRecord, ...]
    other: tuple[TripRecord, ...]
    conflicting: tuple[TripRecord, ...]
    conflicting_ids: frozenset[str]


@dataclass(frozen=True)
class TripCountResult:
    total_trips: int
    per_group: dict[tuple[int, str], int]


@dataclass(frozen=True)
class SummaryCards:
    indent_count: int
    trip_count: int
    total_load: float
    bucket_units: float
    barrel_units: float
    avg_units_per_trip: int
    total_cost: float
    total_profit_loss: float
    total_revenue: float
    all_rows: int
    valid_rows: int
    vehicle_day_trips: int


@dataclass(frozen=True)
class RangeRow:
    label: str
    row_count: int
    distinct_indent_count: int
    total_load: float
    bucket_units: float
    barrel_units: float
    total_cost: float
    profit_loss: float
    revenue: float
    total_km: float
    percentage: float


@dataclass(frozen=True)
class RangeWise:
    rows: list[RangeRow]
    total_rows: int
    total_distinct_indents: int
    total_load: float
    bucket_units: float
    barrel_units: float
    total_cost: float
    total_profit_loss: float
    total_revenue: float


@dataclass(frozen=True)
class RevenueRow:
    label: str
    bucket_rate: float
    barrel_rate: float
    bucket_units: float
    barrel_units: float
    bucket_revenue: float
    barrel_revenue: float
    revenue: float


@dataclass(frozen=True)
class RevenueByRange:
    rows: list[RevenueRow]
    total_revenue: float


@dataclass(frozen=True)
class RangeAmount:
    label: str
    amount: float


@dataclass(frozen=True)
class AmountByRange:
    rows: list[RangeAmount]
    total: float


@dataclass(frozen=True)
class TimePoint:
    period: str
    value: float


@dataclass(frozen=True)
class LoadPoint:
    period: str
    total_load: float
    row_count: int
    bucket_units: float
    barrel_units: float
    avg_fulfillment_pct: float


@dataclass(frozen=True)
class VehicleCost:
    vehicle: str
    fixed_km: float
    actual_km: float
    remaining_km: float
    cost_for_remaining_km: float
    extra_cost: float


@dataclass(frozen=True)
class FulfillmentBand:
    label: str
    row_count: int
    distinct_indent_count: int


@dataclass(frozen=True)
class Fulfillment:
    bands: list[FulfillmentBand]
    total_rows: int


@dataclass(frozen=True)
class MonthSummary:
    month: str
    indent_count: int
    trip_count: int
    total_load: float
    total_cost: float
    total_profit_loss: float
    total_revenue: float


@dataclass(frozen=True)
class LocationSummary:
    name: str
    row_count: int
    total_load: float
    range_label: str


@dataclass(frozen=True)
class DatasetMeta:
    earliest_day: str | None
    latest_day: str | None
    available_months: list[str]
    total_rows: int


@dataclass(frozen=True)
class DashboardSnapshot:
    cache_key: str
    version: int
    computed_at: datetime
    record_count: int
    views: dict[str, Any] = field(default_factory=dict)
