from freightdash import aggregations, timeseries
from freightdash.classifier import apply_window, classify
from freightdash.precompute import RecordSource
from freightdash.schemas import (
    AmountByRange,
    ClassificationResult,
    DatasetMeta,
    DayWindow,
    Fulfillment,
    LoadPoint,
    LocationSummary,
    MonthSummary,
    RangeWise,
    RevenueByRange,
    SummaryCards,
    TimePoint,
    TripCountResult,
    TripRecord,
    VehicleCost,
)
from freightdash.trip_count import count_trips


class DashboardQueries:
    def __init__(self, record_source: RecordSource) -> None:
        self.record_source = record_source

    def _records(self, window: DayWindow | None) -> list[TripRecord]:
        return apply_window(self.record_source(), window)

    def _classify(self, window: DayWindow | None) -> ClassificationResult:
        return classify(self._records(window))

    def summary_cards(self, window: DayWindow | None = None) -> SummaryCards:
        return aggregations.summary_cards(self._classify(window))

    def range_wise(self, window: DayWindow | None = None) -> RangeWise:
        return aggregations.range_wise(self._classify(window))

    def revenue_by_range(self, window: DayWindow | None = None) -> RevenueByRange:
        return aggregations.revenue_by_range(self._classify(window))

    def revenue_over_time(self, window: DayWindow | None = None, granularity: str = "monthly") -> list[TimePoint]:
        timeseries.check_granularity(granularity)
        return timeseries.revenue_over_time(self._classify(window), granularity)

    def cost_by_range(self, window: DayWindow | None = None) -> AmountByRange:
        return aggregations.cost_by_range(self._classify(window))

    def cost_over_time(self, window: DayWindow | None = None, granularity: str = "monthly") -> list[TimePoint]:
        timeseries.check_granularity(granularity)
        return timeseries.cost_over_time(self._classify(window), granularity)

    def profit_loss_by_range(self, window: DayWindow | None = None) -> AmountByRange:
        return aggregations.profit_loss_by_range(self._classify(window))

    def profit_loss_over_time(self, window: DayWindow | None = None, granularity: str = "monthly") -> list[TimePoint]:
        timeseries.check_granularity(granularity)
        return timeseries.profit_loss_over_time(self._classify(window), granularity)

    def vehicle_cost(self, window: DayWindow | None = None) -> list[VehicleCost]:
        return aggregations.vehicle_cost(self._classify(window))

    def vehicle_cost_with_other(self, window: DayWindow | None = None) -> list[VehicleCost]:
        return aggregations.vehicle_cost_with_other(self._classify(window))

    def fulfillment(self, window: DayWindow | None = None) -> Fulfillment:
        return aggregations.fulfillment(self._classify(window))

    def missing_indents(self, window: DayWindow | None = None, band: str | None = None) -> list[TripRecord]:
        return aggregations.missing_indents(self._classify(window), band)

    def month_on_month(self, window: DayWindow | None = None) -> list[MonthSummary]:
        return aggregations.month_on_month(self._records(window))

    def load_over_time(self, window: DayWindow | None = None, granularity: str = "monthly") -> list[LoadPoint]:
        timeseries.check_granularity(granularity)
        return timeseries.load_over_time(self._classify(window), granularity)

    def trips_over_time(self, window: DayWindow | None = None, granularity: str = "monthly") -> list[TimePoint]:
        timeseries.check_granularity(granularity)
        return timeseries.trips_over_time(self._classify(window), granularity)

    def count_trips(self, window: DayWindow | None = None) -> TripCountResult:
        window = window or DayWindow()
        return count_trips(self._classify(None).valid, window.start, window.end)

    def locations(self, window: DayWindow | None = None) -> list[LocationSummary]:
        return aggregations.locations(self._classify(window))

    def meta(self, window: DayWindow | None = None) -> DatasetMeta:
        return aggregations.meta(self._classify(window))
