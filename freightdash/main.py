import argparse
import json
import logging
from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from freightdash.config import Settings, get_settings
from freightdash.database import build_session_factory
from freightdash.dates import day_key, normalize_day
from freightdash.errors import NoDataAvailable, RecomputeFailed, Unparseable
from freightdash.precompute import DashboardService, to_payload
from freightdash.queries import DashboardQueries
from freightdash.record_store import DatabaseRecordSource, ingest_records, replace_records, transform_records
from freightdash.scheduler import start_scheduler
from freightdash.schemas import DashboardSnapshot, DayWindow, TripCountResult
from freightdash.snapshot_store import SnapshotStore


QUERY_VIEWS = (
    "summary_cards",
    "range_wise",
    "revenue_by_range",
    "revenue_over_time",
    "cost_by_range",
    "cost_over_time",
    "profit_loss_by_range",
    "profit_loss_over_time",
    "vehicle_cost",
    "vehicle_cost_with_other",
    "fulfillment",
    "missing_indents",
    "month_on_month",
    "load_over_time",
    "trips_over_time",
    "count_trips",
    "locations",
    "meta",
)
TIMESERIES_VIEWS = {
    "revenue_over_time",
    "cost_over_time",
    "profit_loss_over_time",
    "load_over_time",
    "trips_over_time",
}

EXIT_FAILED = 1
EXIT_NO_DATA = 2


def _day_arg(value: str) -> int:
    try:
        return normalize_day(value)
    except Unparseable as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Freight dashboard aggregation engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    reload_parser = subparsers.add_parser("reload", help="load a JSONL trip export and refresh the snapshot")
    reload_parser.add_argument("--input", required=False, help="JSONL file; defaults to INPUT_DIR/trips.jsonl")

    subparsers.add_parser("recompute", help="recompute the dashboard snapshot now")

    snapshot_parser = subparsers.add_parser("snapshot", help="print the current dashboard snapshot")
    snapshot_parser.add_argument("--view", required=False, help="print only this view")

    query_parser = subparsers.add_parser("query", help="compute one view live over a date window")
    query_parser.add_argument("view", choices=QUERY_VIEWS)
    query_parser.add_argument("--from", dest="start", type=_day_arg, help="first day, inclusive")
    query_parser.add_argument("--to", dest="end", type=_day_arg, help="last day, inclusive")
    query_parser.add_argument("--granularity", default="monthly", choices=["daily", "weekly", "monthly"])

    schedule_parser = subparsers.add_parser("schedule", help="start daily recompute scheduler")
    schedule_parser.add_argument("--run-now", action="store_true", help="also recompute once immediately")

    return parser.parse_args()


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _snapshot_payload(snapshot: DashboardSnapshot) -> dict[str, object]:
    return {
        "cache_key": snapshot.cache_key,
        "version": snapshot.version,
        "computed_at": snapshot.computed_at.isoformat(),
        "record_count": snapshot.record_count,
        "views": snapshot.views,
    }


def _reload(
    args: argparse.Namespace,
    settings: Settings,
    session_factory: sessionmaker[Session],
    service: DashboardService,
) -> None:
    input_path = Path(args.input) if args.input else Path(settings.input_dir) / "trips.jsonl"
    try:
        raw_records = ingest_records(input_path)
    except FileNotFoundError as exc:
        print(f"status=failed error={exc}")
        raise SystemExit(EXIT_FAILED) from exc

    with session_factory() as db:
        loaded = replace_records(db, transform_records(raw_records))

    future = service.notify_reload()
    snapshot = future.result() if future is not None else None
    if snapshot is None:
        print(f"status=empty loaded={loaded}" if loaded == 0 else f"status=failed loaded={loaded}")
        raise SystemExit(EXIT_NO_DATA if loaded == 0 else EXIT_FAILED)
    print(f"status=succeeded loaded={loaded} computed_at={snapshot.computed_at.isoformat()}")


def _recompute(service: DashboardService) -> None:
    try:
        snapshot = service.recompute_all(trigger_source="manual")
    except NoDataAvailable:
        print("status=empty")
        raise SystemExit(EXIT_NO_DATA)
    except RecomputeFailed as exc:
        print(f"status=failed error={exc}")
        raise SystemExit(EXIT_FAILED) from exc
    print(
        "status=succeeded records={records} computed_at={computed_at}".format(
            records=snapshot.record_count,
            computed_at=snapshot.computed_at.isoformat(),
        )
    )


def _snapshot(args: argparse.Namespace, service: DashboardService) -> None:
    snapshot = service.get_snapshot()
    if snapshot is None:
        print("status=empty")
        raise SystemExit(EXIT_NO_DATA)
    if args.view:
        if args.view not in snapshot.views:
            print(f"status=failed error=unknown view {args.view}")
            raise SystemExit(EXIT_FAILED)
        _print_json(snapshot.views[args.view])
        return
    _print_json(_snapshot_payload(snapshot))


def _trip_count_payload(result: TripCountResult) -> dict[str, object]:
    groups = [
        {"day": day_key(day), "vehicle": vehicle, "trips": trips}
        for (day, vehicle), trips in sorted(result.per_group.items())
    ]
    return {"total_trips": result.total_trips, "groups": groups}


def _query(args: argparse.Namespace, queries: DashboardQueries) -> None:
    window = DayWindow(start=args.start, end=args.end)
    if args.view == "count_trips":
        _print_json(_trip_count_payload(queries.count_trips(window)))
        return

    method = getattr(queries, args.view)
    if args.view in TIMESERIES_VIEWS:
        result = method(window, granularity=args.granularity)
    else:
        result = method(window)
    _print_json(to_payload(result))


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    session_factory = build_session_factory(settings.database_url)
    record_source = DatabaseRecordSource(session_factory)

    if args.command == "query":
        _query(args, DashboardQueries(record_source))
        return

    service = DashboardService(settings, record_source, SnapshotStore(session_factory))
    service.warm_up()
    try:
        if args.command == "schedule":
            start_scheduler(settings, service, run_now=args.run_now)
        elif args.command == "reload":
            _reload(args, settings, session_factory, service)
        elif args.command == "recompute":
            _recompute(service)
        else:
            _snapshot(args, service)
    finally:
        service.shutdown()


if __name__ == "__main__":
    main()
