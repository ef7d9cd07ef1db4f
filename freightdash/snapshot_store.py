import json

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from freightdash.db_models import DashboardSnapshotRow, RecomputeRun, utc_now
from freightdash.schemas import DashboardSnapshot


def _to_snapshot(row: DashboardSnapshotRow) -> DashboardSnapshot:
    return DashboardSnapshot(
        cache_key=row.cache_key,
        version=row.version,
        computed_at=row.computed_at,
        record_count=row.record_count,
        views=json.loads(row.payload),
    )


class SnapshotStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def load(self, cache_key: str) -> DashboardSnapshot | None:
        with self.session_factory() as db:
            stmt = select(DashboardSnapshotRow).where(DashboardSnapshotRow.cache_key == cache_key)
            row = db.execute(stmt).scalar_one_or_none()
            return _to_snapshot(row) if row else None

    def load_all(self) -> list[DashboardSnapshot]:
        with self.session_factory() as db:
            rows = db.execute(select(DashboardSnapshotRow)).scalars().all()
            return [_to_snapshot(row) for row in rows]

    def save(self, snapshot: DashboardSnapshot) -> None:
        payload = json.dumps(snapshot.views, sort_keys=True)
        with self.session_factory() as db:
            stmt = select(DashboardSnapshotRow).where(DashboardSnapshotRow.cache_key == snapshot.cache_key)
            row = db.execute(stmt).scalar_one_or_none()
            if row is None:
                row = DashboardSnapshotRow(cache_key=snapshot.cache_key)
                db.add(row)
            row.version = snapshot.version
            row.computed_at = snapshot.computed_at
            row.record_count = snapshot.record_count
            row.payload = payload
            db.commit()

    def start_run(self, *, cache_key: str, trigger_source: str) -> int:
        with self.session_factory() as db:
            run = RecomputeRun(cache_key=cache_key, trigger_source=trigger_source, status="running")
            db.add(run)
            db.commit()
            return run.id

    def finish_run(self, run_id: int, *, status: str, record_count: int = 0, error: str | None = None) -> None:
        with self.session_factory() as db:
            run = db.get(RecomputeRun, run_id)
            if run is None:
                return
            finished_at = utc_now()
            run.status = status
            run.completed_at = finished_at
            run.duration_ms = (finished_at - run.started_at).total_seconds() * 1000
            run.record_count = record_count
            run.error = error
            db.commit()
