from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from freightdash.config import Settings
from freightdash.database import build_session_factory
from freightdash.precompute import DashboardService
from freightdash.record_store import DatabaseRecordSource, replace_records
from freightdash.schemas import TripRecord
from freightdash.snapshot_store import SnapshotStore


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data" / "input").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="freightdash",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        input_dir=str(temp_workspace / "data" / "input"),
        max_write_retries=1,
        retry_backoff_seconds=0,
        write_deadline_seconds=5,
        aggregation_workers=2,
        schedule_hour_utc=2,
        schedule_minute_utc=0,
    )


@pytest.fixture()
def session_factory(test_settings: Settings) -> sessionmaker[Session]:
    return build_session_factory(test_settings.database_url)


@pytest.fixture()
def load_trips(session_factory: sessionmaker[Session]):
    def _load(records: list[TripRecord]) -> int:
        with session_factory() as db:
            return replace_records(db, records)

    return _load


@pytest.fixture()
def service(test_settings: Settings, session_factory: sessionmaker[Session]) -> Generator[DashboardService, None, None]:
    svc = DashboardService(test_settings, DatabaseRecordSource(session_factory), SnapshotStore(session_factory))
    yield svc
    svc.shutdown()
