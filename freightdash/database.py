from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from freightdash.db_models import Base


def build_session_factory(database_url: str, *, timeout_seconds: float = 30) -> sessionmaker[Session]:
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        # Background recomputes write from a worker thread.
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = timeout_seconds

    engine = create_engine(database_url, future=True, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)
