from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    input_dir: str
    max_write_retries: int
    retry_backoff_seconds: float
    write_deadline_seconds: float
    aggregation_workers: int
    schedule_hour_utc: int
    schedule_minute_utc: int


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "freightdash"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./freightdash.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        input_dir=os.getenv("INPUT_DIR", "./data/input"),
        max_write_retries=int(os.getenv("MAX_WRITE_RETRIES", "3")),
        retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
        write_deadline_seconds=float(os.getenv("WRITE_DEADLINE_SECONDS", "60")),
        aggregation_workers=int(os.getenv("AGGREGATION_WORKERS", "4")),
        schedule_hour_utc=int(os.getenv("SCHEDULE_HOUR_UTC", "2")),
        schedule_minute_utc=int(os.getenv("SCHEDULE_MINUTE_UTC", "0")),
    )
