import time
from collections.abc import Callable
from typing import TypeVar


T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


def run_with_retries(
    fn: Callable[[], T],
    *,
    max_retries: int,
    backoff_seconds: float,
    deadline_seconds: float | None = None,
    on_attempt_failure: Callable[[int, Exception], None] | None = None,
    should_retry: Callable[[Exception], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    started = time.monotonic()
    last_error: Exception | None = None
    attempt = 0

    for attempt in range(1, max_retries + 2):
        try:
            return fn()
        except Exception as exc:
            last_error = exc
            if on_attempt_failure:
                on_attempt_failure(attempt, exc)

            if attempt > max_retries or (should_retry is not None and not should_retry(exc)):
                break
            pause = backoff_seconds * attempt
            if deadline_seconds is not None and time.monotonic() - started + pause > deadline_seconds:
                break
            sleep(pause)

    raise RetryExhaustedError(str(last_error), attempts=attempt) from last_error
