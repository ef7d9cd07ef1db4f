class FreightDashError(Exception):
    pass


class Unparseable(FreightDashError, ValueError):
    """A single field value could not be normalized."""

    def __init__(self, value: object, reason: str = "unrecognized format") -> None:
        super().__init__(f"cannot normalize {value!r}: {reason}")
        self.value = value
        self.reason = reason


class InvalidGranularity(FreightDashError, ValueError):
    pass


class RecomputeFailed(FreightDashError):
    """The record source or an aggregation failed; the previous snapshot stays in place."""


class NoDataAvailable(FreightDashError):
    """Nothing durable and nothing to compute from."""
