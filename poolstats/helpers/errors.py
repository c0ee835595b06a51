"""Error types raised by the stats layer."""


class StoreError(Exception):
    """A store round trip failed (connection loss, timeout, bad query).

    The original driver/SQLAlchemy exception is kept as ``__cause__`` and on
    :attr:`cause`. Callers own any retry policy.
    """

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class InvalidQueryError(ValueError):
    """Query arguments were rejected before reaching the store."""


__all__ = ["InvalidQueryError", "StoreError"]
