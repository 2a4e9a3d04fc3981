"""Error kinds raised by the lending engine.

Business outcomes (a missing record, no copies left, an illegal transition,
malformed input) and storage failures are separate classes so callers can
tell "no data" apart from "could not determine".
"""


class LendingError(Exception):
    code = "lending_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LendingError):
    code = "not_found"


class OutOfStockError(LendingError):
    code = "out_of_stock"


class InvalidStateError(LendingError):
    code = "invalid_state"


class ValidationError(LendingError):
    code = "validation_error"


class StorageError(LendingError):
    code = "storage_error"


class DuplicateError(LendingError):
    code = "duplicate"
