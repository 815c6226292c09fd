from __future__ import annotations

from typing import Any


class FtsimError(RuntimeError):
    """Base class for failures that abort a load, setup or run."""


class LoadError(FtsimError):
    pass


class SetupError(FtsimError):
    pass


class DriverStateError(FtsimError):
    pass


class RowOutOfRangeError(FtsimError, IndexError):
    def __init__(self, row: int, max_rows: int) -> None:
        super().__init__(f"Row {row} is out of range. Valid rows: 0..{max_rows - 1}")
        self.row = row
        self.max_rows = max_rows


class ResultsWriteError(FtsimError):
    """Raised when the results CSV cannot be written.

    The in-memory results of the run are kept on ``result`` so callers can
    retry the write somewhere else.
    """

    def __init__(self, message: str, *, result: Any = None) -> None:
        super().__init__(message)
        self.result = result


class DegenerateGeometryError(ValueError):
    pass
