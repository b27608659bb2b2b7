"""Error types raised by the board pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class BoardError(Exception):
    """Base class for errors that abort a board operation."""


class QueryMalformedError(BoardError, ValueError):
    """Raised when a base query cannot be parsed or lacks an entity."""


class RetrievalFailedError(BoardError):
    """Raised when the record store fails while executing a query or applying a change."""

    def __init__(self, message: str, entity: str | None = None) -> None:
        super().__init__(message)
        self.entity = entity


class ActionNotAllowedError(BoardError):
    """Raised when the board configuration does not permit a requested change."""


class TransitionNotAllowedError(ActionNotAllowedError):
    """Raised when a record may not be moved to the requested lane."""


@dataclass(frozen=True)
class OptionMismatch:
    """A record whose lane-source value matches no known option.

    The record is left out of the lanes; the mismatch is reported, never raised.
    """

    entity: str
    attribute: str
    value: Any
    record_id: Any = None

    @property
    def message(self) -> str:
        return (
            f"Found data with non valid option set data for {self.entity}.{self.attribute}: {self.value!r}. "
            "Were option set values reorganized or deleted?"
        )
