"""Exceptions raised by the CCF engine."""

from __future__ import annotations


class PreconditionError(ValueError):
    """Raised when a caller violates an input contract.

    These are programming errors (mismatched lengths, unsorted masks, wrong
    output sizes), not recoverable runtime conditions.
    """

    def __init__(self, message: str, *, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class ExperimentalFeatureWarning(UserWarning):
    """Emitted when an experimental code path is used."""
