from typing import Any, Optional


class ValidationError(ValueError):
    """A required field is missing or carries an unusable value."""


class InsufficientDataError(ValueError):
    """There is nothing in the current month to analyse."""


class UpstreamError(RuntimeError):
    """The text-generation endpoint could not produce a usable response."""

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.details = details


class StoreError(RuntimeError):
    """The ledger database rejected or failed an operation."""


class ResetDisabledError(PermissionError):
    pass
