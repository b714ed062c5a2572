# File: slotwise/core/errors.py
"""
Typed errors raised by the slot engine.

Callers receive either a (possibly empty) slot map or one of these:
ValidationError for bad input, DependencyError when a mandatory read
failed, DeadlineExceededError when the caller's deadline ran out.
"""

from typing import Optional


class SlotEngineError(Exception):
    """Base class for all slot engine errors."""


class ValidationError(SlotEngineError, ValueError):
    """Request or model data is invalid. Raised before any computation starts."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.message = message

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class DependencyError(SlotEngineError):
    """A mandatory collaborator (e.g. the booking count store) failed."""


class DeadlineExceededError(SlotEngineError, TimeoutError):
    """The caller-supplied deadline expired before the computation finished."""


class ProviderError(SlotEngineError):
    """A calendar provider could not return busy times for a credential."""

    def __init__(self, message: str, credential_id: Optional[str] = None):
        super().__init__(message)
        self.credential_id = credential_id
