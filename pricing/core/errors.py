"""
Exceptions raised by the pricing service.

Business-rule outcomes (expired code, no tax row, ...) are never exceptions;
they are returned as typed results. Only malformed input and backing-store
faults are raised.
"""
from typing import Optional


class PricingError(Exception):
    """Base class for pricing service errors."""


class InputError(PricingError):
    """A required request field is missing or unusable."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class StoreUnavailableError(PricingError):
    """The backing store could not answer (unreachable, fault, or timeout)."""

    def __init__(self, source: str, detail: Optional[str] = None):
        message = f"Store read failed for {source}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.source = source
        self.detail = detail
