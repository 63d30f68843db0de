"""
User input error classifications.

These exceptions are raised before anything reaches the network. They are
recovered locally: the owning modal stays on its form step and shows the
message.
"""

from typing import Any, Optional


class TicketEngineError(Exception):
    """Base class for all ticket engine errors."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = True
        self.retryable = True


class ValidationError(TicketEngineError):
    """Bad user input: non-positive size, unknown amount, ordering violation."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class TPSLOrderingError(ValidationError):
    """Take-profit or stop-loss on the wrong side of the entry price."""

    def __init__(self, message: str, leg: Optional[str] = None, **kwargs):
        super().__init__(message, field=leg, **kwargs)
        self.leg = leg


class InsufficientBalanceError(ValidationError):
    """Requested amount exceeds what the account can spend."""

    def __init__(self, message: str, available: Optional[float] = None,
                 requested: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.available = available
        self.requested = requested


class PrecisionError(ValidationError):
    """Too many decimal places for the asset being moved."""

    def __init__(self, message: str, max_decimals: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.max_decimals = max_decimals
