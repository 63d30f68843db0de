"""
Error classification for order construction and transaction execution.

This module provides the structured exception hierarchy separating bad user
input, asset resolution failures, exchange rejections and partially applied
submission sequences.
"""

from .validation import (
    TicketEngineError,
    ValidationError,
    TPSLOrderingError,
    InsufficientBalanceError,
    PrecisionError,
)
from .submission import (
    MarketNotFound,
    SubmissionError,
    PartialSequenceError,
    SessionClosedError,
    StepTransitionError,
)

__all__ = [
    "TicketEngineError",
    # Input validation
    "ValidationError",
    "TPSLOrderingError",
    "InsufficientBalanceError",
    "PrecisionError",
    # Resolution and submission
    "MarketNotFound",
    "SubmissionError",
    "PartialSequenceError",
    "SessionClosedError",
    # Programming errors
    "StepTransitionError",
]
