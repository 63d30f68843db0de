"""
Resolution and submission error classifications.

These exceptions describe failures once a submission attempt has started,
or failures that make the attempt impossible. They are surfaced in the
error step of the owning modal.
"""

from typing import Any, Optional

from .validation import TicketEngineError


class MarketNotFound(TicketEngineError):
    """Instrument could not be matched to a live catalog entry."""

    def __init__(self, message: str, symbol: Optional[str] = None,
                 venue: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.venue = venue
        self.recoverable = False
        self.retryable = False


class SubmissionError(TicketEngineError):
    """Signing, network or exchange rejection. Message is passed through verbatim."""

    def __init__(self, message: str, step: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step = step


class PartialSequenceError(SubmissionError):
    """
    A multi-step submission stopped after some steps were applied.

    The account is left in an intermediate state. `unprotected` is set when
    previously attached conditional orders were cancelled and their
    replacements were not placed. Resubmitting the same plan would apply the
    completed steps a second time, so the error is not retryable.
    """

    def __init__(self, message: str, failed_step: Optional[str] = None,
                 completed_steps: Optional[list[str]] = None,
                 unprotected: bool = False, **kwargs):
        super().__init__(message, step=failed_step, **kwargs)
        self.failed_step = failed_step
        self.completed_steps = completed_steps or []
        self.unprotected = unprotected
        self.retryable = False


class SessionClosedError(SubmissionError):
    """Session context was torn down before or during submission."""

    def __init__(self, message: str = "Wallet not connected", **kwargs):
        super().__init__(message, **kwargs)


class StepTransitionError(TicketEngineError):
    """Invalid step transition requested from the step machine."""

    def __init__(self, message: str, current_step: Optional[str] = None,
                 attempted_step: Optional[str] = None, context: Optional[dict[str, Any]] = None):
        super().__init__(message, context=context)
        self.current_step = current_step
        self.attempted_step = attempted_step
        self.recoverable = False
        self.retryable = False
