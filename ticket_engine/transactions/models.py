"""
Transaction step machine data models.
"""

from dataclasses import dataclass
from enum import Enum


class TransactionStep(str, Enum):
    """Steps of a transactional modal. Exactly one is active per modal."""
    FORM = "form"
    CONFIRM = "confirm"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


# Unidirectional except error → form (retry) and confirm → form (back)
ALLOWED_TRANSITIONS: dict[TransactionStep, frozenset[TransactionStep]] = {
    TransactionStep.FORM: frozenset({TransactionStep.CONFIRM, TransactionStep.PENDING}),
    TransactionStep.CONFIRM: frozenset({TransactionStep.FORM, TransactionStep.PENDING}),
    TransactionStep.PENDING: frozenset({TransactionStep.SUCCESS, TransactionStep.ERROR}),
    TransactionStep.SUCCESS: frozenset(),
    TransactionStep.ERROR: frozenset({TransactionStep.FORM}),
}


class ConfirmationKind(str, Enum):
    """Which skip-confirmation preference, if any, applies to an action."""
    OPEN_ORDER = "open_order"
    CLOSE_POSITION = "close_position"
    ALWAYS = "always"                                # No skip preference, always confirm


@dataclass(frozen=True)
class SessionPreferences:
    """Confirmation-skip flags owned by the preference store."""
    skip_open_order_confirmation: bool = False
    skip_close_position_confirmation: bool = False

    def skips(self, kind: ConfirmationKind) -> bool:
        """Whether the confirm step is bypassed for an action class."""
        if kind == ConfirmationKind.OPEN_ORDER:
            return self.skip_open_order_confirmation
        if kind == ConfirmationKind.CLOSE_POSITION:
            return self.skip_close_position_confirmation
        return False


@dataclass(frozen=True)
class StepSnapshot:
    """Observable state of a step machine."""
    step: TransactionStep
    error: str = ""
    error_retryable: bool = True
    submissions: int = 0                             # Attempts that reached the network
