"""
Transactional step machine.

Every money-moving modal follows the same protocol:

    form → confirm → pending → success | error
    form → pending                (skip-confirmation preference set)
    confirm → form                (back)
    error → form                  (retry, entered values preserved;
                                   refused after a partially applied sequence)

Only one attempt may be in flight per machine: a second submit or confirm
while an attempt is pending is a no-op. On success the account refresh is
scheduled, never awaited.
"""

from typing import Any, Optional

import structlog

from ..errors import MarketNotFound, StepTransitionError, TicketEngineError, ValidationError
from ..interfaces import PreferenceStore, RefreshTrigger
from ..logging.config import get_step_logger, log_step_transition, log_validation_decision
from .actions import TransactionAction
from .models import (
    ALLOWED_TRANSITIONS,
    ConfirmationKind,
    SessionPreferences,
    StepSnapshot,
    TransactionStep,
)
from .scheduler import RefreshScheduler
from .session import SessionContext

logger = structlog.get_logger(__name__)
step_logger = get_step_logger(__name__)


class TransactionStepMachine:
    """Drives one action through the form/confirm/pending/success/error steps."""

    def __init__(
        self,
        action: TransactionAction,
        session: SessionContext,
        preferences: Optional[PreferenceStore] = None,
        refresh: Optional[RefreshTrigger] = None,
        scheduler: Optional[RefreshScheduler] = None
    ):
        self.logger = logger
        self.action = action
        self.session = session
        self.preferences = preferences
        self.refresh = refresh
        self.scheduler = scheduler or RefreshScheduler()

        self.step = TransactionStep.FORM
        self.error: str = ""
        self.error_retryable = True
        self.result: Any = None
        self.submissions = 0
        self.closed = False
        self.disposed = False
        self._busy = False

    def snapshot(self) -> StepSnapshot:
        return StepSnapshot(
            step=self.step,
            error=self.error,
            error_retryable=self.error_retryable,
            submissions=self.submissions
        )

    def _transition(self, to_step: TransactionStep, trigger: str, context: Optional[dict] = None) -> None:
        if to_step not in ALLOWED_TRANSITIONS[self.step]:
            raise StepTransitionError(
                f"Invalid step transition from {self.step.value} to {to_step.value}",
                current_step=self.step.value,
                attempted_step=to_step.value,
                context={"action": self.action.name}
            )
        log_step_transition(
            step_logger,
            action=self.action.name,
            from_step=self.step.value,
            to_step=to_step.value,
            trigger=trigger,
            context=context
        )
        self.step = to_step

    def _record_error(self, exc: TicketEngineError) -> None:
        self.error = exc.message
        self.error_retryable = exc.retryable

    async def _read_preferences(self) -> SessionPreferences:
        if self.action.confirmation == ConfirmationKind.ALWAYS or self.preferences is None:
            return SessionPreferences()
        try:
            return await self.preferences.read_preferences()
        except Exception as exc:
            self.logger.warning(
                "Preference read failed, confirmation required",
                action=self.action.name,
                error=str(exc)
            )
            return SessionPreferences()

    async def submit(self) -> TransactionStep:
        """
        Submit the form.

        Invalid input keeps the form step and records the message. Otherwise
        the action moves to confirm, or straight to pending when the user has
        opted out of confirmations for this action class.
        """
        if self.step != TransactionStep.FORM or self._busy:
            self.logger.debug("Submit ignored", action=self.action.name, step=self.step.value)
            return self.step

        self._busy = True
        try:
            try:
                self.action.validate()
            except (ValidationError, MarketNotFound) as exc:
                self._record_error(exc)
                log_validation_decision(
                    step_logger,
                    check="form_input",
                    passed=False,
                    action=self.action.name,
                    reason=exc.message,
                    context={"field": getattr(exc, "field", None)}
                )
                return self.step

            self.error = ""
            self.error_retryable = True

            preferences = await self._read_preferences()
            if preferences.skips(self.action.confirmation):
                self._transition(TransactionStep.PENDING, "submit_skip_confirmation")
                await self._execute()
            else:
                self._transition(TransactionStep.CONFIRM, "submit")
        finally:
            self._busy = False

        return self.step

    async def confirm(self) -> TransactionStep:
        """Confirm and submit. No-op unless on the confirm step."""
        if self.step != TransactionStep.CONFIRM or self._busy:
            self.logger.debug("Confirm ignored", action=self.action.name, step=self.step.value)
            return self.step

        self._busy = True
        try:
            self._transition(TransactionStep.PENDING, "confirm")
            await self._execute()
        finally:
            self._busy = False

        return self.step

    async def _execute(self) -> None:
        self.error = ""
        self.error_retryable = True
        self.submissions += 1

        try:
            self.result = await self.action.execute(self.session)
        except TicketEngineError as exc:
            self._record_error(exc)
            self._transition(TransactionStep.ERROR, "execution_failed", {
                "error": exc.message,
                "error_type": type(exc).__name__,
                "retryable": exc.retryable
            })
            return
        except Exception as exc:
            self.logger.error("Action raised unexpectedly", action=self.action.name,
                              error=str(exc), exc_info=True)
            self.error = str(exc) or "Transaction failed"
            self.error_retryable = True
            self._transition(TransactionStep.ERROR, "execution_failed", {"error": self.error})
            return

        self._transition(TransactionStep.SUCCESS, "execution_succeeded")
        if self.refresh is not None and not self.disposed:
            self.scheduler.schedule(self.action.refresh_delay, self.refresh)

    def back(self) -> TransactionStep:
        """Return from confirm to the form."""
        if self.step == TransactionStep.CONFIRM:
            self._transition(TransactionStep.FORM, "back")
        return self.step

    def retry(self) -> TransactionStep:
        """
        Return from error to the form, keeping the entered values.

        Refused for non-retryable errors (partially applied sequences, markets
        that left the catalog); the only exit from those is close.
        """
        if self.step == TransactionStep.ERROR and not self.error_retryable:
            self.logger.warning("Retry refused", action=self.action.name, error=self.error)
            return self.step
        if self.step == TransactionStep.ERROR:
            self._transition(TransactionStep.FORM, "retry")
            self.error = ""
            self.error_retryable = True
        return self.step

    def close(self) -> bool:
        """
        Dismiss the modal.

        Refused while pending unless the action is fire-and-forget, in which
        case the attempt keeps running. A scheduled refresh still fires.
        """
        if self.step == TransactionStep.PENDING and not self.action.dismissible_while_pending:
            self.logger.debug("Close blocked while pending", action=self.action.name)
            return False
        self.closed = True
        return True

    def dispose(self) -> None:
        """Tear down: drop a refresh that has not fired yet. An attempt still in flight schedules none."""
        self.scheduler.cancel()
        self.disposed = True
        self.closed = True
