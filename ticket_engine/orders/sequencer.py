"""
Submission sequencing.

Exchange actions are not applied atomically: a ticket submission is a chain of
independent calls (leverage update, primary order, take-profit, stop-loss) and
a TP/SL edit is cancel-then-replace. Each call is awaited in turn. A failure
before anything was applied is reported as a clean SubmissionError; a failure
after at least one step was applied is reported as PartialSequenceError so the
intermediate account state is never mistaken for a clean failure. Nothing is
rolled back automatically.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable

import structlog

from ..errors import PartialSequenceError, SubmissionError
from ..interfaces import ExchangeClient, ExchangeResult
from ..logging.config import get_order_logger
from .payload import OrderPlan, TPSLEditPlan

logger = structlog.get_logger(__name__)
order_logger = get_order_logger(__name__)

_STEP_LABELS = {
    "update_leverage": "Leverage update",
    "place_order": "Order",
    "place_take_profit": "Take profit order",
    "place_stop_loss": "Stop loss order",
    "cancel_tpsl": "Cancelling existing TP/SL",
}


@dataclass
class SequenceReport:
    """Steps applied by a sequence, with each exchange result."""
    completed_steps: list[str] = field(default_factory=list)
    results: dict[str, ExchangeResult] = field(default_factory=dict)

    def record(self, step: str, result: ExchangeResult) -> None:
        self.completed_steps.append(step)
        self.results[step] = result


class OrderSequencer:
    """Executes order and TP/SL edit plans step by step against an exchange client."""

    def __init__(self, client: ExchangeClient):
        self.client = client
        self.logger = logger

    async def _call(self, step: str, call: Callable[[], Awaitable[ExchangeResult]]) -> ExchangeResult:
        """Await one exchange call, converting a raised exception into a failed result."""
        try:
            result = await call()
        except Exception as exc:
            self.logger.error("Exchange call raised", step=step, error=str(exc), error_type=type(exc).__name__)
            return ExchangeResult.failure(str(exc) or type(exc).__name__)

        if result is None:
            return ExchangeResult.failure(f"{_STEP_LABELS.get(step, step)} returned no result")
        return result

    def _fail(self, step: str, result: ExchangeResult, report: SequenceReport,
              unprotected: bool = False) -> None:
        message = result.message or f"{_STEP_LABELS.get(step, step)} failed"

        order_logger.error(
            "Submission step failed",
            failed_step=step,
            completed_steps=list(report.completed_steps),
            unprotected=unprotected,
            error=message
        )

        if not report.completed_steps:
            raise SubmissionError(message, step=step, context={"response": result.response})

        if unprotected:
            message = (f"{message}. Existing TP/SL orders were cancelled and the position "
                       f"has no TP/SL attached")
        else:
            applied = ", ".join(_STEP_LABELS.get(s, s) for s in report.completed_steps)
            message = f"{message}. Already applied: {applied}"

        raise PartialSequenceError(
            message,
            failed_step=step,
            completed_steps=list(report.completed_steps),
            unprotected=unprotected,
            context={"response": result.response}
        )

    async def execute_order_plan(self, plan: OrderPlan) -> SequenceReport:
        """
        Submit an order plan: leverage → primary → take-profit → stop-loss.

        Raises:
            SubmissionError: First step failed, nothing applied
            PartialSequenceError: A later step failed after earlier steps applied
        """
        report = SequenceReport()
        calls = {
            "update_leverage": self.client.update_leverage,
            "place_order": self.client.place_order,
            "place_take_profit": self.client.place_order,
            "place_stop_loss": self.client.place_order,
        }

        for step, payload in plan.steps:
            order_logger.info("Submitting step", step=step, payload=payload)
            result = await self._call(step, lambda: calls[step](payload))
            if not result.ok:
                self._fail(step, result, report)
            report.record(step, result)

        order_logger.info("Order plan submitted", completed_steps=report.completed_steps)
        return report

    async def execute_tpsl_edit(self, plan: TPSLEditPlan) -> SequenceReport:
        """
        Cancel existing TP/SL orders, then place the replacements.

        Raises:
            SubmissionError: Cancellation failed, nothing applied
            PartialSequenceError: Placement failed after a successful cancel;
                `unprotected` is set because the position has no TP/SL left
        """
        report = SequenceReport()

        if plan.cancels is not None:
            order_logger.info("Cancelling attached TP/SL", order_ids=plan.cancels.order_ids)
            result = await self._call("cancel_tpsl", lambda: self.client.cancel_orders(plan.cancels))
            if not result.ok:
                self._fail("cancel_tpsl", result, report)
            report.record("cancel_tpsl", result)

        cancelled = plan.cancels is not None
        for step, request in (("place_take_profit", plan.take_profit), ("place_stop_loss", plan.stop_loss)):
            if request is None:
                continue
            order_logger.info("Submitting step", step=step, payload=request)
            result = await self._call(step, lambda: self.client.place_order(request))
            if not result.ok:
                self._fail(step, result, report, unprotected=cancelled and len(report.completed_steps) == 1)
            report.record(step, result)

        order_logger.info("TP/SL edit submitted", completed_steps=report.completed_steps)
        return report

    async def execute_single(self, step: str, call: Callable[[], Awaitable[ExchangeResult]]) -> ExchangeResult:
        """
        Single-call action (close, transfer, withdraw, deposit).

        Raises:
            SubmissionError: Call failed or raised
        """
        result = await self._call(step, call)
        if not result.ok:
            self._fail(step, result, SequenceReport())
        order_logger.info("Action submitted", step=step)
        return result

