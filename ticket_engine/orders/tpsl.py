"""
Take-profit / stop-loss validation.

Enforces strict directional ordering between entry, take-profit and
stop-loss for the side of the position:

    buy:  stop_loss < entry < take_profit
    sell: take_profit < entry < stop_loss

Absent legs are always valid. Violations produce a side-aware message and
block submission.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..errors import TPSLOrderingError
from ..logging.config import get_order_logger, log_validation_decision
from ..markets.models import Side
from .models import TriggerKind

order_logger = get_order_logger(__name__)


class TPSLContext(str, Enum):
    """Flow the TP/SL levels are entered in. Messages differ between the two."""
    NEW_ORDER = "new_order"
    POSITION_EDIT = "position_edit"


_MESSAGES = {
    TPSLContext.NEW_ORDER: {
        (TriggerKind.TAKE_PROFIT, Side.BUY): "Take Profit price must be higher than entry price for long positions",
        (TriggerKind.TAKE_PROFIT, Side.SELL): "Take Profit price must be lower than entry price for short positions",
        (TriggerKind.STOP_LOSS, Side.BUY): "Stop Loss price must be lower than entry price for long positions",
        (TriggerKind.STOP_LOSS, Side.SELL): "Stop Loss price must be higher than entry price for short positions",
    },
    TPSLContext.POSITION_EDIT: {
        (TriggerKind.TAKE_PROFIT, Side.BUY): "Take profit must be above entry price for long positions",
        (TriggerKind.TAKE_PROFIT, Side.SELL): "Take profit must be below entry price for short positions",
        (TriggerKind.STOP_LOSS, Side.BUY): "Stop loss must be below entry price for long positions",
        (TriggerKind.STOP_LOSS, Side.SELL): "Stop loss must be above entry price for short positions",
    },
}

_INVALID_PRICE = {
    TriggerKind.TAKE_PROFIT: "Invalid take profit price",
    TriggerKind.STOP_LOSS: "Invalid stop loss price",
}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of TP/SL validation."""
    tp_valid: bool = True
    sl_valid: bool = True
    errors: tuple[tuple[TriggerKind, str], ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.tp_valid and self.sl_valid

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0][1] if self.errors else None

    def raise_for_errors(self) -> None:
        """Raise TPSLOrderingError for the first violation, if any."""
        if self.errors:
            leg, message = self.errors[0]
            raise TPSLOrderingError(message, leg=leg.value)


def _leg_is_ordered(leg: TriggerKind, side: Side, entry: float, target: float) -> bool:
    # tp lies in the direction of the side, sl against it
    direction = side.sign if leg == TriggerKind.TAKE_PROFIT else -side.sign
    return (target - entry) * direction > 0


class TPSLValidator:
    """Validates attached take-profit and stop-loss levels."""

    @staticmethod
    def check_leg(
        leg: TriggerKind,
        entry: float,
        side: Side,
        target: Optional[float],
        context: TPSLContext = TPSLContext.NEW_ORDER
    ) -> Optional[str]:
        """Validate one leg, returning the violation message or None."""
        if target is None:
            return None
        if not math.isfinite(target) or target <= 0:
            return _INVALID_PRICE[leg]
        if not _leg_is_ordered(leg, side, entry, target):
            return _MESSAGES[context][(leg, side)]
        return None

    @staticmethod
    def validate(
        entry: float,
        side: Side,
        tp: Optional[float] = None,
        sl: Optional[float] = None,
        context: TPSLContext = TPSLContext.NEW_ORDER
    ) -> ValidationResult:
        """
        Validate TP/SL levels against the entry price.

        Args:
            entry: Entry price of the order or position
            side: Side that opens the position
            tp: Take-profit trigger price, None when unset
            sl: Stop-loss trigger price, None when unset
            context: Fresh order ticket or existing position edit

        Returns:
            ValidationResult with per-leg flags and ordered messages
        """
        errors = []
        for leg, target in ((TriggerKind.TAKE_PROFIT, tp), (TriggerKind.STOP_LOSS, sl)):
            message = TPSLValidator.check_leg(leg, entry, side, target, context)
            if message:
                errors.append((leg, message))

        failed = {leg for leg, _ in errors}
        result = ValidationResult(
            tp_valid=TriggerKind.TAKE_PROFIT not in failed,
            sl_valid=TriggerKind.STOP_LOSS not in failed,
            errors=tuple(errors)
        )

        if tp is not None or sl is not None:
            log_validation_decision(
                order_logger,
                check="tpsl_ordering",
                passed=result.ok,
                action=context.value,
                reason=result.first_error or "ordered",
                context={"side": side.value, "entry": entry, "tp": tp, "sl": sl}
            )
        return result


def price_move_percent(entry: float, side: Side, target: float) -> float:
    """
    Price move to the target as a percent of entry, signed by side.

    Used on fresh order tickets. A positive value is a move in favour of the
    position.
    """
    if not entry:
        return 0.0
    return side.sign * (target - entry) / entry * 100


def return_on_margin_percent(entry: float, side: Side, target: float, leverage: int) -> float:
    """
    Return on margin at the target: the price move scaled by leverage.

    Used when editing TP/SL on an existing position.
    """
    return price_move_percent(entry, side, target) * leverage
