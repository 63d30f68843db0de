"""
Order payload builder.

Assembles the exchange payloads for a ticket submission: an optional
leverage update, the primary order and the attached take-profit/stop-loss
trigger orders. Payload objects are immutable and expose `to_wire()` with
exchange field names; wire encoding and signing belong to the client.

Asset ids are always supplied by the caller from `AssetResolver`; nothing in
this module derives one.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

import structlog

from ..errors import ValidationError
from ..logging.config import get_order_logger
from ..markets.models import Instrument, MarginMode, OrderKind, Side, TimeInForce
from ..markets.precision import format_price, format_size
from ..markets.venues import is_isolated_only
from .computation import close_amount, close_execution_price
from .models import DerivedOrderStats, LeverageSetting, OrderDraft, Position, TriggerKind
from .tpsl import TPSLContext, TPSLValidator

logger = structlog.get_logger(__name__)
order_logger = get_order_logger(__name__)

GROUPING_NONE = "na"
GROUPING_POSITION_TPSL = "positionTpsl"


class _WirePayload:
    """Base for payload objects; `to_wire()` uses exchange field names."""

    def to_wire(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class LimitOrderType(_WirePayload):
    tif: TimeInForce

    def to_wire(self) -> dict[str, Any]:
        return {"limit": {"tif": self.tif.value}}


@dataclass(frozen=True)
class TriggerOrderType(_WirePayload):
    trigger_px: str
    tpsl: TriggerKind
    is_market: bool = True

    def to_wire(self) -> dict[str, Any]:
        return {"trigger": {"triggerPx": self.trigger_px, "isMarket": self.is_market, "tpsl": self.tpsl.value}}


@dataclass(frozen=True)
class OrderWire(_WirePayload):
    """Single order inside an order request."""
    asset: int
    is_buy: bool
    price: str
    size: str
    reduce_only: bool
    order_type: Union[LimitOrderType, TriggerOrderType]

    def to_wire(self) -> dict[str, Any]:
        return {
            "a": self.asset,
            "b": self.is_buy,
            "p": self.price,
            "s": self.size,
            "r": self.reduce_only,
            "t": self.order_type.to_wire(),
        }


@dataclass(frozen=True)
class OrderRequest(_WirePayload):
    orders: tuple[OrderWire, ...]
    grouping: str = GROUPING_NONE

    def to_wire(self) -> dict[str, Any]:
        return {"orders": [order.to_wire() for order in self.orders], "grouping": self.grouping}


@dataclass(frozen=True)
class CancelWire(_WirePayload):
    asset: int
    order_id: int

    def to_wire(self) -> dict[str, Any]:
        return {"a": self.asset, "o": self.order_id}


@dataclass(frozen=True)
class CancelRequest(_WirePayload):
    cancels: tuple[CancelWire, ...]

    @property
    def order_ids(self) -> list[int]:
        return [cancel.order_id for cancel in self.cancels]

    def to_wire(self) -> dict[str, Any]:
        return {"cancels": [cancel.to_wire() for cancel in self.cancels]}


@dataclass(frozen=True)
class LeverageUpdate(_WirePayload):
    asset: int
    is_cross: bool
    leverage: int

    def to_wire(self) -> dict[str, Any]:
        return {"asset": self.asset, "isCross": self.is_cross, "leverage": self.leverage}


@dataclass(frozen=True)
class OrderPlan:
    """Ordered steps of a ticket submission."""
    primary: OrderRequest
    leverage_update: Optional[LeverageUpdate] = None
    take_profit: Optional[OrderRequest] = None
    stop_loss: Optional[OrderRequest] = None

    @property
    def steps(self) -> list[tuple[str, _WirePayload]]:
        """(step name, payload) in submission order."""
        steps: list[tuple[str, _WirePayload]] = []
        if self.leverage_update is not None:
            steps.append(("update_leverage", self.leverage_update))
        steps.append(("place_order", self.primary))
        if self.take_profit is not None:
            steps.append(("place_take_profit", self.take_profit))
        if self.stop_loss is not None:
            steps.append(("place_stop_loss", self.stop_loss))
        return steps


@dataclass(frozen=True)
class TPSLEditPlan:
    """Cancel-then-replace plan for a position's conditional orders."""
    cancels: Optional[CancelRequest] = None
    take_profit: Optional[OrderRequest] = None
    stop_loss: Optional[OrderRequest] = None


def resolve_time_in_force(order_kind: OrderKind, selected: TimeInForce) -> TimeInForce:
    """Market orders are always immediate-or-cancel; limit orders keep the selection."""
    if order_kind == OrderKind.MARKET:
        return TimeInForce.IOC
    return selected


def effective_margin_mode(instrument: Instrument, requested: MarginMode) -> MarginMode:
    """Margin mode actually applied: isolated-only markets ignore a cross selection."""
    if is_isolated_only(instrument):
        return MarginMode.ISOLATED
    return requested


def leverage_changed(requested: LeverageSetting, current: Optional[LeverageSetting]) -> bool:
    """Unknown current leverage counts as changed."""
    return current is None or current != requested


def build_trigger_order(
    asset_id: int,
    closing_side: Side,
    trigger_price: float,
    size: str,
    leg: TriggerKind,
    instrument: Instrument
) -> OrderRequest:
    """Reduce-only market trigger order closing `size` when `trigger_price` is crossed."""
    formatted = format_price(trigger_price, instrument.size_decimals, instrument.is_perp)
    order = OrderWire(
        asset=asset_id,
        is_buy=closing_side == Side.BUY,
        price=formatted,
        size=size,
        reduce_only=True,
        order_type=TriggerOrderType(trigger_px=formatted, tpsl=leg)
    )
    return OrderRequest(orders=(order,), grouping=GROUPING_POSITION_TPSL)


def _parse_level(text: str) -> Optional[float]:
    text = (text or "").strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return float("nan")


def build_order_plan(
    draft: OrderDraft,
    asset_id: int,
    stats: DerivedOrderStats,
    execution_price: Optional[float] = None,
    current_leverage: Optional[LeverageSetting] = None
) -> OrderPlan:
    """
    Build the submission plan for an order ticket.

    Args:
        draft: Ticket input
        asset_id: Asset id resolved for the draft's instrument
        stats: Statistics derived from the draft
        execution_price: Slipped price for market orders
        current_leverage: Leverage applied to the market, None when unknown

    Returns:
        OrderPlan with leverage update (perpetuals, when changed), primary
        order and attached TP/SL trigger orders

    Raises:
        ValidationError: Non-positive size, missing market price
        TPSLOrderingError: TP/SL on the wrong side of the entry price
    """
    instrument = draft.instrument

    if stats.size <= 0 or stats.price <= 0:
        raise ValidationError("Invalid size (check price and margin)", field="size")

    tp = _parse_level(draft.take_profit) if instrument.is_perp else None
    sl = _parse_level(draft.stop_loss) if instrument.is_perp else None
    TPSLValidator.validate(stats.price, draft.side, tp, sl).raise_for_errors()

    if draft.order_kind == OrderKind.MARKET:
        if execution_price is None:
            raise ValidationError("No market price available", field="price")
        price = format_price(execution_price, instrument.size_decimals, instrument.is_perp)
        size = format_size(stats.size, instrument.size_decimals, float(price))
    else:
        price = format_price(stats.price, instrument.size_decimals, instrument.is_perp)
        size = stats.size_wire

    leverage_update = None
    if instrument.is_perp:
        mode = effective_margin_mode(instrument, draft.margin_mode)
        if mode != draft.margin_mode:
            logger.info("Isolated-only market, forcing isolated margin", symbol=instrument.symbol,
                        venue=instrument.venue)
        requested = LeverageSetting(value=draft.leverage, mode=mode)
        if leverage_changed(requested, current_leverage):
            leverage_update = LeverageUpdate(
                asset=asset_id,
                is_cross=mode == MarginMode.CROSS,
                leverage=draft.leverage
            )

    primary = OrderRequest(
        orders=(OrderWire(
            asset=asset_id,
            is_buy=draft.side == Side.BUY,
            price=price,
            size=size,
            reduce_only=draft.reduce_only if instrument.is_perp else False,
            order_type=LimitOrderType(tif=resolve_time_in_force(draft.order_kind, draft.time_in_force))
        ),),
        grouping=GROUPING_NONE
    )

    closing_side = draft.side.opposite
    plan = OrderPlan(
        primary=primary,
        leverage_update=leverage_update,
        take_profit=(build_trigger_order(asset_id, closing_side, tp, size, TriggerKind.TAKE_PROFIT, instrument)
                     if tp is not None else None),
        stop_loss=(build_trigger_order(asset_id, closing_side, sl, size, TriggerKind.STOP_LOSS, instrument)
                   if sl is not None else None)
    )

    order_logger.info(
        "Order plan built",
        symbol=instrument.symbol,
        venue=instrument.venue or "default",
        asset_id=asset_id,
        side=draft.side.value,
        order_kind=draft.order_kind.value,
        price=price,
        size=size,
        steps=[name for name, _ in plan.steps]
    )
    return plan


def build_tpsl_edit_plan(
    position: Position,
    instrument: Instrument,
    asset_id: int,
    tp: Optional[float],
    sl: Optional[float],
    mid: float
) -> TPSLEditPlan:
    """
    Build the cancel-then-replace plan for a position's TP/SL.

    Every previously attached TP/SL order is cancelled by order id, then a
    trigger order is placed for each new level that is set. Leaving both
    levels empty removes the existing orders.

    Raises:
        TPSLOrderingError: Level on the wrong side of the entry price
        ValidationError: Nothing to cancel and nothing to place
    """
    TPSLValidator.validate(
        position.entry_price, position.side, tp, sl, TPSLContext.POSITION_EDIT
    ).raise_for_errors()

    order_ids = position.attached_order_ids
    if not order_ids and tp is None and sl is None:
        raise ValidationError("Enter a take profit or stop loss price", field="take_profit")

    cancels = None
    if order_ids:
        cancels = CancelRequest(cancels=tuple(CancelWire(asset=asset_id, order_id=oid) for oid in order_ids))

    size = format_size(position.abs_size, instrument.size_decimals, mid)
    closing_side = position.side.opposite
    return TPSLEditPlan(
        cancels=cancels,
        take_profit=(build_trigger_order(asset_id, closing_side, tp, size, TriggerKind.TAKE_PROFIT, instrument)
                     if tp is not None else None),
        stop_loss=(build_trigger_order(asset_id, closing_side, sl, size, TriggerKind.STOP_LOSS, instrument)
                   if sl is not None else None)
    )


def build_close_order(
    position: Position,
    instrument: Instrument,
    asset_id: int,
    percent: float,
    mid: float
) -> OrderRequest:
    """
    Reduce-only IOC order closing `percent` of a position.

    Raises:
        ValidationError: Percent outside (0, 100], missing mid price or a size
            that rounds to zero
    """
    amount = close_amount(position, percent)
    if not mid or mid <= 0:
        raise ValidationError("No market price available", field="price")

    price = format_price(close_execution_price(position, mid), instrument.size_decimals, True)
    size = format_size(amount, instrument.size_decimals, mid)
    if float(size) <= 0:
        raise ValidationError("Amount to close is too small", field="percent")

    order = OrderWire(
        asset=asset_id,
        is_buy=not position.is_long,
        price=price,
        size=size,
        reduce_only=True,
        order_type=LimitOrderType(tif=TimeInForce.IOC)
    )
    return OrderRequest(orders=(order,), grouping=GROUPING_NONE)
