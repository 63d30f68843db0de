"""
Order computation engine.

Converts loose ticket input (margin amount, leverage, percent-of-balance,
typed price) into the exchange-accurate price, size and notional of an order.
Everything here is a pure function of its arguments: inputs are frozen
dataclasses and nothing is mutated, so feeding the same inputs always yields
the same outputs and the derived statistics can be memoized.
"""

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import structlog

from ..config.defaults import PrecisionParams, SlippageParams, VenueParams
from ..errors import ValidationError
from ..markets.models import BookSnap, Instrument, MarketKind, OrderKind, Side
from ..markets.precision import fixed, format_price, format_size, parse_amount
from ..markets.venues import venue_collateral
from .models import AccountSnapshot, DerivedOrderStats, OrderDraft, Position
from .tpsl import TPSLValidator, price_move_percent

logger = structlog.get_logger(__name__)

_DEFAULT_PRECISION = PrecisionParams()
_DEFAULT_SLIPPAGE = SlippageParams()
_DEFAULT_VENUES = VenueParams()


@dataclass(frozen=True)
class PerpSizing:
    """Perpetual order sizing from margin and leverage."""
    formatted_price: str
    notional: float                                  # margin × leverage
    raw_size: float                                  # notional / formatted price
    size: str                                        # Wire size


def market_execution_price(
    side: Side,
    kind: MarketKind,
    mid: Optional[float],
    book: Optional[BookSnap] = None,
    slippage: SlippageParams = _DEFAULT_SLIPPAGE
) -> Optional[float]:
    """
    Derive the limit price sent with a market (IOC) order.

    With a live book the order is priced against the best ask (buy) or best
    bid (sell) with the book slippage allowance, for both market kinds. With no
    book the mid price is offset by a protective margin so the order still
    clears against a stale mid: 0.1% for perpetuals, 1% for spot.

    Returns:
        Unformatted execution price, None when neither a book side nor a mid
        price is available
    """
    if book is not None:
        if side == Side.BUY and book.best_ask is not None:
            return book.best_ask * (1 + slippage.book_slippage)
        if side == Side.SELL and book.best_bid is not None:
            return book.best_bid * (1 - slippage.book_slippage)

    if mid is None or not math.isfinite(mid) or mid <= 0:
        return None

    offset = slippage.perp_mid_offset if kind == MarketKind.PERPETUAL else slippage.spot_mid_offset
    return mid * (1 + side.sign * offset)


def market_display_price(side: Side, mid: Optional[float], book: Optional[BookSnap] = None) -> Optional[float]:
    """Unslipped price shown on a market ticket: best ask/bid, else mid."""
    if book is not None:
        if side == Side.BUY and book.best_ask is not None:
            return book.best_ask
        if side == Side.SELL and book.best_bid is not None:
            return book.best_bid
    if mid is None or not math.isfinite(mid) or mid <= 0:
        return None
    return mid


def validate_leverage(leverage: int, instrument: Instrument) -> None:
    """Leverage must be an integer between 1 and the instrument maximum."""
    if isinstance(leverage, bool) or not isinstance(leverage, int):
        raise ValidationError(
            f"Leverage must be a whole number, got {leverage!r}",
            field="leverage"
        )
    max_leverage = instrument.max_leverage or 1
    if leverage < 1 or leverage > max_leverage:
        raise ValidationError(
            f"Leverage must be between 1x and {max_leverage}x",
            field="leverage",
            context={"leverage": leverage, "max_leverage": max_leverage, "symbol": instrument.symbol}
        )


def compute_perp_sizing(
    margin: float,
    leverage: int,
    price: float,
    instrument: Instrument,
    params: PrecisionParams = _DEFAULT_PRECISION
) -> PerpSizing:
    """
    Size a perpetual order from margin and leverage.

        notional = margin × leverage
        raw_size = notional / formatted_price
        size     = format_size(raw_size, size_decimals, formatted_price)

    Raises:
        ValidationError: Leverage out of range, negative margin or
            non-positive price
    """
    validate_leverage(leverage, instrument)

    if not math.isfinite(margin) or margin < 0:
        raise ValidationError("Margin must be a positive amount", field="margin_required")

    formatted_price = format_price(price, instrument.size_decimals, True, params)
    price_value = float(formatted_price)
    if price_value <= 0:
        raise ValidationError("Price must be greater than 0", field="price")

    notional = margin * leverage
    raw_size = notional / price_value
    return PerpSizing(
        formatted_price=formatted_price,
        notional=notional,
        raw_size=raw_size,
        size=format_size(raw_size, instrument.size_decimals, price_value)
    )


def compute_spot_size(
    side: Side,
    percent: float,
    price: float,
    usdc_balance: float,
    token_balance: float,
    size_decimals: int
) -> str:
    """
    Spot size from the percent-of-balance slider.

    Buying spends `usdc_balance × percent / 100` at `price`; selling sells
    `token_balance × percent / 100` directly. Returns the size at instrument
    decimals as it is written back into the size field.
    """
    percent = min(max(percent, 0.0), 100.0)

    if side == Side.BUY:
        if not price or price <= 0:
            return fixed(0.0, size_decimals)
        raw = usdc_balance * (percent / 100) / price
    else:
        raw = token_balance * (percent / 100)

    return fixed(raw, size_decimals)


def spot_cost(price: float, size: float) -> float:
    """USD cost (buy) or proceeds (sell) of a spot order."""
    if not price or not size:
        return 0.0
    return price * size


def margin_from_percent(balance: float, percent: float) -> float:
    """Margin committed by the size slider."""
    if balance <= 0:
        return 0.0
    return balance * min(max(percent, 0.0), 100.0) / 100


def tradeable_balance(
    account: AccountSnapshot,
    instrument: Optional[Instrument] = None,
    venues: VenueParams = _DEFAULT_VENUES
) -> float:
    """
    Balance available to margin a new perpetual order.

    Alternate venues margined in a non-USDC token use the spot balance of that
    token. Otherwise the exchange-reported withdrawable figure is used when
    present, falling back to

        account_value - margin_used - Σ(open order notional / position leverage)

    This fallback is an approximation. Each open order is divided by the
    leverage of the position on its own market (1x when flat), which does not
    account for cross-margin interactions between markets.
    """
    if instrument is not None and instrument.is_perp:
        collateral = venue_collateral(instrument.venue, venues)
        if collateral != venues.default_collateral:
            return account.spot_total(collateral)

    if account.withdrawable is not None:
        return account.withdrawable

    if not account.account_value:
        return 0.0

    open_orders_margin = 0.0
    for order in account.open_orders:
        position = account.position_for(order.symbol)
        order_leverage = position.leverage if position and position.leverage else 1
        open_orders_margin += (order.limit_price * order.size) / order_leverage

    fallback = account.account_value - account.total_margin_used - open_orders_margin
    logger.debug(
        "Tradeable balance from fallback approximation",
        account_value=account.account_value,
        margin_used=account.total_margin_used,
        open_orders_margin=open_orders_margin,
        tradeable=fallback
    )
    return fallback


def entry_price_for(draft: OrderDraft, mid: Optional[float], book: Optional[BookSnap]) -> float:
    """Entry price the ticket computes against: typed limit price, or the market display price."""
    if draft.order_kind == OrderKind.LIMIT:
        return parse_amount(draft.price_input)
    return market_display_price(draft.side, mid, book) or 0.0


def _tpsl_fields(draft: OrderDraft, entry: float) -> dict:
    tp = parse_amount(draft.take_profit) or None
    sl = parse_amount(draft.stop_loss) or None
    if not entry:
        return {"tp_percent": 0.0, "sl_percent": 0.0, "tp_valid": True, "sl_valid": True}

    result = TPSLValidator.validate(entry, draft.side, tp, sl)
    return {
        "tp_percent": price_move_percent(entry, draft.side, tp) if tp else 0.0,
        "sl_percent": price_move_percent(entry, draft.side, sl) if sl else 0.0,
        "tp_valid": result.tp_valid,
        "sl_valid": result.sl_valid,
    }


def _empty_stats(size_decimals: int, **tpsl) -> DerivedOrderStats:
    return DerivedOrderStats(
        price=0.0,
        size=0.0,
        size_wire="0",
        size_display=fixed(0.0, size_decimals),
        notional=0.0,
        notional_display="0.00",
        margin=0.0,
        margin_display="0.00",
        meets_min_value=False,
        **tpsl
    )


@lru_cache(maxsize=256)
def derive_perp_stats(
    draft: OrderDraft,
    mid: Optional[float],
    book: Optional[BookSnap] = None,
    min_order_value: float = _DEFAULT_PRECISION.min_order_value
) -> DerivedOrderStats:
    """
    Derive perpetual ticket statistics.

    Pure and memoized on the (frozen) input tuple. Leverage outside the
    instrument's range raises ValidationError, an incomplete ticket (no price
    or no margin) yields zeroed statistics.
    """
    instrument = draft.instrument
    entry = entry_price_for(draft, mid, book)
    tpsl = _tpsl_fields(draft, entry)

    if entry <= 0 or draft.margin_required <= 0:
        validate_leverage(draft.leverage, instrument)
        return _empty_stats(instrument.size_decimals, **tpsl)

    sizing = compute_perp_sizing(draft.margin_required, draft.leverage, entry, instrument)
    price = float(sizing.formatted_price)
    size = float(sizing.size)

    return DerivedOrderStats(
        price=price,
        size=size,
        size_wire=sizing.size,
        size_display=fixed(size, instrument.size_decimals),
        notional=sizing.notional,
        notional_display=fixed(sizing.notional, 2),
        margin=draft.margin_required,
        margin_display=fixed(draft.margin_required, 2),
        meets_min_value=size * price >= min_order_value,
        **tpsl
    )


@lru_cache(maxsize=256)
def derive_spot_stats(
    draft: OrderDraft,
    mid: Optional[float],
    book: Optional[BookSnap] = None,
    min_order_value: float = _DEFAULT_PRECISION.min_order_value
) -> DerivedOrderStats:
    """Derive spot ticket statistics: size as typed, cost = price × size."""
    instrument = draft.instrument
    entry = entry_price_for(draft, mid, book)
    size_value = parse_amount(draft.size_input)

    if entry <= 0 or size_value <= 0:
        return _empty_stats(instrument.size_decimals)

    price = float(format_price(entry, instrument.size_decimals, False))
    size_wire = format_size(size_value, instrument.size_decimals, price)
    size = float(size_wire)
    cost = spot_cost(price, size)

    return DerivedOrderStats(
        price=price,
        size=size,
        size_wire=size_wire,
        size_display=fixed(size, instrument.size_decimals),
        notional=cost,
        notional_display=fixed(cost, 2),
        margin=cost,
        margin_display=fixed(cost, 2),
        meets_min_value=cost >= min_order_value
    )


def close_amount(position: Position, percent: float) -> float:
    """Token amount closed by the close-position slider."""
    if percent <= 0:
        raise ValidationError("Please select an amount to close", field="percent")
    if percent > 100:
        raise ValidationError("Percentage cannot exceed 100%", field="percent")
    return position.abs_size * (percent / 100)


def close_execution_price(
    position: Position,
    mid: float,
    slippage: SlippageParams = _DEFAULT_SLIPPAGE
) -> float:
    """Reduce-only IOC price: below mid when closing a long, above when closing a short."""
    if position.is_long:
        return mid * (1 - slippage.close_position_offset)
    return mid * (1 + slippage.close_position_offset)
