"""
Order ticket data models.

This module defines immutable data structures for order ticket input, the
statistics derived from it, and the account state the ticket reads from.
Drafts are replaced rather than mutated so derived statistics can be memoized
on the input tuple.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from ..markets.models import Instrument, MarginMode, OrderKind, Side, TimeInForce


class TriggerKind(str, Enum):
    """Conditional order trigger types."""
    TAKE_PROFIT = "tp"
    STOP_LOSS = "sl"


@dataclass(frozen=True)
class OrderDraft:
    """Working state of an order ticket, raw user input included."""

    side: Side
    order_kind: OrderKind
    instrument: Instrument

    # Pricing
    price_input: str = ""                            # Limit price as typed

    # Perpetual sizing
    margin_required: float = 0.0                     # USD committed as margin
    leverage: int = 1

    # Spot sizing
    size_input: str = ""                             # Token size as typed
    size_percent: float = 0.0                        # Percent-of-balance slider

    time_in_force: TimeInForce = TimeInForce.GTC
    reduce_only: bool = False
    margin_mode: MarginMode = MarginMode.CROSS

    # Attached conditional orders, "" when unset
    take_profit: str = ""
    stop_loss: str = ""

    def with_changes(self, **changes) -> 'OrderDraft':
        """Create a new draft with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class DerivedOrderStats:
    """Statistics derived from an order draft and the current market price."""

    price: float                                     # Formatted entry price
    size: float                                      # Formatted size
    size_wire: str                                   # Size as sent to the exchange
    size_display: str                                # Size at instrument decimals
    notional: float                                  # Perp notional or spot cost
    notional_display: str
    margin: float
    margin_display: str

    # TP/SL
    tp_percent: float = 0.0
    sl_percent: float = 0.0
    tp_valid: bool = True
    sl_valid: bool = True

    meets_min_value: bool = False


@dataclass(frozen=True)
class LeverageSetting:
    """Leverage currently applied to a perpetual market."""
    value: int
    mode: MarginMode


@dataclass(frozen=True)
class Position:
    """Open perpetual position as reported by the account collaborator."""

    symbol: str
    size: float                                      # Signed, negative for shorts
    entry_price: float
    leverage: int = 1
    margin_mode: MarginMode = MarginMode.CROSS
    venue: str = ""

    # Attached conditional orders
    tp_order_id: Optional[int] = None
    sl_order_id: Optional[int] = None
    tp_price: Optional[float] = None
    sl_price: Optional[float] = None

    @property
    def is_long(self) -> bool:
        return self.size > 0

    @property
    def side(self) -> Side:
        """Side that opened the position."""
        return Side.BUY if self.is_long else Side.SELL

    @property
    def abs_size(self) -> float:
        return abs(self.size)

    @property
    def attached_order_ids(self) -> tuple[int, ...]:
        """Order ids of every attached TP/SL order."""
        return tuple(oid for oid in (self.tp_order_id, self.sl_order_id) if oid is not None)


@dataclass(frozen=True)
class OpenOrder:
    """Resting order as reported by the account collaborator."""
    symbol: str
    limit_price: float
    size: float
    order_id: int
    side: Side = Side.BUY


@dataclass(frozen=True)
class SpotBalance:
    """Spot token balance."""
    coin: str
    total: float
    hold: float = 0.0

    @property
    def available(self) -> float:
        return self.total - self.hold


@dataclass(frozen=True)
class Delegation:
    """Stake delegated to a validator."""
    validator: str
    amount: float


@dataclass(frozen=True)
class AccountSnapshot:
    """Read-only view of the account used by tickets and balance modals."""

    account_value: float = 0.0
    total_margin_used: float = 0.0
    withdrawable: Optional[float] = None             # Exchange-reported, if present

    positions: tuple[Position, ...] = ()
    open_orders: tuple[OpenOrder, ...] = ()
    spot_balances: tuple[SpotBalance, ...] = ()

    # Staking
    staking_balance: float = 0.0                     # Staked, not delegated
    delegations: tuple[Delegation, ...] = ()

    def position_for(self, symbol: str, venue: str = "") -> Optional[Position]:
        """Open position on a market, None if flat."""
        for position in self.positions:
            if position.symbol == symbol and position.venue == venue:
                return position
        return None

    def spot_balance(self, coin: str) -> Optional[SpotBalance]:
        for balance in self.spot_balances:
            if balance.coin == coin:
                return balance
        return None

    def spot_total(self, coin: str) -> float:
        balance = self.spot_balance(coin)
        return balance.total if balance else 0.0

    def spot_available(self, coin: str) -> float:
        """Spot balance not held by resting orders."""
        balance = self.spot_balance(coin)
        return balance.available if balance else 0.0

    def delegated_to(self, validator: str) -> float:
        return sum(d.amount for d in self.delegations if d.validator == validator)
