"""
Collaborator contracts.

The engine calls these capabilities but does not implement them: signing and
exchange RPC, the bridge, market data, account data and the preference store.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .markets.models import BookSnap, Instrument, MarketCatalog
from .orders.models import AccountSnapshot
from .orders.payload import CancelRequest, LeverageUpdate, OrderRequest
from .transactions.models import SessionPreferences


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of a single exchange call."""
    ok: bool
    message: str = ""
    response: Any = None

    @classmethod
    def success(cls, response: Any = None) -> 'ExchangeResult':
        return cls(ok=True, response=response)

    @classmethod
    def failure(cls, message: str, response: Any = None) -> 'ExchangeResult':
        return cls(ok=False, message=message, response=response)


class ExchangeClient(Protocol):
    """Signing and submission client. Every call is independently failable."""

    async def place_order(self, request: OrderRequest) -> ExchangeResult: ...

    async def cancel_orders(self, request: CancelRequest) -> ExchangeResult: ...

    async def update_leverage(self, update: LeverageUpdate) -> ExchangeResult: ...

    async def withdraw(self, destination: str, amount: str) -> ExchangeResult: ...

    async def usd_class_transfer(self, amount: str, to_perp: bool) -> ExchangeResult: ...

    async def staking_transfer(self, wei: int, deposit: bool) -> ExchangeResult: ...

    async def token_delegate(self, validator: str, wei: int, is_undelegate: bool) -> ExchangeResult: ...


class BridgeClient(Protocol):
    """Deposits into the exchange bridge, amount in USDC base units."""

    async def deposit(self, amount_units: int) -> ExchangeResult: ...


class MarketDataSource(Protocol):
    """Instrument catalog, mid prices and optional live order books."""

    def catalog(self) -> MarketCatalog: ...

    def mid_price(self, instrument: Instrument) -> Optional[float]: ...

    def order_book(self, instrument: Instrument) -> Optional[BookSnap]: ...


class AccountDataSource(Protocol):
    """Read-only account state."""

    def snapshot(self) -> AccountSnapshot: ...


class PreferenceStore(Protocol):
    """Persisted confirmation-skip flags. Read only, at the form → confirm decision."""

    async def read_preferences(self) -> SessionPreferences: ...


# Invoked, never awaited, once the post-success delay elapses
RefreshTrigger = Callable[[], Any]
