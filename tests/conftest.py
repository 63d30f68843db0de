"""Pytest configuration and shared fixtures."""

from typing import Any, Optional

import pytest

from ticket_engine.config.defaults import get_default_config
from ticket_engine.interfaces import ExchangeResult
from ticket_engine.markets.models import (
    BookLevel,
    BookSnap,
    Instrument,
    MarketCatalog,
    MarketKind,
    OrderKind,
    Side,
)
from ticket_engine.orders.models import AccountSnapshot, OrderDraft, Position, SpotBalance
from ticket_engine.transactions.models import SessionPreferences
from ticket_engine.transactions.session import SessionContext


class FakeMarketData:
    """In-memory market data collaborator."""

    def __init__(self, catalog: MarketCatalog, mids: Optional[dict[str, float]] = None,
                 books: Optional[dict[str, BookSnap]] = None):
        self._catalog = catalog
        self.mids = mids or {}
        self.books = books or {}

    def catalog(self) -> MarketCatalog:
        return self._catalog

    def mid_price(self, instrument: Instrument) -> Optional[float]:
        return self.mids.get(instrument.key)

    def order_book(self, instrument: Instrument) -> Optional[BookSnap]:
        return self.books.get(instrument.key)


class FakeAccountData:
    """In-memory account collaborator."""

    def __init__(self, account: Optional[AccountSnapshot] = None):
        self.account = account or AccountSnapshot()

    def snapshot(self) -> AccountSnapshot:
        return self.account


class FakeExchangeClient:
    """
    Records every call.

    `fail` maps a method name to a failure message or an exception to raise;
    `fail_after` lets that many calls of the method succeed first.
    """

    def __init__(self, fail: Optional[dict[str, Any]] = None, fail_after: Optional[dict[str, int]] = None):
        self.calls: list[tuple[str, Any]] = []
        self.fail = fail or {}
        self.fail_after = fail_after or {}

    async def _respond(self, method: str, payload: Any) -> ExchangeResult:
        previous = self.methods().count(method)
        self.calls.append((method, payload))
        failure = self.fail.get(method) if previous >= self.fail_after.get(method, 0) else None
        if isinstance(failure, BaseException):
            raise failure
        if failure:
            return ExchangeResult.failure(failure)
        return ExchangeResult.success({"status": "ok"})

    async def place_order(self, request):
        return await self._respond("place_order", request)

    async def cancel_orders(self, request):
        return await self._respond("cancel_orders", request)

    async def update_leverage(self, update):
        return await self._respond("update_leverage", update)

    async def withdraw(self, destination, amount):
        return await self._respond("withdraw", (destination, amount))

    async def usd_class_transfer(self, amount, to_perp):
        return await self._respond("usd_class_transfer", (amount, to_perp))

    async def staking_transfer(self, wei, deposit):
        return await self._respond("staking_transfer", (wei, deposit))

    async def token_delegate(self, validator, wei, is_undelegate):
        return await self._respond("token_delegate", (validator, wei, is_undelegate))

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


class FakeBridge:
    def __init__(self):
        self.deposits: list[int] = []

    async def deposit(self, amount_units: int) -> ExchangeResult:
        self.deposits.append(amount_units)
        return ExchangeResult.success()


class FakePreferenceStore:
    def __init__(self, preferences: Optional[SessionPreferences] = None):
        self.preferences = preferences or SessionPreferences()
        self.reads = 0

    async def read_preferences(self) -> SessionPreferences:
        self.reads += 1
        return self.preferences


@pytest.fixture
def config():
    """Default engine configuration."""
    return get_default_config()


@pytest.fixture
def btc_perp() -> Instrument:
    return Instrument(symbol="BTC", kind=MarketKind.PERPETUAL, index=0, size_decimals=5, max_leverage=40)


@pytest.fixture
def eth_perp() -> Instrument:
    """Perpetual with three size decimals at index 1."""
    return Instrument(symbol="ETH", kind=MarketKind.PERPETUAL, index=1, size_decimals=3, max_leverage=25)


@pytest.fixture
def nvda_perp() -> Instrument:
    """Alternate-venue perpetual."""
    return Instrument(symbol="NVDA", kind=MarketKind.PERPETUAL, index=3, size_decimals=3,
                      venue="xyz", max_leverage=10, only_isolated=True)


@pytest.fixture
def purr_spot() -> Instrument:
    return Instrument(symbol="PURR/USDC", kind=MarketKind.SPOT, index=7, size_decimals=0)


@pytest.fixture
def catalog(btc_perp, eth_perp, nvda_perp, purr_spot) -> MarketCatalog:
    return MarketCatalog(perps=(btc_perp, eth_perp, nvda_perp), spots=(purr_spot,))


@pytest.fixture
def eth_book() -> BookSnap:
    return BookSnap(
        bids=(BookLevel(99.5, 10.0), BookLevel(99.0, 5.0)),
        asks=(BookLevel(100.5, 8.0), BookLevel(101.0, 4.0)),
    )


@pytest.fixture
def market_data(catalog) -> FakeMarketData:
    """Mid prices for every catalog entry, no order books."""
    return FakeMarketData(
        catalog,
        mids={"BTC": 111000.0, "ETH": 100.0, "xyz:NVDA": 180.0, "PURR/USDC": 0.2},
    )


@pytest.fixture
def account() -> AccountSnapshot:
    return AccountSnapshot(
        account_value=1000.0,
        total_margin_used=100.0,
        withdrawable=800.0,
        spot_balances=(
            SpotBalance(coin="USDC", total=500.0),
            SpotBalance(coin="PURR", total=1000.0, hold=200.0),
            SpotBalance(coin="HYPE", total=20.0),
        ),
        staking_balance=10.0,
    )


@pytest.fixture
def account_data(account) -> FakeAccountData:
    return FakeAccountData(account)


@pytest.fixture
def client() -> FakeExchangeClient:
    return FakeExchangeClient()


@pytest.fixture
def session(client) -> SessionContext:
    return SessionContext.connected("0xabc", trading_client=client, bridge_client=FakeBridge())


@pytest.fixture
def long_position() -> Position:
    """Long 2 ETH from 100 with TP and SL attached."""
    return Position(symbol="ETH", size=2.0, entry_price=100.0, leverage=4,
                    tp_order_id=111, sl_order_id=222, tp_price=110.0, sl_price=95.0)


@pytest.fixture
def perp_draft(eth_perp) -> OrderDraft:
    """Limit buy: 50 margin at 4x, price 100."""
    return OrderDraft(
        side=Side.BUY,
        order_kind=OrderKind.LIMIT,
        instrument=eth_perp,
        price_input="100",
        margin_required=50.0,
        leverage=4,
    )
