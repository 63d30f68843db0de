"""
Order ticket engine coordinator.

Connects the market and account collaborators to the pure order computation
and to the step machines that drive each transactional modal.
"""

from typing import Optional

import structlog

from .config.defaults import EngineConfig
from .config.loader import ConfigLoader
from .errors import MarketNotFound
from .interfaces import AccountDataSource, MarketDataSource, PreferenceStore, RefreshTrigger
from .markets.models import Instrument, MarginMode, MarketKind, OrderKind, Side, TimeInForce
from .markets.precision import format_price, parse_amount
from .markets.ticks import TickSizeOption, generate_tick_size_options
from .markets.venues import is_isolated_only
from .orders.computation import (
    compute_spot_size,
    derive_perp_stats,
    derive_spot_stats,
    margin_from_percent,
    market_display_price,
    tradeable_balance,
)
from .orders.models import DerivedOrderStats, OrderDraft, Position
from .transactions.actions import (
    ClosePositionAction,
    DelegateAction,
    DepositAction,
    PerpOrderAction,
    PerpSpotTransferAction,
    SpotOrderAction,
    StakingTransferAction,
    TPSLEditAction,
    TransactionAction,
    WithdrawAction,
)
from .transactions.machine import TransactionStepMachine
from .transactions.scheduler import RefreshScheduler
from .transactions.session import SessionContext

logger = structlog.get_logger(__name__)


class OrderTicketEngine:
    """
    Main coordinator for order tickets and balance-movement modals.

    Manages:
    Catalog → Instrument → Draft → Derived stats → Action → Step machine
    """

    def __init__(
        self,
        market_data: MarketDataSource,
        account_data: AccountDataSource,
        config: Optional[EngineConfig] = None,
        session: Optional[SessionContext] = None,
        preferences: Optional[PreferenceStore] = None,
        refresh: Optional[RefreshTrigger] = None
    ) -> None:
        """Initialize the engine; configuration is loaded from config/ when not given."""
        self.logger = logger
        self.market_data = market_data
        self.account_data = account_data
        self.config = config or ConfigLoader.create().load()
        self.session = session or SessionContext()
        self.preferences = preferences
        self.refresh = refresh

        self.logger.info("Order ticket engine initialized")

    # Instruments

    def instrument(self, symbol: str, kind: MarketKind = MarketKind.PERPETUAL, venue: str = "") -> Instrument:
        """Current catalog entry for a market."""
        instrument = self.market_data.catalog().find(symbol, kind, venue)
        if instrument is None:
            raise MarketNotFound(f"Market {symbol} not found", symbol=symbol, venue=venue)
        return instrument

    def tick_size_options(self, instrument: Instrument) -> list[TickSizeOption]:
        mid = self.market_data.mid_price(instrument)
        if not mid:
            return []
        return generate_tick_size_options(
            mid, instrument.size_decimals, not instrument.is_perp, self.config.precision
        )

    # Drafts and derived statistics

    def new_draft(
        self,
        instrument: Instrument,
        side: Side = Side.BUY,
        order_kind: OrderKind = OrderKind.MARKET,
        margin_mode: MarginMode = MarginMode.CROSS
    ) -> OrderDraft:
        """Fresh ticket for an instrument: 1x leverage, sliders at zero."""
        if is_isolated_only(instrument):
            margin_mode = MarginMode.ISOLATED
        return OrderDraft(
            side=side,
            order_kind=order_kind,
            instrument=instrument,
            time_in_force=TimeInForce.IOC if order_kind == OrderKind.MARKET else TimeInForce.GTC,
            margin_mode=margin_mode
        )

    def switch_order_kind(self, draft: OrderDraft, order_kind: OrderKind) -> OrderDraft:
        """Switch between market and limit, prefilling the price field."""
        instrument = draft.instrument
        mid = self.market_data.mid_price(instrument)
        if order_kind == OrderKind.MARKET:
            price = market_display_price(draft.side, mid, self.market_data.order_book(instrument))
            tif = TimeInForce.IOC
        else:
            price = mid
            tif = TimeInForce.GTC
        return draft.with_changes(
            order_kind=order_kind,
            time_in_force=tif,
            price_input=format_price(price, instrument.size_decimals, instrument.is_perp) if price else ""
        )

    def stats(self, draft: OrderDraft) -> DerivedOrderStats:
        instrument = draft.instrument
        derive = derive_perp_stats if instrument.is_perp else derive_spot_stats
        return derive(
            draft,
            self.market_data.mid_price(instrument),
            self.market_data.order_book(instrument),
            self.config.precision.min_order_value
        )

    def tradeable_balance(self, instrument: Optional[Instrument] = None) -> float:
        return tradeable_balance(self.account_data.snapshot(), instrument, self.config.venues)

    def apply_margin_percent(self, draft: OrderDraft, percent: float) -> OrderDraft:
        """Perpetual size slider: commit a percent of the tradeable balance as margin."""
        balance = self.tradeable_balance(draft.instrument)
        return draft.with_changes(margin_required=margin_from_percent(balance, percent))

    def apply_spot_percent(self, draft: OrderDraft, percent: float) -> OrderDraft:
        """Spot size slider: write the size for a percent of the spendable balance."""
        instrument = draft.instrument
        account = self.account_data.snapshot()
        price = parse_amount(draft.price_input) or self.market_data.mid_price(instrument) or 0.0
        size = compute_spot_size(
            draft.side,
            percent,
            price,
            usdc_balance=account.spot_total("USDC"),
            token_balance=account.spot_available(instrument.base_token),
            size_decimals=instrument.size_decimals
        )
        return draft.with_changes(size_input=size, size_percent=percent)

    # Step machines

    def _machine(self, action: TransactionAction) -> TransactionStepMachine:
        return TransactionStepMachine(
            action,
            self.session,
            preferences=self.preferences,
            refresh=self.refresh,
            scheduler=RefreshScheduler()
        )

    def order_ticket(self, draft: OrderDraft) -> TransactionStepMachine:
        """Step machine for a perpetual or spot order ticket."""
        if draft.instrument.is_perp:
            action = PerpOrderAction(draft, self.market_data, self.account_data, self.config)
        else:
            action = SpotOrderAction(draft, self.market_data, self.account_data, self.config)
        return self._machine(action)

    def close_position(self, position: Position, percent: float = 100.0) -> TransactionStepMachine:
        instrument = self.instrument(position.symbol, MarketKind.PERPETUAL, position.venue)
        return self._machine(ClosePositionAction(position, instrument, percent, self.market_data, self.config))

    def edit_tpsl(
        self,
        position: Position,
        take_profit: Optional[float],
        stop_loss: Optional[float]
    ) -> TransactionStepMachine:
        instrument = self.instrument(position.symbol, MarketKind.PERPETUAL, position.venue)
        return self._machine(TPSLEditAction(
            position, instrument, take_profit, stop_loss, self.market_data, self.config
        ))

    def withdraw(self, destination: str, amount: str) -> TransactionStepMachine:
        return self._machine(WithdrawAction(destination, amount, self.account_data, self.config))

    def transfer(self, amount: str, to_perp: bool) -> TransactionStepMachine:
        return self._machine(PerpSpotTransferAction(amount, to_perp, self.account_data, self.config))

    def stake(self, amount: str) -> TransactionStepMachine:
        return self._machine(StakingTransferAction(amount, True, self.account_data, self.config))

    def unstake(self, amount: str) -> TransactionStepMachine:
        return self._machine(StakingTransferAction(amount, False, self.account_data, self.config))

    def delegate(self, amount: str, validator: str = "") -> TransactionStepMachine:
        return self._machine(DelegateAction(amount, validator, self.account_data, config=self.config))

    def undelegate(self, amount: str, validator: str) -> TransactionStepMachine:
        return self._machine(DelegateAction(amount, validator, self.account_data, undelegate=True,
                                            config=self.config))

    def deposit(self, amount: str, wallet_balance: float) -> TransactionStepMachine:
        return self._machine(DepositAction(amount, wallet_balance, self.config))
