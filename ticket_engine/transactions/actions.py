"""
Transactional actions, one per modal.

An action knows how to validate its own input, how to execute against the
session's clients and how the step machine should treat it: which
confirmation preference applies, how long to wait before refreshing account
state and whether the modal may be dismissed while the action is pending.

Order actions re-read the catalog and re-resolve the asset id on every
execution; nothing resolved at validation time is reused for submission.
"""

import math
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Optional

import structlog

from ..config.defaults import EngineConfig, get_default_config
from ..errors import InsufficientBalanceError, PrecisionError, ValidationError
from ..interfaces import AccountDataSource, ExchangeResult, MarketDataSource
from ..logging.config import get_order_logger, log_validation_decision
from ..markets.models import Instrument, OrderKind
from ..markets.precision import count_decimals, fixed
from ..markets.resolver import AssetResolver
from ..orders.computation import (
    derive_perp_stats,
    derive_spot_stats,
    market_execution_price,
    tradeable_balance,
)
from ..orders.models import DerivedOrderStats, LeverageSetting, OrderDraft, Position
from ..orders.payload import (
    OrderPlan,
    OrderRequest,
    TPSLEditPlan,
    build_close_order,
    build_order_plan,
    build_tpsl_edit_plan,
)
from ..orders.sequencer import OrderSequencer, SequenceReport
from .models import ConfirmationKind
from .session import SessionContext

logger = structlog.get_logger(__name__)
order_logger = get_order_logger(__name__)


def validate_amount(
    text: str,
    available: float,
    max_decimals: int = 6,
    minimum: Optional[float] = None,
    minimum_message: str = "",
    insufficient_message: str = "Insufficient balance"
) -> float:
    """
    Validate a typed balance-move amount.

    Raises:
        ValidationError: Empty, unparseable, non-positive or below minimum
        PrecisionError: More decimal places than the asset allows
        InsufficientBalanceError: Amount exceeds what is available
    """
    text = (text or "").strip()
    if not text:
        raise ValidationError("Please enter an amount", field="amount")

    try:
        amount = float(text)
    except ValueError:
        raise ValidationError("Invalid amount", field="amount") from None
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError("Invalid amount", field="amount")

    if minimum is not None and amount < minimum:
        raise ValidationError(minimum_message or f"Minimum amount is {minimum}", field="amount")

    if count_decimals(text) > max_decimals:
        raise PrecisionError(f"Maximum {max_decimals} decimal places", max_decimals=max_decimals, field="amount")

    if amount > available:
        raise InsufficientBalanceError(insufficient_message, available=available, requested=amount, field="amount")

    return amount


def to_base_units(text: str, decimals: int) -> int:
    """Amount in integer base units, truncated toward zero."""
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        raise ValidationError("Invalid amount", field="amount") from None
    return int(value.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR))


class TransactionAction:
    """Base class for a money-moving action driven by a step machine."""

    name = "transaction"
    confirmation = ConfirmationKind.ALWAYS
    dismissible_while_pending = False               # True for fire-and-forget actions

    def __init__(self, refresh_delay: float = 0.0):
        self.refresh_delay = refresh_delay
        self.logger = logger

    def validate(self) -> None:
        """Validate user input. Raises ValidationError (or MarketNotFound) to stay on the form."""

    async def execute(self, session: SessionContext) -> Any:
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        """Summary rows for the confirm step."""
        return {}


class _OrderAction(TransactionAction):
    """Shared market plumbing for actions that resolve an instrument."""

    def __init__(self, market_data: MarketDataSource, config: EngineConfig, refresh_delay: float):
        super().__init__(refresh_delay)
        self.market_data = market_data
        self.config = config
        self.resolver = AssetResolver(config.venues)

    def _market(self, instrument: Instrument) -> tuple[int, Optional[float], Any]:
        """Resolve the asset id against the live catalog, with current mid and book."""
        asset_id = self.resolver.resolve(instrument, self.market_data.catalog())
        return asset_id, self.market_data.mid_price(instrument), self.market_data.order_book(instrument)


class PerpOrderAction(_OrderAction):
    """Perpetual order ticket with optional attached TP/SL."""

    name = "perp_order"
    confirmation = ConfirmationKind.OPEN_ORDER

    def __init__(
        self,
        draft: OrderDraft,
        market_data: MarketDataSource,
        account_data: AccountDataSource,
        config: Optional[EngineConfig] = None
    ):
        config = config or get_default_config()
        super().__init__(market_data, config, config.refresh.perp_order)
        self.draft = draft
        self.account_data = account_data

    def stats(self) -> DerivedOrderStats:
        instrument = self.draft.instrument
        return derive_perp_stats(
            self.draft,
            self.market_data.mid_price(instrument),
            self.market_data.order_book(instrument),
            self.config.precision.min_order_value
        )

    def current_leverage(self) -> Optional[LeverageSetting]:
        """Leverage applied to the market, known only while a position is open."""
        instrument = self.draft.instrument
        position = self.account_data.snapshot().position_for(instrument.symbol, instrument.venue)
        if position is None:
            return None
        return LeverageSetting(value=position.leverage, mode=position.margin_mode)

    def build_plan(self) -> OrderPlan:
        draft = self.draft
        asset_id, mid, book = self._market(draft.instrument)
        stats = derive_perp_stats(draft, mid, book, self.config.precision.min_order_value)

        execution_price = None
        if draft.order_kind == OrderKind.MARKET:
            execution_price = market_execution_price(draft.side, draft.instrument.kind, mid, book,
                                                     self.config.slippage)
        return build_order_plan(draft, asset_id, stats, execution_price, self.current_leverage())

    def validate(self) -> None:
        draft = self.draft
        stats = self.stats()

        if stats.price <= 0 or draft.margin_required <= 0:
            raise ValidationError("Please enter price and margin amount", field="margin_required")

        balance = tradeable_balance(self.account_data.snapshot(), draft.instrument, self.config.venues)
        passed = draft.margin_required <= balance
        log_validation_decision(
            order_logger,
            check="margin_available",
            passed=passed,
            action=self.name,
            reason="margin within tradeable balance" if passed else "margin exceeds tradeable balance",
            context={"margin": draft.margin_required, "tradeable": balance}
        )
        if not passed:
            raise InsufficientBalanceError("Insufficient balance", available=balance,
                                           requested=draft.margin_required, field="margin_required")

        if not draft.reduce_only and not stats.meets_min_value:
            raise ValidationError(
                f"Order value must be at least ${fixed(self.config.precision.min_order_value, 2)}",
                field="margin_required"
            )

        self.build_plan()

    async def execute(self, session: SessionContext) -> SequenceReport:
        plan = self.build_plan()
        return await OrderSequencer(session.trading_client).execute_order_plan(plan)

    def describe(self) -> dict[str, Any]:
        stats = self.stats()
        return {
            "market": self.draft.instrument.symbol,
            "side": self.draft.side.value,
            "type": self.draft.order_kind.value,
            "size": stats.size_display,
            "order_value": stats.notional_display,
            "margin": stats.margin_display,
            "leverage": f"{self.draft.leverage}x",
        }


class SpotOrderAction(_OrderAction):
    """Spot order ticket."""

    name = "spot_order"
    confirmation = ConfirmationKind.OPEN_ORDER

    def __init__(
        self,
        draft: OrderDraft,
        market_data: MarketDataSource,
        account_data: AccountDataSource,
        config: Optional[EngineConfig] = None
    ):
        config = config or get_default_config()
        super().__init__(market_data, config, config.refresh.spot_order)
        self.draft = draft
        self.account_data = account_data

    def stats(self) -> DerivedOrderStats:
        instrument = self.draft.instrument
        return derive_spot_stats(
            self.draft,
            self.market_data.mid_price(instrument),
            self.market_data.order_book(instrument),
            self.config.precision.min_order_value
        )

    def build_plan(self) -> OrderPlan:
        draft = self.draft
        asset_id, mid, book = self._market(draft.instrument)
        stats = derive_spot_stats(draft, mid, book, self.config.precision.min_order_value)

        execution_price = None
        if draft.order_kind == OrderKind.MARKET:
            execution_price = market_execution_price(draft.side, draft.instrument.kind, mid, book,
                                                     self.config.slippage)
        return build_order_plan(draft, asset_id, stats, execution_price)

    def validate(self) -> None:
        draft = self.draft
        stats = self.stats()

        if stats.price <= 0 or stats.size <= 0:
            raise ValidationError("Price and size required", field="size")

        account = self.account_data.snapshot()
        if draft.side.sign > 0:
            available = account.spot_total("USDC")
            if stats.notional > available:
                raise InsufficientBalanceError("Insufficient USDC balance", available=available,
                                               requested=stats.notional, field="size")
        else:
            token = draft.instrument.base_token
            available = account.spot_available(token)
            if stats.size > available:
                raise InsufficientBalanceError(f"Insufficient {token} balance", available=available,
                                               requested=stats.size, field="size")

        if not stats.meets_min_value:
            raise ValidationError(
                f"Order value must be at least ${fixed(self.config.precision.min_order_value, 2)}",
                field="size"
            )

        self.build_plan()

    async def execute(self, session: SessionContext) -> SequenceReport:
        plan = self.build_plan()
        return await OrderSequencer(session.trading_client).execute_order_plan(plan)

    def describe(self) -> dict[str, Any]:
        stats = self.stats()
        return {
            "market": self.draft.instrument.symbol,
            "side": self.draft.side.value,
            "type": self.draft.order_kind.value,
            "size": stats.size_display,
            "total": stats.notional_display,
        }


class ClosePositionAction(_OrderAction):
    """Reduce-only market close of part or all of a position."""

    name = "close_position"
    confirmation = ConfirmationKind.CLOSE_POSITION

    def __init__(
        self,
        position: Position,
        instrument: Instrument,
        percent: float,
        market_data: MarketDataSource,
        config: Optional[EngineConfig] = None
    ):
        config = config or get_default_config()
        super().__init__(market_data, config, config.refresh.close_position)
        self.position = position
        self.instrument = instrument
        self.percent = percent

    def build_order(self) -> OrderRequest:
        asset_id, mid, _ = self._market(self.instrument)
        return build_close_order(self.position, self.instrument, asset_id, self.percent, mid or 0.0)

    def validate(self) -> None:
        self.build_order()

    async def execute(self, session: SessionContext) -> ExchangeResult:
        request = self.build_order()
        client = session.trading_client
        return await OrderSequencer(client).execute_single(self.name, lambda: client.place_order(request))

    def describe(self) -> dict[str, Any]:
        return {
            "market": self.instrument.symbol,
            "percentage": f"{self.percent:g}%",
            "side": "long" if self.position.is_long else "short",
        }


class TPSLEditAction(_OrderAction):
    """Replace the TP/SL orders attached to an open position."""

    name = "tpsl_edit"
    confirmation = ConfirmationKind.ALWAYS

    def __init__(
        self,
        position: Position,
        instrument: Instrument,
        take_profit: Optional[float],
        stop_loss: Optional[float],
        market_data: MarketDataSource,
        config: Optional[EngineConfig] = None
    ):
        config = config or get_default_config()
        super().__init__(market_data, config, config.refresh.tpsl_edit)
        self.position = position
        self.instrument = instrument
        self.take_profit = take_profit
        self.stop_loss = stop_loss

    def build_plan(self) -> TPSLEditPlan:
        asset_id, mid, _ = self._market(self.instrument)
        return build_tpsl_edit_plan(
            self.position, self.instrument, asset_id, self.take_profit, self.stop_loss,
            mid or self.position.entry_price
        )

    def validate(self) -> None:
        self.build_plan()

    async def execute(self, session: SessionContext) -> SequenceReport:
        plan = self.build_plan()
        return await OrderSequencer(session.trading_client).execute_tpsl_edit(plan)


class WithdrawAction(TransactionAction):
    """USDC withdrawal to an external address. The modal may close while it is pending."""

    name = "withdraw"
    dismissible_while_pending = True

    def __init__(self, destination: str, amount: str, account_data: AccountDataSource,
                 config: Optional[EngineConfig] = None):
        config = config or get_default_config()
        super().__init__(config.refresh.withdraw)
        self.destination = destination
        self.amount = amount
        self.account_data = account_data
        self.config = config

    def validate(self) -> None:
        if not self.destination:
            raise ValidationError("Destination address required", field="destination")
        account = self.account_data.snapshot()
        validate_amount(
            self.amount,
            available=account.withdrawable or 0.0,
            max_decimals=self.config.precision.usdc_decimals,
            insufficient_message="Insufficient withdrawable balance"
        )

    async def execute(self, session: SessionContext) -> ExchangeResult:
        client = session.account_client
        amount = self.amount.strip()
        return await OrderSequencer(client).execute_single(
            self.name, lambda: client.withdraw(self.destination, amount)
        )


class PerpSpotTransferAction(TransactionAction):
    """USDC transfer between the spot and perpetual accounts."""

    name = "perp_spot_transfer"

    def __init__(self, amount: str, to_perp: bool, account_data: AccountDataSource,
                 config: Optional[EngineConfig] = None):
        config = config or get_default_config()
        super().__init__(config.refresh.perp_spot_transfer)
        self.amount = amount
        self.to_perp = to_perp
        self.account_data = account_data
        self.config = config

    def available(self) -> float:
        """Spot USDC not locked in resting spot buys, or the perp withdrawable."""
        account = self.account_data.snapshot()
        if not self.to_perp:
            return account.withdrawable or 0.0
        locked = sum(
            order.limit_price * order.size
            for order in account.open_orders
            if order.symbol.endswith("/USDC") and order.side.sign > 0
        )
        return max(0.0, account.spot_total("USDC") - locked)

    def validate(self) -> None:
        validate_amount(self.amount, self.available(), self.config.precision.usdc_decimals)

    async def execute(self, session: SessionContext) -> ExchangeResult:
        client = session.account_client
        amount = self.amount.strip()
        return await OrderSequencer(client).execute_single(
            self.name, lambda: client.usd_class_transfer(amount, self.to_perp)
        )

    def describe(self) -> dict[str, Any]:
        return {
            "from": "Spot Account" if self.to_perp else "Perp Account",
            "to": "Perp Account" if self.to_perp else "Spot Account",
            "amount": self.amount,
        }


class StakingTransferAction(TransactionAction):
    """Move the native token between the spot and staking balances."""

    name = "staking_transfer"

    def __init__(self, amount: str, deposit: bool, account_data: AccountDataSource,
                 config: Optional[EngineConfig] = None):
        config = config or get_default_config()
        super().__init__(config.refresh.staking_transfer)
        self.amount = amount
        self.deposit = deposit                       # True = spot -> staking
        self.account_data = account_data
        self.config = config

    def available(self) -> float:
        account = self.account_data.snapshot()
        if self.deposit:
            return account.spot_available(self.config.staking.native_token)
        return account.staking_balance

    def wei(self) -> int:
        return to_base_units(self.amount, self.config.staking.wei_decimals)

    def validate(self) -> None:
        validate_amount(self.amount, self.available(), self.config.staking.amount_decimals)

    async def execute(self, session: SessionContext) -> ExchangeResult:
        client = session.account_client
        wei = self.wei()
        return await OrderSequencer(client).execute_single(
            self.name, lambda: client.staking_transfer(wei, self.deposit)
        )


class DelegateAction(TransactionAction):
    """Delegate staked tokens to a validator, or undelegate them."""

    name = "delegate"

    def __init__(self, amount: str, validator: str, account_data: AccountDataSource,
                 undelegate: bool = False, config: Optional[EngineConfig] = None):
        config = config or get_default_config()
        super().__init__(config.refresh.delegate)
        self.amount = amount
        self.validator = validator or config.staking.default_validator
        self.undelegate = undelegate
        self.account_data = account_data
        self.config = config

    def available(self) -> float:
        account = self.account_data.snapshot()
        if self.undelegate:
            return account.delegated_to(self.validator)
        return account.staking_balance

    def validate(self) -> None:
        if not self.validator:
            raise ValidationError("Validator address required", field="validator")
        validate_amount(self.amount, self.available(), self.config.staking.amount_decimals)

    async def execute(self, session: SessionContext) -> ExchangeResult:
        client = session.account_client
        wei = to_base_units(self.amount, self.config.staking.wei_decimals)
        return await OrderSequencer(client).execute_single(
            self.name, lambda: client.token_delegate(self.validator, wei, self.undelegate)
        )


class DepositAction(TransactionAction):
    """Bridge USDC deposit from the wallet. The modal may close while it is pending."""

    name = "deposit"
    dismissible_while_pending = True

    def __init__(self, amount: str, wallet_balance: float, config: Optional[EngineConfig] = None):
        config = config or get_default_config()
        super().__init__(config.refresh.deposit)
        self.amount = amount
        self.wallet_balance = wallet_balance
        self.config = config

    def units(self) -> int:
        return to_base_units(self.amount, self.config.precision.usdc_decimals)

    def validate(self) -> None:
        minimum = self.config.staking.min_deposit_usdc
        validate_amount(
            self.amount,
            available=self.wallet_balance,
            max_decimals=self.config.precision.usdc_decimals,
            minimum=minimum,
            minimum_message=f"Minimum deposit is {minimum:g} USDC"
        )

    async def execute(self, session: SessionContext) -> ExchangeResult:
        bridge = session.bridge_client
        units = self.units()
        return await OrderSequencer(session.account_client).execute_single(
            self.name, lambda: bridge.deposit(units)
        )
