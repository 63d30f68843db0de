"""Tests for per-modal transaction actions."""

import pytest

from conftest import FakeAccountData
from ticket_engine.errors import (
    InsufficientBalanceError,
    MarketNotFound,
    PrecisionError,
    SessionClosedError,
    ValidationError,
)
from ticket_engine.markets.models import Instrument, MarketCatalog, MarketKind, OrderKind, Side, TimeInForce
from ticket_engine.orders.models import (
    AccountSnapshot,
    Delegation,
    OpenOrder,
    OrderDraft,
    Position,
    SpotBalance,
)
from ticket_engine.transactions.actions import (
    ClosePositionAction,
    DelegateAction,
    DepositAction,
    PerpOrderAction,
    PerpSpotTransferAction,
    SpotOrderAction,
    StakingTransferAction,
    TPSLEditAction,
    WithdrawAction,
    to_base_units,
    validate_amount,
)
from ticket_engine.transactions.models import ConfirmationKind
from ticket_engine.transactions.session import SessionContext


class TestValidateAmount:
    """Test suite for typed balance-move amounts."""

    @pytest.mark.parametrize("text,message", [
        ("", "Please enter an amount"),
        ("   ", "Please enter an amount"),
        ("abc", "Invalid amount"),
        ("-1", "Invalid amount"),
        ("0", "Invalid amount"),
    ])
    def test_rejected_input(self, text, message) -> None:
        with pytest.raises(ValidationError, match=message):
            validate_amount(text, available=100.0)

    def test_too_many_decimals(self) -> None:
        with pytest.raises(PrecisionError) as exc_info:
            validate_amount("1.1234567", available=100.0, max_decimals=6)
        assert exc_info.value.message == "Maximum 6 decimal places"
        assert exc_info.value.max_decimals == 6

    def test_exceeds_available(self) -> None:
        with pytest.raises(InsufficientBalanceError) as exc_info:
            validate_amount("900", available=800.0)
        assert exc_info.value.available == 800.0
        assert exc_info.value.requested == 900.0

    def test_below_minimum(self) -> None:
        with pytest.raises(ValidationError, match="Minimum deposit is 5 USDC"):
            validate_amount("4", available=100.0, minimum=5.0, minimum_message="Minimum deposit is 5 USDC")

    def test_valid_amount(self) -> None:
        assert validate_amount(" 12.5 ", available=100.0) == 12.5

    def test_base_units_truncate(self) -> None:
        assert to_base_units("1.5", 8) == 150000000
        assert to_base_units("0.1", 8) == 10000000
        assert to_base_units("1.999999999", 8) == 199999999
        assert to_base_units("10.5", 6) == 10500000


class TestPerpOrderAction:
    """Test suite for perpetual ticket validation and execution."""

    def test_margin_exceeding_tradeable_balance(self, perp_draft, market_data, account_data, config) -> None:
        action = PerpOrderAction(perp_draft.with_changes(margin_required=900.0, leverage=1),
                                 market_data, account_data, config)
        with pytest.raises(InsufficientBalanceError, match="Insufficient balance"):
            action.validate()

    def test_below_minimum_order_value(self, perp_draft, market_data, account_data, config) -> None:
        action = PerpOrderAction(perp_draft.with_changes(margin_required=2.0), market_data, account_data, config)
        with pytest.raises(ValidationError, match=r"Order value must be at least \$10.00"):
            action.validate()

    def test_reduce_only_skips_minimum(self, perp_draft, market_data, account_data, config) -> None:
        draft = perp_draft.with_changes(margin_required=2.0, reduce_only=True)
        PerpOrderAction(draft, market_data, account_data, config).validate()

    @pytest.mark.asyncio
    async def test_open_position_leverage_not_resent(self, perp_draft, market_data, config, session,
                                                     client) -> None:
        account = AccountSnapshot(
            withdrawable=800.0,
            positions=(Position(symbol="ETH", size=1.0, entry_price=90.0, leverage=4),),
        )
        action = PerpOrderAction(perp_draft, market_data, FakeAccountData(account), config)

        await action.execute(session)

        assert client.methods() == ["place_order"]

    @pytest.mark.asyncio
    async def test_asset_resolved_at_execution(self, perp_draft, market_data, account_data, config, session,
                                               client, btc_perp) -> None:
        """A catalog reload between validation and submission is picked up."""
        action = PerpOrderAction(perp_draft, market_data, account_data, config)
        action.validate()

        reindexed = Instrument(symbol="ETH", kind=MarketKind.PERPETUAL, index=2, size_decimals=3, max_leverage=25)
        market_data._catalog = MarketCatalog(perps=(btc_perp, reindexed))

        with pytest.raises(MarketNotFound):
            await action.execute(session)
        assert client.calls == []

    def test_describe(self, perp_draft, market_data, account_data, config) -> None:
        summary = PerpOrderAction(perp_draft, market_data, account_data, config).describe()
        assert summary["size"] == "2.000"
        assert summary["order_value"] == "200.00"
        assert summary["margin"] == "50.00"
        assert summary["leverage"] == "4x"


class TestSpotOrderAction:
    """Test suite for spot ticket validation and execution."""

    def _draft(self, purr_spot, side=Side.BUY, size="100", kind=OrderKind.LIMIT):
        return OrderDraft(side=side, order_kind=kind, instrument=purr_spot,
                          price_input="0.2" if kind == OrderKind.LIMIT else "", size_input=size)

    def test_insufficient_usdc(self, purr_spot, market_data, account_data, config) -> None:
        action = SpotOrderAction(self._draft(purr_spot, size="3000"), market_data, account_data, config)
        with pytest.raises(InsufficientBalanceError, match="Insufficient USDC balance"):
            action.validate()

    def test_insufficient_token_counts_held_balance(self, purr_spot, market_data, account_data, config) -> None:
        """1000 PURR with 200 on hold leaves 800 sellable."""
        action = SpotOrderAction(self._draft(purr_spot, Side.SELL, "900"), market_data, account_data, config)
        with pytest.raises(InsufficientBalanceError, match="Insufficient PURR balance"):
            action.validate()

        SpotOrderAction(self._draft(purr_spot, Side.SELL, "800"), market_data, account_data, config).validate()

    def test_missing_size(self, purr_spot, market_data, account_data, config) -> None:
        action = SpotOrderAction(self._draft(purr_spot, size=""), market_data, account_data, config)
        with pytest.raises(ValidationError, match="Price and size required"):
            action.validate()

    @pytest.mark.asyncio
    async def test_market_buy(self, purr_spot, market_data, account_data, config, session, client) -> None:
        action = SpotOrderAction(self._draft(purr_spot, kind=OrderKind.MARKET), market_data, account_data, config)
        action.validate()
        await action.execute(session)

        order = client.calls[0][1].orders[0]
        assert client.methods() == ["place_order"]
        assert order.asset == 10007
        assert order.price == "0.202"
        assert order.size == "100"
        assert order.order_type.tif == TimeInForce.IOC


class TestPositionActions:

    @pytest.mark.asyncio
    async def test_close_position(self, long_position, eth_perp, market_data, config, session, client) -> None:
        action = ClosePositionAction(long_position, eth_perp, 50.0, market_data, config)
        action.validate()
        await action.execute(session)

        order = client.calls[0][1].orders[0]
        assert (order.is_buy, order.price, order.size, order.reduce_only) == (False, "99.9", "1", True)
        assert action.confirmation == ConfirmationKind.CLOSE_POSITION

    def test_close_requires_percent(self, long_position, eth_perp, market_data, config) -> None:
        with pytest.raises(ValidationError, match="Please select an amount to close"):
            ClosePositionAction(long_position, eth_perp, 0.0, market_data, config).validate()

    @pytest.mark.asyncio
    async def test_tpsl_edit(self, long_position, eth_perp, market_data, config, session, client) -> None:
        action = TPSLEditAction(long_position, eth_perp, 120.0, None, market_data, config)
        await action.execute(session)

        assert client.methods() == ["cancel_orders", "place_order"]
        assert client.calls[0][1].order_ids == [111, 222]
        assert action.confirmation == ConfirmationKind.ALWAYS


class TestBalanceActions:
    """Test suite for withdraw, transfer, staking and deposit."""

    @pytest.mark.asyncio
    async def test_withdraw(self, account_data, config, session, client) -> None:
        action = WithdrawAction("0xdef", "100", account_data, config)
        action.validate()
        await action.execute(session)

        assert client.calls == [("withdraw", ("0xdef", "100"))]
        assert action.dismissible_while_pending is True

    def test_withdraw_limits(self, account_data, config) -> None:
        with pytest.raises(InsufficientBalanceError, match="Insufficient withdrawable balance"):
            WithdrawAction("0xdef", "900", account_data, config).validate()
        with pytest.raises(ValidationError, match="Destination address required"):
            WithdrawAction("", "10", account_data, config).validate()

    def test_transfer_to_perp_excludes_resting_spot_buys(self, config) -> None:
        account = AccountSnapshot(
            withdrawable=800.0,
            spot_balances=(SpotBalance(coin="USDC", total=500.0),),
            open_orders=(
                OpenOrder(symbol="PURR/USDC", limit_price=0.2, size=500.0, order_id=1, side=Side.BUY),
                OpenOrder(symbol="PURR/USDC", limit_price=0.3, size=100.0, order_id=2, side=Side.SELL),
                OpenOrder(symbol="ETH", limit_price=100.0, size=1.0, order_id=3, side=Side.BUY),
            ),
        )
        to_perp = PerpSpotTransferAction("450", True, FakeAccountData(account), config)
        to_spot = PerpSpotTransferAction("450", False, FakeAccountData(account), config)

        assert to_perp.available() == pytest.approx(400.0)
        assert to_spot.available() == 800.0
        with pytest.raises(InsufficientBalanceError):
            to_perp.validate()
        to_spot.validate()

    @pytest.mark.asyncio
    async def test_transfer_execution(self, account_data, config, session, client) -> None:
        await PerpSpotTransferAction("25.5", True, account_data, config).execute(session)
        assert client.calls == [("usd_class_transfer", ("25.5", True))]

    @pytest.mark.asyncio
    async def test_stake_in_wei(self, account_data, config, session, client) -> None:
        action = StakingTransferAction("1.5", True, account_data, config)
        action.validate()
        await action.execute(session)

        assert client.calls == [("staking_transfer", (150000000, True))]

    def test_unstake_limited_to_staked_balance(self, account_data, config) -> None:
        with pytest.raises(InsufficientBalanceError):
            StakingTransferAction("11", False, account_data, config).validate()
        with pytest.raises(PrecisionError):
            StakingTransferAction("1.123456789", False, account_data, config).validate()

    @pytest.mark.asyncio
    async def test_delegate(self, account_data, config, session, client) -> None:
        action = DelegateAction("5", "0xval", account_data, config=config)
        action.validate()
        await action.execute(session)

        assert client.calls == [("token_delegate", ("0xval", 500000000, False))]

    def test_undelegate_limited_to_delegation(self, config) -> None:
        account = AccountSnapshot(staking_balance=10.0, delegations=(Delegation(validator="0xval", amount=3.0),))
        action = DelegateAction("4", "0xval", FakeAccountData(account), undelegate=True, config=config)

        with pytest.raises(InsufficientBalanceError):
            action.validate()

    def test_delegate_requires_validator(self, account_data, config) -> None:
        with pytest.raises(ValidationError, match="Validator address required"):
            DelegateAction("5", "", account_data, config=config).validate()

    @pytest.mark.asyncio
    async def test_deposit(self, config, session) -> None:
        action = DepositAction("10.5", wallet_balance=100.0, config=config)
        action.validate()
        await action.execute(session)

        assert session.bridge_client.deposits == [10500000]
        assert action.dismissible_while_pending is True

    def test_deposit_minimum(self, config) -> None:
        with pytest.raises(ValidationError, match="Minimum deposit is 5 USDC"):
            DepositAction("4", wallet_balance=100.0, config=config).validate()

    @pytest.mark.asyncio
    async def test_deposit_without_bridge(self, config, client) -> None:
        session = SessionContext.connected("0xabc", trading_client=client)
        with pytest.raises(SessionClosedError, match="Bridge deposits are not available"):
            await DepositAction("10", wallet_balance=100.0, config=config).execute(session)


class TestRefreshDelays:

    def test_delays_per_action(self, perp_draft, purr_spot, long_position, eth_perp, market_data,
                               account_data, config) -> None:
        spot_draft = OrderDraft(side=Side.BUY, order_kind=OrderKind.LIMIT, instrument=purr_spot)
        delays = {
            "perp": PerpOrderAction(perp_draft, market_data, account_data, config).refresh_delay,
            "spot": SpotOrderAction(spot_draft, market_data, account_data, config).refresh_delay,
            "close": ClosePositionAction(long_position, eth_perp, 100.0, market_data, config).refresh_delay,
            "tpsl": TPSLEditAction(long_position, eth_perp, 120.0, None, market_data, config).refresh_delay,
            "withdraw": WithdrawAction("0xdef", "1", account_data, config).refresh_delay,
            "transfer": PerpSpotTransferAction("1", True, account_data, config).refresh_delay,
            "stake": StakingTransferAction("1", True, account_data, config).refresh_delay,
            "delegate": DelegateAction("1", "0xval", account_data, config=config).refresh_delay,
            "deposit": DepositAction("10", 100.0, config).refresh_delay,
        }
        assert delays == {
            "perp": 1.0, "spot": 2.0, "close": 2.0, "tpsl": 1.5, "withdraw": 5.0,
            "transfer": 3.0, "stake": 3.0, "delegate": 3.0, "deposit": 3.0,
        }
