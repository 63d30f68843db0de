"""Tests for exchange payload construction."""

import pytest

from ticket_engine.errors import TPSLOrderingError, ValidationError
from ticket_engine.markets.models import MarginMode, OrderKind, Side, TimeInForce
from ticket_engine.orders.computation import derive_perp_stats, derive_spot_stats
from ticket_engine.orders.models import LeverageSetting, OrderDraft, Position
from ticket_engine.orders.payload import (
    LeverageUpdate,
    build_close_order,
    build_order_plan,
    build_tpsl_edit_plan,
    leverage_changed,
    resolve_time_in_force,
)


def _plan(draft, asset_id=1, mid=100.0, **kwargs):
    derive = derive_perp_stats if draft.instrument.is_perp else derive_spot_stats
    return build_order_plan(draft, asset_id, derive(draft, mid), **kwargs)


class TestOrderPlan:
    """Test suite for order ticket submission plans."""

    def test_limit_perp_order(self, perp_draft) -> None:
        """Limit buy of 2 ETH at 100 with a leverage update first."""
        plan = _plan(perp_draft)

        assert plan.primary.to_wire() == {
            "orders": [{
                "a": 1,
                "b": True,
                "p": "100",
                "s": "2",
                "r": False,
                "t": {"limit": {"tif": "Gtc"}},
            }],
            "grouping": "na",
        }
        assert plan.leverage_update == LeverageUpdate(asset=1, is_cross=True, leverage=4)
        assert [name for name, _ in plan.steps] == ["update_leverage", "place_order"]

    def test_unchanged_leverage_skips_update(self, perp_draft) -> None:
        plan = _plan(perp_draft, current_leverage=LeverageSetting(value=4, mode=MarginMode.CROSS))

        assert plan.leverage_update is None
        assert [name for name, _ in plan.steps] == ["place_order"]

    def test_margin_mode_change_updates_leverage(self, perp_draft) -> None:
        plan = _plan(perp_draft, current_leverage=LeverageSetting(value=4, mode=MarginMode.ISOLATED))
        assert plan.leverage_update is not None
        assert plan.leverage_update.is_cross is True

    def test_attached_take_profit_and_stop_loss(self, perp_draft) -> None:
        plan = _plan(perp_draft.with_changes(take_profit="120", stop_loss="90"))

        assert plan.take_profit.grouping == "positionTpsl"
        assert plan.take_profit.orders[0].to_wire() == {
            "a": 1,
            "b": False,
            "p": "120",
            "s": "2",
            "r": True,
            "t": {"trigger": {"triggerPx": "120", "isMarket": True, "tpsl": "tp"}},
        }
        sl = plan.stop_loss.orders[0]
        assert sl.is_buy is False
        assert sl.order_type.to_wire() == {"trigger": {"triggerPx": "90", "isMarket": True, "tpsl": "sl"}}
        assert [name for name, _ in plan.steps] == [
            "update_leverage", "place_order", "place_take_profit", "place_stop_loss"
        ]

    def test_misordered_take_profit_blocks_plan(self, perp_draft) -> None:
        with pytest.raises(TPSLOrderingError) as exc_info:
            _plan(perp_draft.with_changes(take_profit="90"))
        assert exc_info.value.leg == "tp"

    def test_unparseable_level_blocks_plan(self, perp_draft) -> None:
        with pytest.raises(TPSLOrderingError, match="Invalid stop loss price"):
            _plan(perp_draft.with_changes(stop_loss="abc"))

    def test_market_order_uses_execution_price(self, perp_draft) -> None:
        draft = perp_draft.with_changes(order_kind=OrderKind.MARKET, price_input="")
        plan = _plan(draft, execution_price=100.1)

        order = plan.primary.orders[0]
        assert order.price == "100.1"
        assert order.size == "2"
        assert order.order_type.tif == TimeInForce.IOC

    def test_market_order_without_price(self, perp_draft) -> None:
        draft = perp_draft.with_changes(order_kind=OrderKind.MARKET, price_input="")
        with pytest.raises(ValidationError, match="No market price available"):
            _plan(draft)

    def test_zero_size_rejected(self, perp_draft) -> None:
        with pytest.raises(ValidationError, match="Invalid size"):
            _plan(perp_draft.with_changes(margin_required=0.0))

    def test_isolated_only_market_forces_isolated(self, nvda_perp) -> None:
        draft = OrderDraft(side=Side.BUY, order_kind=OrderKind.LIMIT, instrument=nvda_perp,
                           price_input="180", margin_required=50.0, leverage=2)
        plan = _plan(draft, asset_id=110003, mid=180.0)

        assert plan.leverage_update == LeverageUpdate(asset=110003, is_cross=False, leverage=2)
        assert plan.primary.orders[0].asset == 110003
        assert plan.primary.orders[0].size == "0.556"

    def test_spot_order(self, purr_spot) -> None:
        """Spot orders never update leverage, carry TP/SL or reduce-only."""
        draft = OrderDraft(side=Side.BUY, order_kind=OrderKind.LIMIT, instrument=purr_spot,
                           price_input="0.2", size_input="100", reduce_only=True, take_profit="0.3")
        plan = _plan(draft, asset_id=10007, mid=0.2)

        order = plan.primary.orders[0]
        assert order.to_wire() == {
            "a": 10007,
            "b": True,
            "p": "0.2",
            "s": "100",
            "r": False,
            "t": {"limit": {"tif": "Gtc"}},
        }
        assert plan.leverage_update is None
        assert plan.take_profit is None


class TestPlanHelpers:

    def test_market_orders_are_ioc(self) -> None:
        assert resolve_time_in_force(OrderKind.MARKET, TimeInForce.GTC) == TimeInForce.IOC
        assert resolve_time_in_force(OrderKind.LIMIT, TimeInForce.ALO) == TimeInForce.ALO

    def test_unknown_current_leverage_counts_as_changed(self) -> None:
        requested = LeverageSetting(value=3, mode=MarginMode.CROSS)
        assert leverage_changed(requested, None) is True
        assert leverage_changed(requested, LeverageSetting(value=3, mode=MarginMode.CROSS)) is False
        assert leverage_changed(requested, LeverageSetting(value=5, mode=MarginMode.CROSS)) is True


class TestTPSLEditPlan:
    """Test suite for cancel-then-replace of position TP/SL."""

    def test_replaces_both_attached_orders(self, long_position, eth_perp) -> None:
        """Both existing orders are cancelled, only the new take profit is placed."""
        plan = build_tpsl_edit_plan(long_position, eth_perp, 1, tp=120.0, sl=None, mid=100.0)

        assert plan.cancels.order_ids == [111, 222]
        assert plan.cancels.to_wire() == {"cancels": [{"a": 1, "o": 111}, {"a": 1, "o": 222}]}
        tp = plan.take_profit.orders[0]
        assert (tp.is_buy, tp.price, tp.size, tp.reduce_only) == (False, "120", "2", True)
        assert plan.stop_loss is None

    def test_short_without_attached_orders(self, eth_perp) -> None:
        short = Position(symbol="ETH", size=-1.5, entry_price=100.0)
        plan = build_tpsl_edit_plan(short, eth_perp, 1, tp=None, sl=110.0, mid=100.0)

        assert plan.cancels is None
        sl = plan.stop_loss.orders[0]
        assert sl.is_buy is True
        assert sl.size == "1.5"

    def test_clearing_levels_only_cancels(self, long_position, eth_perp) -> None:
        plan = build_tpsl_edit_plan(long_position, eth_perp, 1, tp=None, sl=None, mid=100.0)
        assert plan.cancels.order_ids == [111, 222]
        assert plan.take_profit is None and plan.stop_loss is None

    def test_nothing_to_do(self, eth_perp) -> None:
        flat_tpsl = Position(symbol="ETH", size=1.0, entry_price=100.0)
        with pytest.raises(ValidationError, match="Enter a take profit or stop loss price"):
            build_tpsl_edit_plan(flat_tpsl, eth_perp, 1, tp=None, sl=None, mid=100.0)

    def test_misordered_level(self, long_position, eth_perp) -> None:
        with pytest.raises(TPSLOrderingError, match="Take profit must be above entry price for long positions"):
            build_tpsl_edit_plan(long_position, eth_perp, 1, tp=90.0, sl=None, mid=100.0)


class TestCloseOrder:
    """Test suite for reduce-only close orders."""

    def test_close_half_of_long(self, long_position, eth_perp) -> None:
        order = build_close_order(long_position, eth_perp, 1, 50.0, 100.0).orders[0]

        assert order.is_buy is False
        assert order.price == "99.9"
        assert order.size == "1"
        assert order.reduce_only is True
        assert order.order_type.tif == TimeInForce.IOC

    def test_close_short_buys_above_mid(self, eth_perp) -> None:
        short = Position(symbol="ETH", size=-3.0, entry_price=100.0)
        order = build_close_order(short, eth_perp, 1, 100.0, 100.0).orders[0]

        assert order.is_buy is True
        assert order.price == "100.1"
        assert order.size == "3"

    def test_size_rounding_to_zero(self, eth_perp) -> None:
        dust = Position(symbol="ETH", size=0.0004, entry_price=100.0)
        with pytest.raises(ValidationError, match="Amount to close is too small"):
            build_close_order(dust, eth_perp, 1, 50.0, 100.0)

    def test_requires_mid_price(self, long_position, eth_perp) -> None:
        with pytest.raises(ValidationError, match="No market price available"):
            build_close_order(long_position, eth_perp, 1, 50.0, 0.0)
