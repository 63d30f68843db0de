"""Tick size options for order book aggregation"""

import math
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Optional

from ..config.defaults import PrecisionParams

_DEFAULT_PRECISION = PrecisionParams()

MAX_TICK_EXPONENT = 4                                # 10000
MIN_TICK_EXPONENT = -5                               # 0.00001


@dataclass(frozen=True)
class TickSizeOption:
    """Selectable tick size"""
    value: float
    label: str
    index: int


def _is_integral(value: Decimal) -> bool:
    return value == value.to_integral_value()


def _decimal_places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return max(-exponent, 0) if isinstance(exponent, int) else 0


def _significant_figures(value: Decimal) -> int:
    return len(value.normalize().as_tuple().digits)


def is_valid_tick_size(price: float, tick_exponent: int, size_decimals: int, max_decimals: int) -> bool:
    """
    Check whether a power-of-ten tick is representable at the given price.

    Prices may carry five significant figures and at most
    `max_decimals - size_decimals` decimals; integer prices are always valid.
    """
    max_allowed = max_decimals - size_decimals
    price_dec = Decimal(repr(float(price)))
    tick = Decimal(1).scaleb(tick_exponent)

    if price_dec > 1:
        working = price_dec.to_integral_value(rounding=ROUND_FLOOR)
    else:
        working = price_dec.quantize(Decimal(1).scaleb(-max(max_allowed, 0)), rounding=ROUND_FLOOR)

    if tick >= 1 and _is_integral(working):
        return True

    test_price = working + tick if tick < 1 else working
    if _is_integral(test_price):
        return True

    if _decimal_places(test_price) > max_allowed:
        return False

    if _significant_figures(test_price) > _DEFAULT_PRECISION.significant_figures and price > 1:
        return False

    return True


def format_tick_size(value: float, exponent: int) -> str:
    """Display label for a tick size"""
    if exponent >= 3:
        return f"{value:,.0f}"
    if exponent >= 0:
        return str(int(value))
    return f"{value:.{-exponent}f}"


def generate_tick_size_options(
    current_price: float,
    size_decimals: int,
    is_spot: bool = False,
    params: PrecisionParams = _DEFAULT_PRECISION
) -> list[TickSizeOption]:
    """
    Generate tick size options, smallest first.

    Examples:
        BTC perp (price=111000, size_decimals=0): 1, 10, 100, 1000, 10000
        ETH perp (price=4000, size_decimals=1): 0.1, 1, 10, 100
    """
    if not math.isfinite(current_price) or current_price <= 0:
        return []

    max_decimals = params.spot_max_decimals if is_spot else params.perp_max_decimals
    exponent = min(MAX_TICK_EXPONENT, math.floor(math.log10(current_price / 10)))

    valid = []
    while exponent >= MIN_TICK_EXPONENT:
        if not is_valid_tick_size(current_price, exponent, size_decimals, max_decimals):
            # every smaller tick is invalid as well
            break
        valid.append(exponent)
        exponent -= 1

    options = []
    for idx, exp in enumerate(reversed(valid)):
        value = float(Decimal(1).scaleb(exp))
        options.append(TickSizeOption(value=value, label=format_tick_size(value, exp), index=idx))
    return options


def calculate_n_sig_figs(
    tick_size: float,
    options: list[TickSizeOption],
    current_price: float
) -> Optional[int]:
    """
    Significant figures to request from the book feed for a tick size.

    The finest tick uses the feed default (None). Otherwise
    nSigFigs = digits(price) - floor(log10(tick)), clamped to 2..5.
    """
    option = next((opt for opt in options if opt.value == tick_size), None)
    if option is None or option.index == 0:
        return None

    if current_price <= 0:
        return None

    price_digits = math.floor(math.log10(current_price)) + 1
    tick_digits = math.floor(math.log10(tick_size))
    return max(2, min(5, price_digits - tick_digits))
