"""
Price and size precision rules for exchange order fields.

Prices carry at most five significant figures and at most
`max_decimals - size_decimals` decimal places (6 for perpetuals, 8 for
spot); prices below 1 may use up to 6 decimals. Sizes are rounded to the
instrument's size decimals. Every function here is pure and total: non-finite
input yields a zero string instead of raising, and formatting an already
formatted value returns the identical string.
"""

import math
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Optional

from ..config.defaults import PrecisionParams

_DEFAULT_PRECISION = PrecisionParams()
_CONTEXT = Context(prec=120)


def _to_decimal(value: float) -> Optional[Decimal]:
    """Exact decimal of the shortest float repr, None for non-finite input."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return Decimal(repr(number))


def _round_significant(value: Decimal, sig_figs: int) -> Decimal:
    if value.is_zero():
        return Decimal(0)
    quantum = Decimal(1).scaleb(value.adjusted() - sig_figs + 1)
    return value.quantize(quantum, rounding=ROUND_HALF_UP, context=_CONTEXT)


def _round_decimals(value: Decimal, decimals: int) -> Decimal:
    try:
        return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP, context=_CONTEXT)
    except InvalidOperation:
        # Magnitude beyond the context precision, nothing fractional left to round
        return value


def _render(value: Decimal) -> str:
    """Plain notation, trailing zeros stripped, negative zero folded to "0"."""
    if value.is_zero():
        return "0"
    return remove_trailing_zeros(format(value, "f"))


def remove_trailing_zeros(value: str) -> str:
    """Remove trailing zeros (and a dangling point) from a number string."""
    if "." not in value:
        return value
    stripped = value.rstrip("0").rstrip(".")
    if stripped in ("-0", "", "-"):
        return "0"
    return stripped


def max_price_decimals(
    price: float,
    size_decimals: int,
    is_perp: bool = True,
    params: PrecisionParams = _DEFAULT_PRECISION
) -> int:
    """Number of decimal places an order price may carry."""
    if abs(price) < 1:
        return params.sub_unit_price_decimals
    cap = params.perp_max_decimals if is_perp else params.spot_max_decimals
    return max(cap - size_decimals, 0)


def format_price(
    raw: float,
    size_decimals: int,
    is_perp: bool = True,
    params: PrecisionParams = _DEFAULT_PRECISION
) -> str:
    """
    Format a price for an order.

    Rounds to five significant figures, then to the maximum decimals the
    instrument allows.

    Args:
        raw: Raw price
        size_decimals: Size precision of the instrument
        is_perp: True for perpetual instruments, False for spot legs
        params: Precision rules

    Returns:
        Normalized price string, "0" for non-finite input
    """
    value = _to_decimal(raw)
    if value is None:
        return "0"

    rounded = _round_significant(value, params.significant_figures)
    decimals = max_price_decimals(float(value), size_decimals, is_perp, params)
    return _render(_round_decimals(rounded, decimals))


def format_size(raw: float, size_decimals: int, reference_price: Optional[float] = None) -> str:
    """
    Format an order size.

    Rounds to `size_decimals` places. Instruments priced below 1 trade in
    whole units, so a reference price below 1 rounds to an integer. The
    minimum order value is not enforced here.

    Args:
        raw: Raw size in base units
        size_decimals: Size precision of the instrument
        reference_price: Price the size will be traded at, if known

    Returns:
        Normalized size string, "0" for non-finite input
    """
    value = _to_decimal(raw)
    if value is None:
        return "0"

    reference = _to_decimal(reference_price) if reference_price is not None else None
    if reference is not None and reference < 1:
        return _render(_round_decimals(value, 0))

    return _render(_round_decimals(value, max(size_decimals, 0)))


def float_to_wire(x: float, params: PrecisionParams = _DEFAULT_PRECISION) -> str:
    """Generic wire rendering: five significant figures, at most 8 decimals."""
    value = _to_decimal(x)
    if value is None:
        return "0"
    rounded = _round_significant(value, params.significant_figures)
    return _render(_round_decimals(rounded, 8))


def fixed(value: float, decimals: int) -> str:
    """Fixed-point display string with exactly `decimals` places ("2.000", "200.00")."""
    number = _to_decimal(value)
    if number is None or number.is_zero():
        number = Decimal(0)
    text = format(_round_decimals(number, decimals), "f")
    if text.startswith("-") and Decimal(text).is_zero():
        return text[1:]
    return text


def count_decimals(text: str) -> int:
    """Number of decimal places typed into an amount field."""
    parts = text.strip().split(".")
    if len(parts) < 2:
        return 0
    return len(parts[1])


def parse_amount(text: Optional[str]) -> float:
    """Parse a user-typed number, 0.0 when empty or unparseable."""
    if text is None:
        return 0.0
    if isinstance(text, (int, float)):
        number = float(text)
        return number if math.isfinite(number) else 0.0
    try:
        number = float(Decimal(text.strip()))
    except (InvalidOperation, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
