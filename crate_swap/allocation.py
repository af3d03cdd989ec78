"""
Allocation of a total input amount across basket weights.

All arithmetic runs in Decimal and rounds half-up, so the same inputs always
give the same integer amount regardless of float representation.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import List, Sequence, Tuple, Union

from crate_swap.errors import InvalidAllocation, InvalidRequest
from crate_swap.models import Holding

Number = Union[int, float, Decimal]

_PRECISION = 60


def _to_decimal(value: Number, name: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAllocation(f"{name} must be a number, got bool")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidAllocation(f"{name} must be finite, got {value}")
        return value
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidAllocation(f"{name} must be finite, got {value}")
    # str() keeps the shortest repr of floats (0.1 -> "0.1", not the binary expansion)
    return Decimal(str(value))


def allocate(
    total_amount: Number,
    holding_weight: Number,
    total_weight: Number,
    input_decimals: int = 6,
    output_decimals: int = 6,
) -> int:
    """
    Share of ``total_amount`` for one holding, rescaled and rounded.

    Args:
        total_amount: Total input in input-asset base units
        holding_weight: The holding's relative weight
        total_weight: Sum of all weights in the basket
        input_decimals: Decimals of the unit ``total_amount`` is expressed in
        output_decimals: Decimals of the unit the result is expressed in

    Returns:
        ``round_half_up(total_amount * holding_weight / total_weight * 10**(output_decimals - input_decimals))``

    Raises:
        InvalidAllocation: total weight is zero or negative, a weight is
            negative, or an input is not finite.
    """
    total = _to_decimal(total_amount, "total_amount")
    weight = _to_decimal(holding_weight, "holding_weight")
    denominator = _to_decimal(total_weight, "total_weight")

    if denominator <= 0:
        raise InvalidAllocation(f"total weight must be positive, got {total_weight}")
    if weight < 0:
        raise InvalidAllocation(f"holding weight must not be negative, got {holding_weight}")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        raw = total * weight / denominator
        scaled = raw.scaleb(output_decimals - input_decimals)
        return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def plan_allocations(
    holdings: Sequence[Holding],
    total_amount: Number,
    input_decimals: int = 6,
    output_decimals: int = 6,
) -> List[Tuple[Holding, int]]:
    """Allocate ``total_amount`` over every holding, in basket order."""
    total_weight = sum((_to_decimal(h.quantity, f"{h.symbol} weight") for h in holdings), Decimal(0))
    return [
        (h, allocate(total_amount, h.quantity, total_weight, input_decimals, output_decimals))
        for h in holdings
    ]


def to_base_units(ui_amount: Number, decimals: int) -> int:
    """Convert a human amount (e.g. 12.5 USDC) into integer base units."""
    try:
        value = _to_decimal(ui_amount, "amount")
    except InvalidAllocation as e:
        raise InvalidRequest(e.message)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return int(value.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_base_units(amount: int, decimals: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(amount).scaleb(-decimals)
