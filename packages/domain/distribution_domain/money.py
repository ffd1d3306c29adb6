"""Money and Decimal utilities.

All money math in the engine is done in ``Decimal`` and quantised to a fixed
money unit (cents by default). Nothing in the engine uses floats for amounts;
floats only appear in DataFrame outputs meant for display.

Key helpers:
- to_money: coerce a value to a quantised Decimal
- quantize: round with an explicit rounding mode
- allocate_largest_remainder: split a total by weights with exact cents
"""

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP, localcontext
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, TypeVar

K = TypeVar("K", bound=Hashable)

MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")

# Extra precision for intermediate ratios (shares, accrual factors)
_WORKING_PRECISION = 50


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, strings and Decimals to Decimal.

    Floats are converted via ``str`` so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize(
    value: Any,
    quantum: Decimal = MONEY_QUANTUM,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """Round a value to the money unit using the given rounding mode."""
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        return to_decimal(value).quantize(quantum, rounding=rounding)


def to_money(value: Any, quantum: Decimal = MONEY_QUANTUM) -> Decimal:
    """Coerce a value to a money amount (half-up to the money unit)."""
    return quantize(value, quantum, ROUND_HALF_UP)


def ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Divide with working precision. Returns 0 when the denominator is 0."""
    if denominator == 0:
        return ZERO
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        return to_decimal(numerator) / to_decimal(denominator)


def allocate_largest_remainder(
    total: Decimal,
    weights: Mapping[K, Decimal],
    tie_break: Optional[Callable[[K], Any]] = None,
    quantum: Decimal = MONEY_QUANTUM,
) -> Dict[K, Decimal]:
    """Split ``total`` across keys in proportion to ``weights`` with exact cents.

    Each key's exact share is truncated to the money unit; the leftover units
    go one at a time to the keys with the largest fractional remainders.
    Ties on the remainder are broken by ``tie_break(key)`` (ascending), then by
    the key itself, so the result never depends on input or completion order.

    Shares are not monotonic in ``total`` with three or more keys: raising the
    total by one unit can move a remainder cent away from a key (weights
    5/3/1 give the smallest key 0.01 of 0.04 but nothing of 0.05). With two
    keys every share is non-decreasing in the total.

    Args:
        total: Amount to split (non-negative, already on the money unit)
        weights: Non-negative weight per key (need not sum to 1)
        tie_break: Optional sort key applied to keys with equal remainders
        quantum: Money unit

    Returns:
        Dict of key -> amount; amounts sum to ``total`` exactly

    Raises:
        ValueError: If total is negative/off-unit or weights sum to zero

    Example:
        allocate_largest_remainder(Decimal("1040000.01"), {"a": 6, "b": 2})
        → {"a": Decimal("780000.01"), "b": Decimal("260000.00")}
    """
    total = to_decimal(total)
    if total < 0:
        raise ValueError(f"Cannot allocate a negative total: {total}")
    if not weights:
        if total != 0:
            raise ValueError("Cannot allocate a non-zero total across no recipients")
        return {}

    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION

        units_total = total / quantum
        if units_total != units_total.to_integral_value():
            raise ValueError(f"Total {total} is not a whole number of {quantum} units")
        units_total = int(units_total)

        weight_sum = sum((to_decimal(w) for w in weights.values()), ZERO)
        if weight_sum <= 0:
            raise ValueError("Weights must sum to a positive value")

        floors: Dict[K, int] = {}
        remainders: Dict[K, Decimal] = {}
        for key, weight in weights.items():
            weight = to_decimal(weight)
            if weight < 0:
                raise ValueError(f"Negative weight for {key!r}: {weight}")
            exact = units_total * weight / weight_sum
            floor_units = int(exact.to_integral_value(rounding=ROUND_DOWN))
            floors[key] = floor_units
            remainders[key] = exact - floor_units

    leftover = units_total - sum(floors.values())

    def _order(key: K):
        secondary = tie_break(key) if tie_break is not None else ()
        return (-remainders[key], secondary, key)

    for key in sorted(weights.keys(), key=_order)[:leftover]:
        floors[key] += 1

    return {key: (quantum * units) for key, units in floors.items()}
