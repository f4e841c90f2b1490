"""Money helpers shared by pricing, coupons and delivery charges.

Amounts are persisted as floats with two decimals; all arithmetic goes through
``Decimal`` so that rounding is half-up and reproducible.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def round2(value) -> float:
    """Round half-up to two decimal places."""
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def floor_amount(value) -> int:
    """Floor to a whole currency unit."""
    return int(to_decimal(value).to_integral_value(rounding=ROUND_FLOOR))


def distribute_proportionally(total, weights) -> list[float]:
    """Split ``total`` across ``weights`` so that the shares sum to ``total`` exactly.

    ``total`` is first rounded to cents. Each share gets the floor of its exact
    proportional amount in cents, and the cents left over go one at a time to
    the shares with the largest fractional remainders (earlier positions win
    ties). When every weight is zero the total is split evenly.

    >>> distribute_proportionally(50, [300, 700])
    [15.0, 35.0]
    >>> distribute_proportionally(10, [1, 1, 1])
    [3.34, 3.33, 3.33]
    """
    weights = [to_decimal(w) for w in weights]
    if not weights:
        return []

    total_cents = int(to_decimal(total).quantize(CENT, rounding=ROUND_HALF_UP) * 100)
    weight_sum = sum(weights)
    if weight_sum == 0:
        weights = [Decimal(1)] * len(weights)
        weight_sum = Decimal(len(weights))

    exact = [Decimal(total_cents) * w / weight_sum for w in weights]
    cents = [int(e.to_integral_value(rounding=ROUND_FLOOR)) for e in exact]
    leftover = total_cents - sum(cents)

    by_remainder = sorted(range(len(exact)), key=lambda i: (-(exact[i] - cents[i]), i))
    for i in by_remainder[:leftover]:
        cents[i] += 1

    return [float(Decimal(c) / 100) for c in cents]
