from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from bson.decimal128 import Decimal128

CENT = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)

Amount = Union[Decimal, Decimal128, str, int, float, None]


def to_decimal(value: Amount) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, float):
        # go through str so 0.1 stays 0.1
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Amount) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal128(value: Amount) -> Decimal128:
    return Decimal128(quantize_money(value))


def format_money(value: Amount) -> str:
    return str(quantize_money(value))


def rate_seconds(duration_seconds: int, hourly_rate: Amount) -> Decimal:
    """Unscaled cost numerator: seconds x rate. Divide the sum by 3600 once."""
    return Decimal(int(duration_seconds)) * to_decimal(hourly_rate)


def cost_from_rate_seconds(total_rate_seconds: Decimal) -> Decimal:
    return quantize_money(total_rate_seconds / SECONDS_PER_HOUR)


def entry_cost(duration_seconds: int, hourly_rate: Amount) -> Decimal:
    return cost_from_rate_seconds(rate_seconds(duration_seconds, hourly_rate))
