"""
Money arithmetic helpers.
Amounts are Decimal in major units at the edges and int minor units (cents)
whenever they are handed to the payment processor or summed for payouts.
Only two-decimal currencies are accepted, so one major unit is always 100
minor units.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Union

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, str]


class FeeSplit(NamedTuple):
    """How a charged amount is divided between the platform and the destination."""
    amount_minor: int
    platform_fee_minor: int
    destination_amount_minor: int


def quantize(amount: Number) -> Decimal:
    """Round a major-unit amount to cents, half up."""
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """
    Convert a major-unit amount to integer minor units.

    Rounds half up to the nearest minor unit, so 10.005 becomes 1001.
    """
    minor = (Decimal(str(amount)) * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)


def from_minor_units(amount_minor: int) -> Decimal:
    """Convert integer minor units back to a cent-precision Decimal."""
    return (Decimal(amount_minor) / HUNDRED).quantize(CENT)


def percent_of_minor(amount_minor: int, percent: Number) -> int:
    """Percentage of a minor-unit amount, rounded half up to a whole minor unit."""
    value = Decimal(amount_minor) * Decimal(str(percent)) / HUNDRED
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_fee(amount_minor: int, fee_percent: Number) -> FeeSplit:
    """
    Split a charge into platform fee and destination share.

    The destination share is derived by subtraction so the two parts always
    add back up to the charged amount.
    """
    if amount_minor < 0:
        raise ValueError("amount_minor must be non-negative")
    fee = percent_of_minor(amount_minor, fee_percent)
    return FeeSplit(amount_minor, fee, amount_minor - fee)


def compute_tax(subtotal: Number, tax_rate: Number) -> Decimal:
    """Tax on a subtotal at a percentage rate, rounded half up to cents."""
    return quantize(Decimal(str(subtotal)) * Decimal(str(tax_rate)) / HUNDRED)
