"""
Time-sensitive pricing.

All amounts are integers in the currency's smallest unit. The peak window
is half-open: a slot starting exactly at ``peak_end`` is off-peak.

The price stored on a slot is the non-member, peak-adjusted price; the
member discount is only ever applied at reservation time.
"""
from datetime import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from models.slot import PEAK, OFF_PEAK

DEFAULT_MEMBER_DISCOUNT_PCT = 15


def _to_minor_units(amount: Decimal) -> int:
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_peak(at: time, peak_start: Optional[time], peak_end: Optional[time]) -> bool:
    if peak_start is None or peak_end is None:
        return False
    return peak_start <= at < peak_end


def classify(at: time, peak_start: Optional[time], peak_end: Optional[time]) -> str:
    return PEAK if is_peak(at, peak_start, peak_end) else OFF_PEAK


def peak_adjusted(base_price: int, multiplier) -> int:
    return _to_minor_units(Decimal(base_price) * Decimal(str(multiplier)))


def apply_member_discount(amount: int, discount_pct=DEFAULT_MEMBER_DISCOUNT_PCT) -> int:
    pct = Decimal(str(discount_pct if discount_pct is not None else DEFAULT_MEMBER_DISCOUNT_PCT))
    pct = min(max(pct, Decimal(0)), Decimal(100))
    return _to_minor_units(Decimal(amount) * (Decimal(100) - pct) / Decimal(100))


def price(
    at: time,
    base_price: int,
    peak_start: Optional[time],
    peak_end: Optional[time],
    peak_multiplier=1.0,
    is_member: bool = False,
    member_discount_pct=DEFAULT_MEMBER_DISCOUNT_PCT,
) -> int:
    amount = base_price
    if is_peak(at, peak_start, peak_end):
        amount = peak_adjusted(base_price, peak_multiplier)
    if is_member:
        amount = apply_member_discount(amount, member_discount_pct)
    return amount


def slot_pricing(resource, at: time) -> tuple[int, str]:
    """(stored final price, classification) for a slot of ``resource`` starting at ``at``."""
    final_price = price(
        at,
        resource.base_price,
        resource.peak_start,
        resource.peak_end,
        resource.peak_multiplier,
    )
    return final_price, classify(at, resource.peak_start, resource.peak_end)


def booking_price(slot, resource, is_member: bool) -> int:
    if not is_member:
        return slot.final_price
    return apply_member_discount(slot.final_price, resource.member_discount_pct)
