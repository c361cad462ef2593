from datetime import time

from services import pricing
from models.slot import PEAK, OFF_PEAK

PEAK_START = time(17, 0)
PEAK_END = time(21, 0)


def test_off_peak_is_base_price():
    assert pricing.price(time(10, 0), 1000, PEAK_START, PEAK_END, 1.5) == 1000


def test_peak_applies_multiplier():
    assert pricing.price(time(18, 0), 1000, PEAK_START, PEAK_END, 1.5) == 1500


def test_member_discount_after_peak_adjustment():
    assert pricing.price(time(18, 0), 1000, PEAK_START, PEAK_END, 1.5, is_member=True) == 1275


def test_peak_window_is_half_open():
    assert pricing.classify(time(17, 0), PEAK_START, PEAK_END) == PEAK
    assert pricing.classify(time(21, 0), PEAK_START, PEAK_END) == OFF_PEAK
    assert pricing.classify(time(16, 59), PEAK_START, PEAK_END) == OFF_PEAK


def test_no_peak_window_is_never_peak():
    assert not pricing.is_peak(time(18, 0), None, None)
    assert pricing.price(time(18, 0), 1000, None, None, 2.0) == 1000


def test_rounding_is_half_up():
    assert pricing.peak_adjusted(999, 1.5) == 1499  # 1498.5
    assert pricing.apply_member_discount(1001, 15) == 851  # 850.85
    assert pricing.apply_member_discount(10, 15) == 9  # 8.5


def test_discount_is_clamped():
    assert pricing.apply_member_discount(1000, 150) == 0
    assert pricing.apply_member_discount(1000, -5) == 1000
