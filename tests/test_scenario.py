from datetime import datetime, time, timedelta

import pytest

from models import db
from models.booking import Booking, BOOKING_CONFIRMED
from models.slot import Slot, SLOT_FULL
from services import cancellation, reservation, waitlist
from services.errors import SlotUnavailable
from services.resources import add_templates
from services.slot_generator import day_of_week, generate_slots
from services.tx import run_in_transaction
from tests.conftest import future_date


def _next_monday():
    day = future_date(7)
    while day_of_week(day) != 1:
        day += timedelta(days=1)
    return day


def test_book_cancel_and_promote(app, make_resource):
    resource = make_resource(
        capacity=1, base_price=1000, peak_start="09:00", peak_end="10:00", peak_multiplier=1.5,
        cancellation_policy={"min_notice_hours": 24, "refund_percentage": 100},
    )
    monday = _next_monday()
    run_in_transaction(add_templates, resource.id, [
        {"day_of_week": 1, "start_time": "09:00", "end_time": "10:00", "slot_minutes": 60},
    ])
    assert run_in_transaction(generate_slots, resource.id, monday, monday) == 1
    slot = Slot.query.filter_by(resource_id=resource.id, date=monday).one()
    assert slot.start_time == time(9, 0)
    assert slot.final_price == 1500

    requester_a, requester_b = 1, 2
    booking_a = reservation.reserve(slot.id, requester_a)
    assert booking_a.price == 1500
    db.session.expire_all()
    assert db.session.get(Slot, slot.id).status == SLOT_FULL

    with pytest.raises(SlotUnavailable):
        reservation.reserve(slot.id, requester_b)
    waitlist.join_waitlist(resource.id, requester_b, monday)

    starts_at = datetime.combine(monday, time(9, 0))
    result = cancellation.cancel(booking_a.booking_id, requester_a, now=starts_at - timedelta(hours=48))
    assert result.refund_amount == 1500

    promoted = db.session.get(Booking, result.promoted_booking_id)
    assert promoted.requester_id == requester_b
    assert promoted.status == BOOKING_CONFIRMED
    assert promoted.price_paid == 1500
    db.session.expire_all()
    assert db.session.get(Slot, slot.id).occupancy == 1
