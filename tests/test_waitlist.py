from datetime import datetime, time, timedelta

import pytest

from models import db
from models.booking import Booking
from models.waitlist_entry import WaitlistEntry, WAITLIST_EXPIRED, WAITLIST_FULFILLED, WAITLIST_WAITING
from services import cancellation, reservation, waitlist
from services.errors import AlreadyWaitlisted, ConflictError, NotFound, ValidationError
from tests.conftest import future_date


def _full_slot(make_resource, make_slot, holder=1):
    resource = make_resource()
    slot = make_slot(resource)
    booking_id = reservation.reserve(slot.id, requester_id=holder).booking_id
    return resource, slot, booking_id


def test_join_and_duplicate(app, make_resource):
    resource = make_resource()
    on_date = future_date()

    entry = waitlist.join_waitlist(resource.id, requester_id=3, preferred_date=on_date)
    assert entry.status == WAITLIST_WAITING

    with pytest.raises(AlreadyWaitlisted):
        waitlist.join_waitlist(resource.id, requester_id=3, preferred_date=on_date)


def test_join_validates_window_and_resource(app, make_resource):
    resource = make_resource()
    with pytest.raises(ValidationError):
        waitlist.join_waitlist(resource.id, 3, future_date(), time(12, 0), time(10, 0))
    with pytest.raises(NotFound):
        waitlist.join_waitlist(9999, 3, future_date())


def test_cancellation_promotes_first_waiting(app, make_resource, make_slot):
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    first = waitlist.join_waitlist(resource.id, requester_id=10, preferred_date=slot.date).id
    second = waitlist.join_waitlist(resource.id, requester_id=11, preferred_date=slot.date).id

    result = cancellation.cancel(booking_id, requester_id=1)

    assert result.promoted_booking_id is not None
    promoted = db.session.get(Booking, result.promoted_booking_id)
    assert promoted.requester_id == 10
    assert promoted.waitlist_entry_id == first
    assert db.session.get(WaitlistEntry, first).status == WAITLIST_FULFILLED
    assert db.session.get(WaitlistEntry, second).status == WAITLIST_WAITING


def test_priority_beats_arrival(app, make_resource, make_slot):
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    waitlist.join_waitlist(resource.id, requester_id=10, preferred_date=slot.date)
    waitlist.join_waitlist(resource.id, requester_id=11, preferred_date=slot.date, priority=5)

    result = cancellation.cancel(booking_id, requester_id=1)
    assert db.session.get(Booking, result.promoted_booking_id).requester_id == 11


def test_withdrawn_entry_is_not_promoted(app, make_resource, make_slot):
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    entry_id = waitlist.join_waitlist(resource.id, requester_id=10, preferred_date=slot.date).id
    waitlist.withdraw(entry_id, requester_id=10)

    result = cancellation.cancel(booking_id, requester_id=1)
    assert result.promoted_booking_id is None
    assert Booking.query.filter_by(requester_id=10).count() == 0

    with pytest.raises(ConflictError):
        waitlist.withdraw(entry_id, requester_id=10)


def test_withdraw_requires_owner(app, make_resource):
    resource = make_resource()
    entry_id = waitlist.join_waitlist(resource.id, requester_id=10, preferred_date=future_date()).id
    with pytest.raises(NotFound):
        waitlist.withdraw(entry_id, requester_id=99)


def test_preferred_window_is_respected(app, make_resource, make_slot):
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    # slot runs 10:00-11:00
    waitlist.join_waitlist(resource.id, 10, slot.date, time(12, 0), time(14, 0))
    waitlist.join_waitlist(resource.id, 11, slot.date, time(9, 0), time(11, 0))

    result = cancellation.cancel(booking_id, requester_id=1)
    assert db.session.get(Booking, result.promoted_booking_id).requester_id == 11


def test_conflicting_candidate_is_skipped(app, make_resource, make_slot):
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    other = make_resource(name="Studio B")
    # requester 10 already holds the same time in another facility
    reservation.reserve(make_slot(other, slot.date).id, requester_id=10)
    blocked_entry = waitlist.join_waitlist(resource.id, 10, slot.date).id
    waitlist.join_waitlist(resource.id, 11, slot.date)

    result = cancellation.cancel(booking_id, requester_id=1)
    assert db.session.get(Booking, result.promoted_booking_id).requester_id == 11
    assert db.session.get(WaitlistEntry, blocked_entry).status == WAITLIST_WAITING


def test_promotion_can_be_switched_off(app, make_resource, make_slot):
    app.config["WAITLIST_PROMOTE_ON_CANCEL"] = False
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    waitlist.join_waitlist(resource.id, 10, slot.date)

    assert cancellation.cancel(booking_id, requester_id=1).promoted_booking_id is None
    assert waitlist.sweep()["promoted"] == 1


def test_sweep_expires_past_entries(app, make_resource):
    resource = make_resource()
    past = (datetime.utcnow() - timedelta(days=2)).date()
    entry_id = waitlist.join_waitlist(resource.id, 10, past).id

    outcome = waitlist.sweep()
    assert outcome["expired"] == 1
    assert db.session.get(WaitlistEntry, entry_id).status == WAITLIST_EXPIRED


def test_listing(app, make_resource):
    resource = make_resource()
    on_date = future_date()
    waitlist.join_waitlist(resource.id, 10, on_date)
    waitlist.join_waitlist(resource.id, 11, on_date, priority=1)

    assert [e.requester_id for e in waitlist.list_for_resource(resource.id, on_date)] == [11, 10]
    assert len(waitlist.list_for_requester(10)) == 1
    assert waitlist.list_for_resource(resource.id, status=WAITLIST_EXPIRED) == []


def test_canceller_is_not_rebooked(app, make_resource, make_slot):
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    own = waitlist.join_waitlist(resource.id, requester_id=1, preferred_date=slot.date).id

    result = cancellation.cancel(booking_id, requester_id=1)

    assert result.promoted_booking_id is None
    assert db.session.get(WaitlistEntry, own).status == WAITLIST_WAITING
    assert Booking.query.filter_by(requester_id=1).count() == 1


def test_canceller_is_skipped_for_the_next_waiting(app, make_resource, make_slot):
    resource, slot, booking_id = _full_slot(make_resource, make_slot)
    waitlist.join_waitlist(resource.id, requester_id=1, preferred_date=slot.date, priority=9)
    waitlist.join_waitlist(resource.id, requester_id=12, preferred_date=slot.date)

    result = cancellation.cancel(booking_id, requester_id=1)
    assert db.session.get(Booking, result.promoted_booking_id).requester_id == 12


def test_started_slot_is_not_filled_from_waitlist(app, make_resource, make_slot):
    resource = make_resource()
    slot = make_slot(resource)
    starts_at = datetime.combine(slot.date, slot.start_time)
    booking_id = reservation.reserve(slot.id, requester_id=1, now=starts_at - timedelta(hours=1)).booking_id
    entry_id = waitlist.join_waitlist(resource.id, requester_id=2, preferred_date=slot.date).id

    result = cancellation.admin_cancel(booking_id, now=starts_at + timedelta(minutes=10))

    assert result.promoted_booking_id is None
    assert waitlist.promote_for_slot(slot.id, now=starts_at) is None
    assert db.session.get(WaitlistEntry, entry_id).status == WAITLIST_WAITING


def test_concurrent_duplicate_join_hits_the_unique_index(app, make_resource, monkeypatch):
    resource = make_resource()
    on_date = future_date()
    waitlist.join_waitlist(resource.id, requester_id=3, preferred_date=on_date)

    # both joins pass the lookup, as when two requests race
    monkeypatch.setattr(waitlist, "find_waiting", lambda *args: None)
    with pytest.raises(AlreadyWaitlisted):
        waitlist.join_waitlist(resource.id, requester_id=3, preferred_date=on_date)
    assert WaitlistEntry.query.filter_by(requester_id=3).count() == 1


def test_rejoin_after_withdraw(app, make_resource):
    resource = make_resource()
    on_date = future_date()
    first = waitlist.join_waitlist(resource.id, requester_id=3, preferred_date=on_date)
    waitlist.withdraw(first.id, requester_id=3)

    again = waitlist.join_waitlist(resource.id, requester_id=3, preferred_date=on_date)
    assert again.id != first.id
    assert again.status == WAITLIST_WAITING
