from datetime import date, datetime, time, timedelta

from models import db
from models.availability_template import AvailabilityTemplate
from models.daily_analytics import DailyAnalyticsRecord
from models.slot import Slot, PEAK, OFF_PEAK, SLOT_BLOCKED, SLOT_CANCELLED, SLOT_OPEN
from services import reservation
from services.resources import add_templates
from services.slot_generator import (
    block_slots,
    build_candidates,
    clear_slots,
    day_of_week,
    day_windows,
    generate_slots,
    list_slots,
    unblock_slots,
)
from services.tx import run_in_transaction
from tests.conftest import future_date


def _tpl(start, end, slot_minutes=60, break_minutes=0, max_sessions=None):
    return AvailabilityTemplate(
        day_of_week=1,
        start_time=start,
        end_time=end,
        slot_minutes=slot_minutes,
        break_minutes=break_minutes,
        max_sessions_per_day=max_sessions,
        is_available=True,
    )


def test_day_of_week_starts_on_sunday():
    assert day_of_week(date(2026, 10, 18)) == 0  # Sunday
    assert day_of_week(date(2026, 10, 19)) == 1
    assert day_of_week(date(2026, 10, 24)) == 6


def test_day_windows_fill_opening_hours():
    windows = day_windows(_tpl(time(9, 0), time(12, 0)))
    assert windows == [(time(9, 0), time(10, 0)), (time(10, 0), time(11, 0)), (time(11, 0), time(12, 0))]


def test_trailing_partial_slot_is_dropped():
    assert len(day_windows(_tpl(time(9, 0), time(11, 30)))) == 2


def test_break_between_sessions():
    windows = day_windows(_tpl(time(9, 0), time(12, 0), slot_minutes=45, break_minutes=15))
    assert [w[0] for w in windows] == [time(9, 0), time(10, 0), time(11, 0)]
    assert windows[-1][1] == time(11, 45)


def test_max_sessions_caps_the_day():
    assert len(day_windows(_tpl(time(6, 0), time(22, 0), max_sessions=4))) == 4


def test_reversed_range_yields_nothing(app, make_resource):
    resource = make_resource()
    start = future_date(10)
    assert build_candidates(resource, start, start - timedelta(days=1), [_tpl(time(9, 0), time(10, 0))]) == []
    assert run_in_transaction(generate_slots, resource.id, start, start - timedelta(days=1)) == 0


def test_generation_is_idempotent(app, make_resource, open_week):
    resource = make_resource()
    on_date = future_date()
    assert open_week(resource, on_date) == 3

    assert run_in_transaction(generate_slots, resource.id, on_date, on_date) == 0
    assert Slot.query.filter_by(resource_id=resource.id).count() == 3

    row = DailyAnalyticsRecord.query.filter_by(resource_id=resource.id, date=on_date).one()
    assert row.total_slots == 3


def test_regeneration_keeps_booked_slots(app, make_resource, open_week):
    resource = make_resource()
    on_date = future_date()
    open_week(resource, on_date)
    slot = Slot.query.filter_by(resource_id=resource.id, start_time=time(9, 0)).one()
    reservation.reserve(slot.id, requester_id=5)

    run_in_transaction(generate_slots, resource.id, on_date, on_date)
    db.session.expire_all()
    slot = db.session.get(Slot, slot.id)
    assert slot.occupancy == 1


def test_newest_template_drives_generation(app, make_resource):
    resource = make_resource()
    on_date = future_date()
    dow = day_of_week(on_date)
    run_in_transaction(add_templates, resource.id, [{"day_of_week": dow, "start_time": "09:00", "end_time": "12:00"}])
    run_in_transaction(add_templates, resource.id, [{"day_of_week": dow, "start_time": "14:00", "end_time": "16:00"}])

    assert run_in_transaction(generate_slots, resource.id, on_date, on_date) == 2
    starts = [s.start_time for s in list_slots(resource.id, on_date)]
    assert starts == [time(14, 0), time(15, 0)]


def test_unavailable_day_is_skipped(app, make_resource):
    resource = make_resource()
    on_date = future_date()
    run_in_transaction(add_templates, resource.id, [{
        "day_of_week": day_of_week(on_date), "start_time": "09:00", "end_time": "12:00", "is_available": False,
    }])
    assert run_in_transaction(generate_slots, resource.id, on_date, on_date) == 0


def test_slots_are_priced_and_classified(app, make_resource, open_week):
    resource = make_resource(base_price=1000, peak_start="10:00", peak_end="11:00", peak_multiplier=1.5)
    on_date = future_date()
    open_week(resource, on_date)

    by_start = {s.start_time: s for s in list_slots(resource.id, on_date)}
    assert by_start[time(9, 0)].classification == OFF_PEAK
    assert by_start[time(9, 0)].final_price == 1000
    assert by_start[time(10, 0)].classification == PEAK
    assert by_start[time(10, 0)].final_price == 1500
    assert by_start[time(11, 0)].classification == OFF_PEAK


def test_trainer_defaults_apply(app, make_resource):
    trainer = make_resource(kind="TRAINER", name="Coach Kim", capacity=5)
    assert trainer.capacity == 1

    on_date = future_date()
    created = run_in_transaction(add_templates, trainer.id, [{
        "day_of_week": day_of_week(on_date), "start_time": "06:00", "end_time": "22:00",
    }])
    assert created[0].slot_minutes == 60
    assert created[0].break_minutes == 15
    assert created[0].max_sessions_per_day == 8
    assert run_in_transaction(generate_slots, trainer.id, on_date, on_date) == 8


def test_clear_slots_skips_booked(app, make_resource, open_week):
    resource = make_resource()
    on_date = future_date()
    open_week(resource, on_date)
    booked = Slot.query.filter_by(resource_id=resource.id, start_time=time(9, 0)).one()
    reservation.reserve(booked.id, requester_id=5)

    outcome = run_in_transaction(clear_slots, resource.id, on_date, on_date)
    assert outcome == {"deleted": 2, "skipped": 1}
    assert Slot.query.filter_by(resource_id=resource.id).count() == 1

    row = DailyAnalyticsRecord.query.filter_by(resource_id=resource.id, date=on_date).one()
    assert row.total_slots == 1
    assert row.total_capacity == 1


def test_block_and_unblock(app, make_resource, make_slot):
    resource = make_resource(capacity=2)
    slot = make_slot(resource)
    reservation.reserve(slot.id, requester_id=5)

    run_in_transaction(block_slots, [slot.id], "Maintenance")
    db.session.expire_all()
    assert db.session.get(Slot, slot.id).status == SLOT_BLOCKED
    assert list_slots(resource.id, slot.date) == []

    run_in_transaction(unblock_slots, [slot.id])
    db.session.expire_all()
    slot = db.session.get(Slot, slot.id)
    assert slot.status != SLOT_BLOCKED
    assert slot.status != SLOT_OPEN  # one unit is still held
    assert slot.block_reason is None


def test_listing_hides_started_slots(app, make_resource, make_slot):
    resource = make_resource()
    on_date = future_date()
    make_slot(resource, on_date, start=time(10, 0), end=time(11, 0))
    make_slot(resource, on_date, start=time(14, 0), end=time(15, 0))
    noon = datetime.combine(on_date, time(12, 0))

    assert [s.start_time for s in list_slots(resource.id, on_date, now=noon)] == [time(14, 0)]
    assert len(list_slots(resource.id, on_date, available_only=False, now=noon)) == 2
    assert list_slots(resource.id, on_date, now=noon + timedelta(days=1)) == []


def test_cancelled_slot_is_not_blocked_or_reopened(app, make_resource, make_slot):
    from services.cancellation import cancel_slots

    resource = make_resource()
    slot = make_slot(resource)
    cancel_slots([slot.id], "Closed for holiday")

    run_in_transaction(block_slots, [slot.id], "Maintenance")
    run_in_transaction(unblock_slots, [slot.id])
    db.session.expire_all()
    slot = db.session.get(Slot, slot.id)
    assert slot.status == SLOT_CANCELLED
    assert slot.block_reason == "Closed for holiday"
