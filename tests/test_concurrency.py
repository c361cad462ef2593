import threading

from models import db
from models.booking import Booking
from models.slot import Slot
from services import reservation
from services.errors import ConflictError

WORKERS = 6


def _race(app, slot_id, requester_ids):
    barrier = threading.Barrier(len(requester_ids))
    outcomes = {}

    def worker(requester_id):
        with app.app_context():
            barrier.wait()
            try:
                reservation.reserve(slot_id, requester_id)
                outcomes[requester_id] = "ok"
            except ConflictError as exc:
                outcomes[requester_id] = exc.code
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(rid,)) for rid in requester_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def test_single_unit_goes_to_exactly_one_requester(app, make_resource, make_slot):
    slot_id = make_slot(make_resource()).id
    db.session.commit()

    outcomes = _race(app, slot_id, list(range(1, WORKERS + 1)))

    assert len(outcomes) == WORKERS
    assert list(outcomes.values()).count("ok") == 1
    assert set(outcomes.values()) - {"ok"} <= {"SLOT_UNAVAILABLE", "CAPACITY_EXCEEDED"}

    db.session.expire_all()
    assert db.session.get(Slot, slot_id).occupancy == 1
    assert Booking.query.filter_by(slot_id=slot_id).count() == 1


def test_group_slot_never_oversold(app, make_resource, make_slot):
    slot_id = make_slot(make_resource(capacity=3)).id
    db.session.commit()

    outcomes = _race(app, slot_id, list(range(1, WORKERS + 1)))

    assert list(outcomes.values()).count("ok") == 3
    db.session.expire_all()
    assert db.session.get(Slot, slot_id).occupancy == 3


def test_same_requester_racing_gets_one_booking(app, make_resource, make_slot):
    slot_id = make_slot(make_resource(capacity=4)).id
    db.session.commit()

    barrier = threading.Barrier(3)
    codes = []

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                reservation.reserve(slot_id, 42)
                codes.append("ok")
            except ConflictError as exc:
                codes.append(exc.code)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert codes.count("ok") == 1
    assert Booking.query.filter_by(requester_id=42).count() == 1
