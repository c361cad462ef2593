from datetime import datetime, time, timedelta

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.slot import Slot, OFF_PEAK, SLOT_OPEN
from services.resources import create_resource, add_templates
from services.slot_generator import generate_slots
from services.tx import run_in_transaction

ADMIN = {"X-Requester-Id": "1", "X-Requester-Roles": "ADMIN"}
MEMBER = {"X-Requester-Id": "100", "X-Requester-Member": "true"}
PLAYER = {"X-Requester-Id": "200"}


def future_date(days=7):
    return (datetime.utcnow() + timedelta(days=days)).date()


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "gymslot-test.db")

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_resource(app):
    def _make(kind="FACILITY", name="Studio A", capacity=1, base_price=1000, **extra):
        data = {"kind": kind, "name": name, "capacity": capacity, "base_price": base_price}
        data.update(extra)
        return run_in_transaction(create_resource, data)
    return _make


@pytest.fixture
def make_slot(app):
    def _make(resource, on_date=None, start=time(10, 0), end=time(11, 0), capacity=None, final_price=None):
        slot = Slot(
            resource_id=resource.id,
            date=on_date or future_date(),
            start_time=start,
            end_time=end,
            capacity=capacity or resource.capacity,
            occupancy=0,
            base_price=resource.base_price,
            final_price=resource.base_price if final_price is None else final_price,
            classification=OFF_PEAK,
            status=SLOT_OPEN,
        )
        db.session.add(slot)
        db.session.commit()
        return slot
    return _make


@pytest.fixture
def open_week(app):
    """Templates for every day of the week, then slots generated for ``on_date``."""
    def _open(resource, on_date, start="09:00", end="12:00", slot_minutes=60, break_minutes=0):
        items = [
            {"day_of_week": d, "start_time": start, "end_time": end,
             "slot_minutes": slot_minutes, "break_minutes": break_minutes}
            for d in range(7)
        ]
        run_in_transaction(add_templates, resource.id, items)
        return run_in_transaction(generate_slots, resource.id, on_date, on_date)
    return _open
