"""
Reservation engine.

``reserve`` is the only code path that raises slot occupancy. Everything
between the slot lock and the commit runs in one transaction: booking row,
occupancy bump, status recompute and analytics increment become visible
together or not at all. Only one slot is ever locked per transaction.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, ACTIVE_BOOKING_STATUSES, BOOKING_CONFIRMED
from models.resource import Resource
from models.slot import Slot
from models.waitlist_entry import WaitlistEntry, WAITLIST_FULFILLED, WAITLIST_WAITING
from services import analytics
from services.errors import (
    CapacityExceeded,
    ConflictError,
    DuplicateBooking,
    NotFound,
    SlotUnavailable,
)
from services.pricing import booking_price
from services.tx import run_in_transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationResult:
    booking_id: int
    slot_id: int
    resource_id: int
    resource_name: str
    date: date
    start_time: time
    end_time: time
    price: int

    @property
    def time_range(self) -> str:
        return f"{self.start_time.strftime('%H:%M')} - {self.end_time.strftime('%H:%M')}"

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "slot_id": self.slot_id,
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "date": self.date.isoformat(),
            "time_range": self.time_range,
            "price": self.price,
        }


def lock_slot(slot_id: int) -> Optional[Slot]:
    """SELECT ... FOR UPDATE on one slot, always re-read from the database."""
    return (
        Slot.query
        .populate_existing()
        .with_for_update()
        .filter_by(id=slot_id)
        .first()
    )


def find_active_booking(requester_id: int, resource_kind: str, on_date: date, start: time) -> Optional[Booking]:
    return (
        Booking.query
        .filter(
            Booking.requester_id == requester_id,
            Booking.resource_kind == resource_kind,
            Booking.booking_date == on_date,
            Booking.start_time == start,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        .first()
    )


def _reserve_locked(slot_id, requester_id, is_member, notes, waitlist_entry_id, now):
    slot = lock_slot(slot_id)
    if slot is None:
        raise NotFound("Slot not found")

    resource = db.session.get(Resource, slot.resource_id)
    if resource is None or not resource.is_active or not slot.is_bookable():
        raise SlotUnavailable()
    if slot.starts_at() <= now:
        raise SlotUnavailable("Slot has already started")

    if find_active_booking(requester_id, resource.kind, slot.date, slot.start_time):
        raise DuplicateBooking()

    entry = None
    if waitlist_entry_id is not None:
        entry = db.session.get(WaitlistEntry, waitlist_entry_id, populate_existing=True)
        if entry is None or entry.status != WAITLIST_WAITING:
            raise ConflictError("Waitlist entry is no longer waiting")

    price = booking_price(slot, resource, is_member)

    booking = Booking(
        slot_id=slot.id,
        resource_id=resource.id,
        resource_kind=resource.kind,
        booking_date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        requester_id=requester_id,
        is_member=bool(is_member),
        status=BOOKING_CONFIRMED,
        price_paid=price,
        notes=notes,
        waitlist_entry_id=waitlist_entry_id,
    )
    db.session.add(booking)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # uq_booking_requester_active: a concurrent request by the same requester won
        raise DuplicateBooking() from exc

    # Conditional update keeps occupancy <= capacity even if the row lock is a no-op
    updated = (
        Slot.query
        .filter(Slot.id == slot.id, Slot.occupancy < Slot.capacity)
        .update({Slot.occupancy: Slot.occupancy + 1}, synchronize_session=False)
    )
    if updated != 1:
        raise CapacityExceeded()
    db.session.refresh(slot)
    slot.refresh_status()

    analytics.increment(resource.id, slot.date, price, slot.is_peak, bool(is_member))

    if entry is not None:
        entry.status = WAITLIST_FULFILLED
        entry.booking_id = booking.id

    db.session.flush()
    return ReservationResult(
        booking_id=booking.id,
        slot_id=slot.id,
        resource_id=resource.id,
        resource_name=resource.name,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        price=price,
    )


def reserve(slot_id: int, requester_id: int, is_member: bool = False, notes: Optional[str] = None,
            waitlist_entry_id: Optional[int] = None, now: Optional[datetime] = None) -> ReservationResult:
    """
    Book one unit of a slot for ``requester_id``.

    Slots that have already started are unavailable. Raises NotFound,
    SlotUnavailable, DuplicateBooking or CapacityExceeded;
    on any error nothing is committed.
    """
    now = now or datetime.utcnow()
    result = run_in_transaction(_reserve_locked, slot_id, requester_id, is_member, notes, waitlist_entry_id, now)
    logger.info("Booking %s created on slot %s for requester %s", result.booking_id, slot_id, requester_id)
    return result


def resolve_slot_id(resource_id: int, on_date: date, start: time) -> int:
    slot = Slot.query.filter_by(resource_id=resource_id, date=on_date, start_time=start).first()
    if slot is None:
        raise NotFound("Slot not found")
    return slot.id


def reserve_at(resource_id: int, on_date: date, start: time, requester_id: int,
               is_member: bool = False, notes: Optional[str] = None,
               now: Optional[datetime] = None) -> ReservationResult:
    return reserve(resolve_slot_id(resource_id, on_date, start), requester_id, is_member, notes, now=now)
