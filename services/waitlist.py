"""
Waitlist: join/withdraw and promotion of waiting requesters.

Promotion never touches occupancy itself; it calls ``reserve`` on behalf of
the waiting requester, so the same capacity and duplicate-booking checks
apply as for a direct booking.
"""
import logging
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.exc import IntegrityError

from models import db
from models.resource import Resource
from models.slot import Slot, SLOT_BLOCKED, SLOT_CANCELLED
from models.waitlist_entry import (
    WaitlistEntry,
    WAITLIST_EXPIRED,
    WAITLIST_WAITING,
    WAITLIST_WITHDRAWN,
)
from services.errors import AlreadyWaitlisted, ConflictError, NotFound, ValidationError
from services.reservation import ReservationResult, reserve
from services.tx import run_in_transaction

logger = logging.getLogger(__name__)


def promotion_order(query):
    return query.order_by(
        WaitlistEntry.priority.desc(),
        WaitlistEntry.created_at.asc(),
        WaitlistEntry.id.asc(),
    )


def find_waiting(resource_id: int, requester_id: int, preferred_date: date) -> Optional[WaitlistEntry]:
    return WaitlistEntry.query.filter_by(
        resource_id=resource_id,
        requester_id=requester_id,
        preferred_date=preferred_date,
        status=WAITLIST_WAITING,
    ).first()


def _join(resource_id, requester_id, is_member, preferred_date, start, end, priority):
    resource = db.session.get(Resource, resource_id)
    if resource is None or not resource.is_active:
        raise NotFound("Resource not found")

    if find_waiting(resource_id, requester_id, preferred_date):
        raise AlreadyWaitlisted()

    entry = WaitlistEntry(
        resource_id=resource_id,
        requester_id=requester_id,
        is_member=bool(is_member),
        preferred_date=preferred_date,
        preferred_start_time=start,
        preferred_end_time=end,
        priority=priority or 0,
        status=WAITLIST_WAITING,
    )
    db.session.add(entry)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # uq_waitlist_requester_waiting: a concurrent join by the same requester won
        raise AlreadyWaitlisted() from exc
    return entry


def join_waitlist(resource_id: int, requester_id: int, preferred_date: date,
                  preferred_start_time: Optional[time] = None, preferred_end_time: Optional[time] = None,
                  is_member: bool = False, priority: int = 0) -> WaitlistEntry:
    if preferred_start_time and preferred_end_time and preferred_start_time >= preferred_end_time:
        raise ValidationError("preferred_end_time must be after preferred_start_time")
    return run_in_transaction(
        _join, resource_id, requester_id, is_member, preferred_date,
        preferred_start_time, preferred_end_time, priority,
    )


def _withdraw(entry_id, requester_id):
    entry = db.session.get(WaitlistEntry, entry_id)
    if entry is None or (requester_id is not None and entry.requester_id != requester_id):
        raise NotFound("Waitlist entry not found")
    if entry.status != WAITLIST_WAITING:
        raise ConflictError("Waitlist entry is no longer waiting")
    entry.status = WAITLIST_WITHDRAWN
    return entry


def withdraw(entry_id: int, requester_id: Optional[int]) -> WaitlistEntry:
    return run_in_transaction(_withdraw, entry_id, requester_id)


def waiting_candidates(slot: Slot, exclude_requester_id: Optional[int] = None) -> list[WaitlistEntry]:
    q = WaitlistEntry.query.filter_by(
        resource_id=slot.resource_id,
        preferred_date=slot.date,
        status=WAITLIST_WAITING,
    )
    if exclude_requester_id is not None:
        q = q.filter(WaitlistEntry.requester_id != exclude_requester_id)
    return [e for e in promotion_order(q).all() if e.matches(slot)]


def promote_for_slot(slot_id: int, exclude_requester_id: Optional[int] = None,
                     now: Optional[datetime] = None) -> Optional[ReservationResult]:
    """
    Offer one freed unit of ``slot_id`` to the first eligible waiting entry.

    Entries whose reservation conflicts (slot taken meanwhile, requester
    already booked at that time) stay Waiting and the next one is tried.
    Slots that have already started are never filled. ``exclude_requester_id``
    skips the requester who just gave the unit up.
    """
    now = now or datetime.utcnow()
    slot = db.session.get(Slot, slot_id, populate_existing=True)
    if slot is None or not slot.is_bookable() or slot.starts_at() <= now:
        return None

    for entry_id, requester_id, is_member in [
        (e.id, e.requester_id, e.is_member) for e in waiting_candidates(slot, exclude_requester_id)
    ]:
        try:
            result = reserve(slot_id, requester_id, is_member, notes="Promoted from waitlist",
                             waitlist_entry_id=entry_id, now=now)
        except ConflictError as exc:
            logger.info("Waitlist entry %s not promoted to slot %s: %s", entry_id, slot_id, exc.code)
            slot = db.session.get(Slot, slot_id, populate_existing=True)
            if slot is None or not slot.is_bookable():
                return None
            continue
        logger.info("Waitlist entry %s promoted to booking %s", entry_id, result.booking_id)
        return result
    return None


def _expire(today):
    rows = WaitlistEntry.query.filter(
        WaitlistEntry.status == WAITLIST_WAITING,
        WaitlistEntry.preferred_date < today,
    ).all()
    for e in rows:
        e.status = WAITLIST_EXPIRED
    return len(rows)


def expire_stale(now: Optional[datetime] = None) -> int:
    today = (now or datetime.utcnow()).date()
    return run_in_transaction(_expire, today)


def sweep(now: Optional[datetime] = None) -> dict:
    """
    Periodic pass: expire past entries, then try to fill every open slot that
    has matching waiting entries.
    """
    now = now or datetime.utcnow()
    expired = expire_stale(now)

    buckets = (
        db.session.query(WaitlistEntry.resource_id, WaitlistEntry.preferred_date)
        .filter(WaitlistEntry.status == WAITLIST_WAITING)
        .distinct()
        .all()
    )
    promoted = 0
    for resource_id, on_date in buckets:
        slot_ids = [
            s.id for s in Slot.query.filter(
                Slot.resource_id == resource_id,
                Slot.date == on_date,
                Slot.status.notin_((SLOT_BLOCKED, SLOT_CANCELLED)),
                Slot.occupancy < Slot.capacity,
            ).order_by(Slot.start_time.asc()).all()
            if s.starts_at() > now
        ]
        for slot_id in slot_ids:
            while promote_for_slot(slot_id, now=now) is not None:
                promoted += 1
    db.session.commit()
    return {"expired": expired, "promoted": promoted}


def list_for_resource(resource_id: int, on_date: Optional[date] = None, status: Optional[str] = None):
    q = WaitlistEntry.query.filter_by(resource_id=resource_id)
    if on_date:
        q = q.filter_by(preferred_date=on_date)
    if status:
        q = q.filter_by(status=status)
    return promotion_order(q).all()


def list_for_requester(requester_id: int):
    return (
        WaitlistEntry.query
        .filter_by(requester_id=requester_id)
        .order_by(WaitlistEntry.preferred_date.desc(), WaitlistEntry.created_at.desc())
        .all()
    )
