"""
Slot generation: recurring weekly templates -> dated, priced slots.

Generation is insert-if-absent on (resource, date, start_time), so it can be
re-run after a template edit without touching slots that already carry
bookings. Wiping slots is a separate, explicit operation (``clear_slots``).
"""
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy import and_, or_

from models import db
from models.availability_template import AvailabilityTemplate
from models.resource import Resource
from models.booking import Booking
from models.slot import Slot, SLOT_BLOCKED, SLOT_CANCELLED, SLOT_OPEN
from services import analytics
from services.errors import NotFound, ValidationError
from services.pricing import slot_pricing
from services.upsert import insert_if_absent

logger = logging.getLogger(__name__)


def day_of_week(d: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return d.isoweekday() % 7


def iter_dates(start_date: date, end_date: date):
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def _written_order(tpl):
    return (tpl.created_at or datetime.min, tpl.id or 0)


def newest_templates_by_day(templates: Iterable[AvailabilityTemplate]) -> dict:
    """Only the most recently written template drives generation for a day."""
    newest = {}
    for tpl in templates:
        seen = newest.get(tpl.day_of_week)
        if seen is None or _written_order(tpl) >= _written_order(seen):
            newest[tpl.day_of_week] = tpl
    return newest


def day_windows(template: AvailabilityTemplate) -> list[tuple[time, time]]:
    """
    Walk the template's opening hours in steps of slot + break.

    A trailing partial slot is dropped, and the walk stops at
    ``max_sessions_per_day`` when that cap is set.
    """
    if template.slot_minutes <= 0:
        return []

    anchor = date(2000, 1, 1)
    cursor = datetime.combine(anchor, template.start_time)
    close = datetime.combine(anchor, template.end_time)
    length = timedelta(minutes=template.slot_minutes)
    step = length + timedelta(minutes=template.break_minutes or 0)

    windows = []
    while cursor + length <= close:
        if template.max_sessions_per_day and len(windows) >= template.max_sessions_per_day:
            break
        windows.append((cursor.time(), (cursor + length).time()))
        cursor += step
    return windows


def build_candidates(resource: Resource, start_date: date, end_date: date, templates) -> list[dict]:
    """Pure expansion, nothing is written."""
    if start_date is None or end_date is None or end_date < start_date:
        return []

    by_day = newest_templates_by_day(templates)
    candidates = []
    for current in iter_dates(start_date, end_date):
        tpl = by_day.get(day_of_week(current))
        if tpl is None or not tpl.is_available:
            continue
        for start, end in day_windows(tpl):
            final_price, classification = slot_pricing(resource, start)
            candidates.append({
                "resource_id": resource.id,
                "date": current,
                "start_time": start,
                "end_time": end,
                "capacity": resource.capacity,
                "occupancy": 0,
                "base_price": resource.base_price,
                "final_price": final_price,
                "classification": classification,
                "status": SLOT_OPEN,
            })
    return candidates


def _load_resource(resource_id: int) -> Resource:
    resource = db.session.get(Resource, resource_id)
    if not resource:
        raise NotFound("Resource not found")
    if not resource.is_active:
        raise ValidationError("Resource is deactivated")
    return resource


def generate_slots(resource_id: int, start_date: date, end_date: date, templates=None) -> int:
    """
    Insert every missing slot for the range and return how many were created.

    The caller owns the transaction (see services.tx.run_in_transaction).
    """
    resource = _load_resource(resource_id)
    if templates is None:
        templates = AvailabilityTemplate.query.filter_by(resource_id=resource.id).all()

    created_per_day = defaultdict(int)
    for values in build_candidates(resource, start_date, end_date, templates):
        created_per_day[values["date"]] += insert_if_absent(
            Slot, values, ("resource_id", "date", "start_time")
        )

    for on_date, count in created_per_day.items():
        analytics.add_slots(resource.id, on_date, count, count * resource.capacity)

    created = sum(created_per_day.values())
    logger.info("Generated %d slots for resource %s (%s..%s)", created, resource.id, start_date, end_date)
    return created


def clear_slots(resource_id: int, start_date: date, end_date: date) -> dict:
    """
    Destructive reset of a resource's slots in a range.

    Slots that have ever been booked are kept (bookings are an audit trail
    and reference them) and reported as skipped.
    """
    if db.session.get(Resource, resource_id) is None:
        raise NotFound("Resource not found")
    if end_date < start_date:
        return {"deleted": 0, "skipped": 0}

    slots = (
        Slot.query
        .filter(Slot.resource_id == resource_id, Slot.date >= start_date, Slot.date <= end_date)
        .all()
    )
    booked_ids = set()
    if slots:
        booked_ids = {
            row.slot_id
            for row in Booking.query.filter(Booking.slot_id.in_([s.id for s in slots])).all()
        }

    deleted_per_day = defaultdict(int)
    units_per_day = defaultdict(int)
    skipped = 0
    for s in slots:
        if s.id in booked_ids or s.occupancy > 0:
            skipped += 1
            continue
        deleted_per_day[s.date] += 1
        units_per_day[s.date] += s.capacity
        db.session.delete(s)

    for on_date, count in deleted_per_day.items():
        analytics.remove_slots(resource_id, on_date, count, units_per_day[on_date])

    return {"deleted": sum(deleted_per_day.values()), "skipped": skipped}


def block_slots(slot_ids, reason: Optional[str]) -> list[Slot]:
    """
    Administrative exception (e.g. maintenance). Existing bookings are kept;
    Cancelled slots are terminal and left alone.
    """
    slots = Slot.query.filter(Slot.id.in_(list(slot_ids))).all()
    if len(slots) != len(set(slot_ids)):
        raise NotFound("One or more slots not found")
    for s in slots:
        if s.status == SLOT_CANCELLED:
            continue
        s.status = SLOT_BLOCKED
        s.block_reason = reason
    return slots


def unblock_slots(slot_ids) -> list[Slot]:
    slots = Slot.query.filter(Slot.id.in_(list(slot_ids))).all()
    if len(slots) != len(set(slot_ids)):
        raise NotFound("One or more slots not found")
    for s in slots:
        if s.status == SLOT_BLOCKED:
            s.status = SLOT_OPEN
            s.block_reason = None
            s.refresh_status()
    return slots


def list_slots(resource_id: int, start_date: date, end_date: Optional[date] = None, available_only: bool = True,
               now: Optional[datetime] = None):
    """Read-only listing; no locks are taken. Started slots are not available."""
    end_date = end_date or start_date
    q = Slot.query.filter(
        Slot.resource_id == resource_id,
        Slot.date >= start_date,
        Slot.date <= end_date,
    )
    if available_only:
        now = now or datetime.utcnow()
        q = q.filter(
            Slot.status.notin_((SLOT_BLOCKED, SLOT_CANCELLED)),
            Slot.occupancy < Slot.capacity,
            or_(Slot.date > now.date(), and_(Slot.date == now.date(), Slot.start_time > now.time())),
        )
    return q.order_by(Slot.date.asc(), Slot.start_time.asc()).all()
