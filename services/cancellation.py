"""
Cancellation and refund policy.

The notice check happens before anything is written, so a rejected
cancellation leaves no trace. Waitlist promotion runs after the commit and
can never undo a cancellation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Optional

from flask import current_app

from models import db
from models.booking import Booking, ACTIVE_BOOKING_STATUSES, BOOKING_CANCELLED, BOOKING_COMPLETED, BOOKING_CONFIRMED
from models.cancellation_policy import CancellationPolicy
from models.slot import Slot, SLOT_CANCELLED
from services import analytics
from services.errors import BookingNotCancellable, CancellationWindowClosed, ConflictError, NotFound
from services.reservation import lock_slot
from services.tx import run_in_transaction
from services.waitlist import promote_for_slot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectivePolicy:
    min_notice_hours: int
    refund_percentage: int


@dataclass(frozen=True)
class CancellationResult:
    booking_id: int
    slot_id: int
    requester_id: int
    refund_amount: int
    refund_percentage: int
    promoted_booking_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "refund_amount": self.refund_amount,
            "refund_percentage": self.refund_percentage,
            "promoted_booking_id": self.promoted_booking_id,
        }


def default_policy() -> EffectivePolicy:
    return EffectivePolicy(
        min_notice_hours=int(current_app.config.get("DEFAULT_CANCEL_NOTICE_HOURS", 24)),
        refund_percentage=int(current_app.config.get("DEFAULT_REFUND_PERCENTAGE", 100)),
    )


def policy_for(resource_id: int) -> EffectivePolicy:
    row = CancellationPolicy.query.filter_by(resource_id=resource_id).first()
    if row is None:
        return default_policy()
    return EffectivePolicy(row.min_notice_hours, row.refund_percentage)


def hours_until(starts_at: datetime, now: datetime) -> float:
    return (starts_at - now).total_seconds() / 3600


def refund_amount(price_paid: int, refund_percentage) -> int:
    """Never more than what was paid; rounded down to the smallest unit."""
    pct = min(max(Decimal(str(refund_percentage)), Decimal(0)), Decimal(100))
    amount = (Decimal(price_paid) * pct / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_DOWN)
    return min(int(amount), price_paid)


def _release(booking: Booking, reason: Optional[str], now: datetime):
    booking.status = BOOKING_CANCELLED
    booking.cancel_reason = reason
    booking.cancelled_at = now

    slot = lock_slot(booking.slot_id)
    if slot is not None:
        slot.occupancy = max(slot.occupancy - 1, 0)
        # Blocked/Cancelled overrides are kept; derive_status only touches the rest
        slot.refresh_status()

    analytics.decrement(
        booking.resource_id,
        booking.booking_date,
        booking.price_paid,
        slot.is_peak if slot is not None else False,
        booking.is_member,
    )
    return slot


def _lock_booking(booking_id: int) -> Optional[Booking]:
    return (
        Booking.query
        .populate_existing()
        .with_for_update()
        .filter_by(id=booking_id)
        .first()
    )


def _cancel_locked(booking_id, requester_id, reason, now, enforce_policy):
    booking = _lock_booking(booking_id)
    if booking is None or (requester_id is not None and booking.requester_id != requester_id):
        raise NotFound("Booking not found")
    if not booking.is_active:
        raise BookingNotCancellable()

    policy = policy_for(booking.resource_id) if enforce_policy else EffectivePolicy(0, 100)
    if enforce_policy and hours_until(booking.starts_at(), now) < policy.min_notice_hours:
        raise CancellationWindowClosed(policy.min_notice_hours)

    _release(booking, reason, now)
    return CancellationResult(
        booking_id=booking.id,
        slot_id=booking.slot_id,
        requester_id=booking.requester_id,
        refund_amount=refund_amount(booking.price_paid, policy.refund_percentage),
        refund_percentage=policy.refund_percentage,
    )


def _promote_after(result: CancellationResult, now: datetime) -> CancellationResult:
    try:
        promoted = promote_for_slot(result.slot_id, exclude_requester_id=result.requester_id, now=now)
    except Exception:
        db.session.rollback()
        logger.exception("Waitlist promotion failed for slot %s", result.slot_id)
        return result
    if promoted is None:
        return result
    return CancellationResult(
        booking_id=result.booking_id,
        slot_id=result.slot_id,
        requester_id=result.requester_id,
        refund_amount=result.refund_amount,
        refund_percentage=result.refund_percentage,
        promoted_booking_id=promoted.booking_id,
    )


def cancel(booking_id: int, requester_id: int, reason: Optional[str] = None,
           now: Optional[datetime] = None, promote: bool = True) -> CancellationResult:
    """
    Cancel the requester's booking under the resource's cancellation policy.

    Raises NotFound, BookingNotCancellable or CancellationWindowClosed.
    """
    now = now or datetime.utcnow()
    result = run_in_transaction(_cancel_locked, booking_id, requester_id, reason, now, True)
    logger.info("Booking %s cancelled by requester %s, refund %s", booking_id, requester_id, result.refund_amount)
    if promote and current_app.config.get("WAITLIST_PROMOTE_ON_CANCEL", True):
        result = _promote_after(result, now)
    return result


def admin_cancel(booking_id: int, reason: Optional[str] = None, now: Optional[datetime] = None,
                 promote: bool = True) -> CancellationResult:
    """Staff cancellation: no ownership or notice checks, full refund."""
    now = now or datetime.utcnow()
    result = run_in_transaction(_cancel_locked, booking_id, None, reason or "Admin cancellation", now, False)
    logger.info("Booking %s cancelled by staff", booking_id)
    if promote and current_app.config.get("WAITLIST_PROMOTE_ON_CANCEL", True):
        result = _promote_after(result, now)
    return result


def _cancel_slot_locked(slot_id, reason, now):
    slot = lock_slot(slot_id)
    if slot is None:
        raise NotFound("Slot not found")
    if slot.status == SLOT_CANCELLED:
        return {"slot_id": slot_id, "refunds": []}

    # before _release, so refresh_status keeps the override
    slot.status = SLOT_CANCELLED
    slot.block_reason = reason
    db.session.flush()

    bookings = (
        Booking.query
        .populate_existing()
        .with_for_update()
        .filter(Booking.slot_id == slot_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .order_by(Booking.id.asc())
        .all()
    )
    refunds = []
    for booking in bookings:
        _release(booking, reason, now)
        refunds.append({
            "booking_id": booking.id,
            "requester_id": booking.requester_id,
            "refund_amount": refund_amount(booking.price_paid, 100),
        })
    return {"slot_id": slot_id, "refunds": refunds}


def cancel_slots(slot_ids, reason: Optional[str] = None, now: Optional[datetime] = None) -> list[dict]:
    """
    Administrative terminal cancellation of whole slots.

    Each slot is handled in its own transaction: its active bookings are
    cancelled with a full refund and the slot becomes Cancelled. Freed units
    are not offered to the waitlist.
    """
    now = now or datetime.utcnow()
    slot_ids = list(dict.fromkeys(slot_ids))
    found = {s.id for s in Slot.query.filter(Slot.id.in_(slot_ids)).all()}
    if len(found) != len(slot_ids):
        raise NotFound("One or more slots not found")

    reason = reason or "Slot cancelled"
    outcome = []
    for slot_id in slot_ids:
        result = run_in_transaction(_cancel_slot_locked, slot_id, reason, now)
        logger.info("Slot %s cancelled, %d bookings refunded", slot_id, len(result["refunds"]))
        outcome.append(result)
    return outcome


def _complete_locked(booking_id, now):
    booking = _lock_booking(booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.status != BOOKING_CONFIRMED:
        raise ConflictError("Only confirmed bookings can be completed")
    booking.status = BOOKING_COMPLETED
    booking.completed_at = now
    return booking


def complete(booking_id: int, now: Optional[datetime] = None) -> Booking:
    """Terminal marking; occupancy is kept, the unit was consumed."""
    return run_in_transaction(_complete_locked, booking_id, now or datetime.utcnow())


def _complete_past_locked(now):
    rows = (
        Booking.query
        .filter(Booking.status == BOOKING_CONFIRMED, Booking.booking_date <= now.date())
        .all()
    )
    done = 0
    for b in rows:
        if datetime.combine(b.booking_date, b.end_time) <= now:
            b.status = BOOKING_COMPLETED
            b.completed_at = now
            done += 1
    return done


def complete_past_bookings(now: Optional[datetime] = None) -> int:
    return run_in_transaction(_complete_past_locked, now or datetime.utcnow())
