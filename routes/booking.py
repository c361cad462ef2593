from flask import Blueprint, request, jsonify, g

from models.booking import Booking
from models.slot import Slot
from security.rbac import require_roles
from services import cancellation, reservation, slot_generator
from services.errors import ValidationError
from services.tx import run_in_transaction
from utils.auth_context import login_required
from utils.audit import log_event
from utils.parsing import parse_date, parse_id_list, parse_int, parse_time

booking_bp = Blueprint("booking", __name__)


def _booking_rows(rows):
    slots = {s.id: s for s in Slot.query.filter(Slot.id.in_([b.slot_id for b in rows])).all()} if rows else {}
    out = []
    for b in rows:
        row = b.to_dict()
        s = slots.get(b.slot_id)
        row["slot_status"] = s.status if s else None
        out.append(row)
    return out


# ---------- PLAYERS: book slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/bookings")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    notes = (data.get("notes") or "").strip() or None

    if data.get("slot_id") not in (None, ""):
        slot_id = parse_int(data.get("slot_id"), "slot_id", minimum=1)
        result = reservation.reserve(slot_id, g.user.id, g.user.is_member, notes)
    elif data.get("resource_id") not in (None, ""):
        result = reservation.reserve_at(
            parse_int(data.get("resource_id"), "resource_id", minimum=1),
            parse_date(data.get("date")),
            parse_time(data.get("start_time"), "start_time"),
            g.user.id,
            g.user.is_member,
            notes,
        )
    else:
        raise ValidationError("slot_id or resource_id, date and start_time are required")

    log_event("BOOKING_CREATE", actor_id=g.user.id, entity="booking", entity_id=result.booking_id,
              metadata={"slot_id": result.slot_id, "price": result.price})
    return jsonify(result.to_dict()), 201


# ---------- PLAYERS: cancel booking (policy window) ----------
@booking_bp.post("/bookings/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    result = cancellation.cancel(booking_id, g.user.id, reason)

    log_event("BOOKING_CANCEL", actor_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"reason": reason, "refund_amount": result.refund_amount})
    if result.promoted_booking_id:
        log_event("WAITLIST_PROMOTE", entity="booking", entity_id=result.promoted_booking_id,
                  metadata={"slot_id": result.slot_id})
    return jsonify(message="Cancelled", **result.to_dict()), 200


# ---------- PLAYERS: view my bookings ----------
@booking_bp.get("/bookings/me")
@login_required
def my_bookings():
    status = (request.args.get("status") or "").strip().upper()
    q = Booking.query.filter_by(requester_id=g.user.id)
    if status:
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.booking_date.desc(), Booking.start_time.desc()).all()
    return jsonify(_booking_rows(rows)), 200


# ---------- STAFF/ADMIN: list all bookings ----------
@booking_bp.get("/bookings")
@require_roles("ADMIN", "STAFF")
def list_all_bookings():
    q = Booking.query
    status = (request.args.get("status") or "").strip().upper()
    if status:
        q = q.filter_by(status=status)
    resource_id = request.args.get("resource_id", type=int)
    if resource_id:
        q = q.filter_by(resource_id=resource_id)
    if request.args.get("date"):
        q = q.filter_by(booking_date=parse_date(request.args.get("date")))

    rows = q.order_by(Booking.created_at.desc()).limit(200).all()
    return jsonify(_booking_rows(rows)), 200


# ---------- ADMIN: cancel any booking ----------
@booking_bp.post("/bookings/<int:booking_id>/admin_cancel")
@require_roles("ADMIN")
def admin_cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Admin cancellation"

    result = cancellation.admin_cancel(booking_id, reason)

    log_event("ADMIN_BOOKING_CANCEL", actor_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"reason": reason, "refund_amount": result.refund_amount})
    if result.promoted_booking_id:
        log_event("WAITLIST_PROMOTE", entity="booking", entity_id=result.promoted_booking_id,
                  metadata={"slot_id": result.slot_id})
    return jsonify(message="Cancelled by admin", **result.to_dict()), 200


@booking_bp.post("/bookings/<int:booking_id>/complete")
@require_roles("ADMIN", "STAFF")
def complete_booking(booking_id: int):
    booking = cancellation.complete(booking_id)

    log_event("BOOKING_COMPLETE", actor_id=g.user.id, entity="booking", entity_id=booking_id)
    return jsonify(booking.to_dict()), 200


# ---------- STAFF/ADMIN: block / unblock slots ----------
@booking_bp.post("/slots/block")
@require_roles("ADMIN", "STAFF")
def block_slots():
    data = request.get_json(silent=True) or {}
    slot_ids = parse_id_list(data.get("slot_ids"), "slot_ids")
    reason = (data.get("reason") or "").strip() or None

    slots = run_in_transaction(slot_generator.block_slots, slot_ids, reason)

    log_event("SLOT_BLOCK", actor_id=g.user.id, entity="slot", entity_id=",".join(map(str, slot_ids)),
              metadata={"reason": reason})
    return jsonify([s.to_dict() for s in slots]), 200


@booking_bp.post("/slots/unblock")
@require_roles("ADMIN", "STAFF")
def unblock_slots():
    data = request.get_json(silent=True) or {}
    slot_ids = parse_id_list(data.get("slot_ids"), "slot_ids")

    slots = run_in_transaction(slot_generator.unblock_slots, slot_ids)

    log_event("SLOT_UNBLOCK", actor_id=g.user.id, entity="slot", entity_id=",".join(map(str, slot_ids)))
    return jsonify([s.to_dict() for s in slots]), 200


# ---------- ADMIN: cancel slots (terminal) ----------
@booking_bp.post("/slots/cancel")
@require_roles("ADMIN")
def cancel_slots():
    data = request.get_json(silent=True) or {}
    slot_ids = parse_id_list(data.get("slot_ids"), "slot_ids")
    reason = (data.get("reason") or "").strip() or None

    outcome = cancellation.cancel_slots(slot_ids, reason)

    for item in outcome:
        log_event("SLOT_CANCEL", actor_id=g.user.id, entity="slot", entity_id=item["slot_id"],
                  metadata={"reason": reason, "refunds": item["refunds"]})
    return jsonify(slots=outcome), 200
