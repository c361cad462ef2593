from flask import Blueprint, request, jsonify, g

from services import waitlist
from utils.auth_context import login_required
from utils.audit import log_event
from utils.parsing import parse_date, parse_int, parse_optional_time

waitlist_bp = Blueprint("waitlist", __name__, url_prefix="/waitlist")


@waitlist_bp.post("")
@login_required
def join_waitlist():
    data = request.get_json(silent=True) or {}
    entry = waitlist.join_waitlist(
        resource_id=parse_int(data.get("resource_id"), "resource_id", minimum=1),
        requester_id=g.user.id,
        preferred_date=parse_date(data.get("preferred_date"), "preferred_date"),
        preferred_start_time=parse_optional_time(data.get("preferred_start_time"), "preferred_start_time"),
        preferred_end_time=parse_optional_time(data.get("preferred_end_time"), "preferred_end_time"),
        is_member=g.user.is_member,
        priority=parse_int(data.get("priority"), "priority", minimum=0, default=0),
    )

    log_event("WAITLIST_JOIN", actor_id=g.user.id, entity="waitlist", entity_id=entry.id,
              metadata={"resource_id": entry.resource_id, "preferred_date": entry.preferred_date})
    return jsonify(waitlist_id=entry.id, message="Added to waitlist"), 201


@waitlist_bp.get("/me")
@login_required
def my_waitlist():
    rows = waitlist.list_for_requester(g.user.id)
    return jsonify([e.to_dict() for e in rows]), 200


@waitlist_bp.post("/<int:entry_id>/withdraw")
@login_required
def withdraw(entry_id: int):
    waitlist.withdraw(entry_id, g.user.id)

    log_event("WAITLIST_WITHDRAW", actor_id=g.user.id, entity="waitlist", entity_id=entry_id)
    return jsonify(message="Withdrawn from waitlist"), 200
