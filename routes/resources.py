from flask import Blueprint, request, jsonify, current_app, g

from models.resource import Resource
from security.rbac import require_roles
from services import analytics, resources as registry, slot_generator, waitlist
from services.errors import ValidationError
from services.kinds import get_kind_config
from services.pricing import apply_member_discount
from services.tx import run_in_transaction, run_read_only
from utils.auth_context import login_required
from utils.audit import log_event
from utils.parsing import parse_date, parse_date_range

resources_bp = Blueprint("resources", __name__, url_prefix="/resources")


def _date_or_range():
    # either ?date=YYYY-MM-DD or ?start_date=...&end_date=...
    if request.args.get("date"):
        day = parse_date(request.args.get("date"))
        return day, day
    if request.args.get("start_date") and request.args.get("end_date"):
        return parse_date_range(request.args, current_app.config.get("MAX_GENERATION_DAYS"))
    raise ValidationError("Either date or start_date and end_date are required")


# ---------- STAFF/ADMIN: manage resources ----------
@resources_bp.post("")
@require_roles("ADMIN", "STAFF")
def create_resource():
    data = request.get_json(silent=True) or {}
    resource = run_in_transaction(registry.create_resource, data)

    log_event("RESOURCE_CREATE", actor_id=g.user.id, entity="resource", entity_id=resource.id,
              metadata={"kind": resource.kind})
    return jsonify(resource.to_dict()), 201


@resources_bp.get("")
@login_required
def list_resources():
    q = Resource.query.filter_by(is_active=True)
    kind = request.args.get("kind")
    if kind:
        q = q.filter_by(kind=get_kind_config(kind).kind)
    rows = q.order_by(Resource.name.asc()).all()
    return jsonify([r.to_dict() for r in rows]), 200


@resources_bp.get("/<int:resource_id>")
@login_required
def get_resource(resource_id: int):
    return jsonify(registry.get_resource(resource_id).to_dict()), 200


@resources_bp.patch("/<int:resource_id>")
@require_roles("ADMIN", "STAFF")
def update_resource(resource_id: int):
    data = request.get_json(silent=True) or {}
    resource = run_in_transaction(registry.update_resource, resource_id, data)

    log_event("RESOURCE_UPDATE", actor_id=g.user.id, entity="resource", entity_id=resource_id,
              metadata={"fields": sorted(data)})
    return jsonify(resource.to_dict()), 200


@resources_bp.post("/<int:resource_id>/deactivate")
@require_roles("ADMIN")
def deactivate_resource(resource_id: int):
    run_in_transaction(registry.deactivate_resource, resource_id)

    log_event("RESOURCE_DEACTIVATE", actor_id=g.user.id, entity="resource", entity_id=resource_id)
    return jsonify(message="Resource deactivated"), 200


@resources_bp.put("/<int:resource_id>/cancellation-policy")
@require_roles("ADMIN", "STAFF")
def set_cancellation_policy(resource_id: int):
    data = request.get_json(silent=True) or {}
    policy = run_in_transaction(registry.set_cancellation_policy, resource_id, data)

    log_event("CANCELLATION_POLICY_SET", actor_id=g.user.id, entity="resource", entity_id=resource_id,
              metadata={"min_notice_hours": policy.min_notice_hours,
                        "refund_percentage": policy.refund_percentage})
    return jsonify(min_notice_hours=policy.min_notice_hours, refund_percentage=policy.refund_percentage), 200


# ---------- STAFF/ADMIN: weekly availability ----------
@resources_bp.post("/<int:resource_id>/templates")
@require_roles("ADMIN", "STAFF")
def add_templates(resource_id: int):
    data = request.get_json(silent=True) or {}
    created = run_in_transaction(registry.add_templates, resource_id, data.get("templates"))

    log_event("TEMPLATES_ADD", actor_id=g.user.id, entity="resource", entity_id=resource_id,
              metadata={"template_ids": [t.id for t in created]})
    return jsonify([t.to_dict() for t in created]), 201


@resources_bp.get("/<int:resource_id>/templates")
@login_required
def list_templates(resource_id: int):
    return jsonify([t.to_dict() for t in registry.effective_templates(resource_id)]), 200


# ---------- STAFF/ADMIN: slot generation ----------
@resources_bp.post("/<int:resource_id>/slots/generate")
@require_roles("ADMIN", "STAFF")
def generate_slots(resource_id: int):
    data = request.get_json(silent=True) or {}
    start, end = parse_date_range(data, current_app.config.get("MAX_GENERATION_DAYS"))

    created = run_in_transaction(slot_generator.generate_slots, resource_id, start, end)

    log_event("SLOTS_GENERATE", actor_id=g.user.id, entity="resource", entity_id=resource_id,
              metadata={"start_date": start, "end_date": end, "slots_created": created})
    return jsonify(slots_created=created), 200


@resources_bp.post("/<int:resource_id>/slots/clear")
@require_roles("ADMIN")
def clear_slots(resource_id: int):
    data = request.get_json(silent=True) or {}
    start, end = parse_date_range(data, current_app.config.get("MAX_GENERATION_DAYS"))

    outcome = run_in_transaction(slot_generator.clear_slots, resource_id, start, end)

    log_event("SLOTS_CLEAR", actor_id=g.user.id, entity="resource", entity_id=resource_id,
              metadata={"start_date": start, "end_date": end, **outcome})
    return jsonify(outcome), 200


@resources_bp.get("/<int:resource_id>/slots")
@require_roles("ADMIN", "STAFF")
def list_all_slots(resource_id: int):
    start, end = _date_or_range()

    def _rows():
        registry.get_resource(resource_id)
        return [s.to_dict() for s in slot_generator.list_slots(resource_id, start, end, available_only=False)]

    return jsonify(run_read_only(_rows)), 200


# ---------- PLAYERS: view available slots ----------
@resources_bp.get("/<int:resource_id>/slots/available")
@login_required
def list_available_slots(resource_id: int):
    start, end = _date_or_range()

    def _rows():
        resource = registry.get_resource(resource_id, active_only=True)
        out = []
        for s in slot_generator.list_slots(resource_id, start, end, available_only=True):
            row = s.to_dict()
            if g.user.is_member:
                row["member_price"] = apply_member_discount(s.final_price, resource.member_discount_pct)
            out.append(row)
        return out

    return jsonify(run_read_only(_rows)), 200


# ---------- STAFF/ADMIN: analytics & waitlist ----------
@resources_bp.get("/<int:resource_id>/analytics")
@require_roles("ADMIN", "STAFF")
def resource_analytics(resource_id: int):
    start, end = _date_or_range()

    def _report():
        registry.get_resource(resource_id)
        rows = analytics.daily_records(resource_id, start, end)
        return {"days": [r.to_dict() for r in rows], "totals": analytics.summarize(rows)}

    return jsonify(run_read_only(_report)), 200


@resources_bp.get("/<int:resource_id>/waitlist")
@require_roles("ADMIN", "STAFF")
def resource_waitlist(resource_id: int):
    registry.get_resource(resource_id)
    on_date = parse_date(request.args["date"]) if request.args.get("date") else None
    status = (request.args.get("status") or "").strip().upper() or None
    rows = waitlist.list_for_resource(resource_id, on_date, status)
    return jsonify([e.to_dict() for e in rows]), 200
