"""
Administrative side of the resource registry: resources, their weekly
templates, pricing and cancellation policy.
"""
from models import db
from models.availability_template import AvailabilityTemplate
from models.cancellation_policy import CancellationPolicy
from models.resource import Resource
from services.errors import NotFound, ValidationError
from services.kinds import get_kind_config, resolve_capacity
from services.slot_generator import newest_templates_by_day
from utils.parsing import parse_int, parse_number, parse_optional_time, parse_time


def get_resource(resource_id: int, active_only: bool = False) -> Resource:
    resource = db.session.get(Resource, resource_id)
    if resource is None or (active_only and not resource.is_active):
        raise NotFound("Resource not found")
    return resource


def _apply_pricing(resource: Resource, data: dict):
    if "base_price" in data:
        resource.base_price = parse_int(data.get("base_price"), "base_price", minimum=0)
    if "peak_start" in data:
        resource.peak_start = parse_optional_time(data.get("peak_start"), "peak_start")
    if "peak_end" in data:
        resource.peak_end = parse_optional_time(data.get("peak_end"), "peak_end")
    if "peak_multiplier" in data:
        resource.peak_multiplier = parse_number(data.get("peak_multiplier"), "peak_multiplier", minimum=0, default=1.0)
    if "member_discount_pct" in data:
        pct = parse_number(data.get("member_discount_pct"), "member_discount_pct", minimum=0)
        if pct > 100:
            raise ValidationError("member_discount_pct must be at most 100")
        resource.member_discount_pct = pct

    if (resource.peak_start is None) != (resource.peak_end is None):
        raise ValidationError("peak_start and peak_end must be given together")
    if resource.peak_start and resource.peak_start >= resource.peak_end:
        raise ValidationError("peak_end must be after peak_start")


def _apply_policy(resource: Resource, data: dict) -> CancellationPolicy:
    policy = resource.cancellation_policy
    if policy is None:
        policy = CancellationPolicy(resource=resource)
        db.session.add(policy)
    policy.min_notice_hours = parse_int(data.get("min_notice_hours"), "min_notice_hours", minimum=0, default=24)
    policy.refund_percentage = parse_int(
        data.get("refund_percentage"), "refund_percentage", minimum=0, maximum=100, default=100
    )
    return policy


def create_resource(data: dict) -> Resource:
    config = get_kind_config(data.get("kind"))
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    resource = Resource(
        kind=config.kind,
        name=name,
        description=(data.get("description") or "").strip() or None,
        capacity=resolve_capacity(config.kind, data.get("capacity")),
        base_price=0,
        peak_multiplier=1.0,
        member_discount_pct=config.member_discount_pct,
    )
    _apply_pricing(resource, data)
    db.session.add(resource)

    if isinstance(data.get("cancellation_policy"), dict):
        _apply_policy(resource, data["cancellation_policy"])

    db.session.flush()
    return resource


def update_resource(resource_id: int, data: dict) -> Resource:
    """Pricing and capacity edits only affect slots generated afterwards."""
    resource = get_resource(resource_id)
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name cannot be empty")
        resource.name = name
    if "description" in data:
        resource.description = (data.get("description") or "").strip() or None
    if "capacity" in data:
        resource.capacity = resolve_capacity(resource.kind, data.get("capacity"))
    _apply_pricing(resource, data)
    return resource


def deactivate_resource(resource_id: int) -> Resource:
    resource = get_resource(resource_id)
    resource.is_active = False
    return resource


def set_cancellation_policy(resource_id: int, data: dict) -> CancellationPolicy:
    return _apply_policy(get_resource(resource_id), data)


def add_templates(resource_id: int, items) -> list[AvailabilityTemplate]:
    """
    Append weekly rules. Older rules for the same day stay as history; the
    newest one drives generation.
    """
    resource = get_resource(resource_id, active_only=True)
    if not isinstance(items, list) or not items:
        raise ValidationError("templates must be a non-empty list")

    config = get_kind_config(resource.kind)
    created = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("each template must be an object")
        start = parse_time(item.get("start_time"), "start_time")
        end = parse_time(item.get("end_time"), "end_time")
        if start >= end:
            raise ValidationError("end_time must be after start_time")
        tpl = AvailabilityTemplate(
            resource_id=resource.id,
            day_of_week=parse_int(item.get("day_of_week"), "day_of_week", minimum=0, maximum=6),
            start_time=start,
            end_time=end,
            slot_minutes=parse_int(item.get("slot_minutes"), "slot_minutes", minimum=1,
                                   default=config.slot_minutes),
            break_minutes=parse_int(item.get("break_minutes"), "break_minutes", minimum=0,
                                    default=config.break_minutes),
            max_sessions_per_day=(
                parse_int(item.get("max_sessions_per_day"), "max_sessions_per_day", minimum=1)
                if item.get("max_sessions_per_day") not in (None, "")
                else config.max_sessions_per_day
            ),
            is_available=bool(item.get("is_available", True)),
        )
        db.session.add(tpl)
        created.append(tpl)

    db.session.flush()
    return created


def effective_templates(resource_id: int) -> list[AvailabilityTemplate]:
    resource = get_resource(resource_id)
    by_day = newest_templates_by_day(resource.templates.all())
    return [by_day[d] for d in sorted(by_day)]
