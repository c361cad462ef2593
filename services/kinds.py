from dataclasses import dataclass
from typing import Optional

from services.errors import ValidationError


@dataclass(frozen=True)
class KindConfig:
    kind: str
    default_capacity: int
    allows_group_slots: bool
    member_discount_pct: float
    slot_minutes: int
    break_minutes: int
    max_sessions_per_day: Optional[int]


KIND_CONFIGS = {
    "FACILITY": KindConfig("FACILITY", 1, True, 15.0, 60, 0, None),
    "TRAINER": KindConfig("TRAINER", 1, False, 15.0, 60, 15, 8),
    "NUTRITIONIST": KindConfig("NUTRITIONIST", 1, False, 15.0, 45, 15, 8),
}


def get_kind_config(kind: str) -> KindConfig:
    config = KIND_CONFIGS.get((kind or "").strip().upper())
    if config is None:
        raise ValidationError(f"kind must be one of {', '.join(KIND_CONFIGS)}")
    return config


def resolve_capacity(kind: str, requested) -> int:
    """One-to-one resources are pinned to capacity 1 whatever the caller asks for."""
    config = get_kind_config(kind)
    if not config.allows_group_slots:
        return 1
    if requested is None:
        return config.default_capacity
    try:
        capacity = int(requested)
    except (TypeError, ValueError):
        raise ValidationError("capacity must be an integer")
    if capacity < 1:
        raise ValidationError("capacity must be at least 1")
    return capacity
