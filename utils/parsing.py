from datetime import date, datetime, time

from services.errors import ValidationError


def parse_date(value, field: str = "date") -> date:
    # Expect ISO format like "2026-01-20"
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat((value or "").strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD")


def parse_time(value, field: str = "time") -> time:
    # Expect "HH:MM" or "HH:MM:SS"
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat((value or "").strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid {field}. Use HH:MM")


def parse_optional_time(value, field: str):
    if value in (None, ""):
        return None
    return parse_time(value, field)


def parse_int(value, field: str, minimum=None, maximum=None, default=None) -> int:
    if value in (None, ""):
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be at most {maximum}")
    return number


def parse_number(value, field: str, minimum=None, default=None) -> float:
    if value in (None, ""):
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return number


def parse_date_range(data, max_days=None) -> tuple[date, date]:
    start = parse_date(data.get("start_date"), "start_date")
    end = parse_date(data.get("end_date"), "end_date")
    if max_days is not None and (end - start).days + 1 > max_days:
        raise ValidationError(f"Date range must not exceed {max_days} days")
    return start, end


def parse_id_list(values, field: str) -> list[int]:
    if not isinstance(values, list) or not values:
        raise ValidationError(f"{field} must be a non-empty list")
    return [parse_int(v, field, minimum=1) for v in values]
