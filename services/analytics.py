"""
Daily usage rollup, one row per (resource, date).

The rows are a secondary read model: they are only ever changed through
``increment``/``decrement``/``add_slots`` and never drop below zero.
Callers own the transaction.
"""
from datetime import date
from typing import Optional

from models.daily_analytics import DailyAnalyticsRecord, utilization_percentage
from services.upsert import insert_if_absent

_COUNTERS = (
    "total_slots",
    "total_capacity",
    "total_bookings",
    "total_cancellations",
    "total_revenue",
    "peak_bookings",
    "off_peak_bookings",
    "member_bookings",
    "non_member_bookings",
)


def _locked_row(resource_id: int, on_date: date) -> DailyAnalyticsRecord:
    insert_if_absent(
        DailyAnalyticsRecord,
        {"resource_id": resource_id, "date": on_date},
        ("resource_id", "date"),
    )
    return (
        DailyAnalyticsRecord.query
        .populate_existing()
        .with_for_update()
        .filter_by(resource_id=resource_id, date=on_date)
        .one()
    )


def _bump(row, name: str, delta: int):
    setattr(row, name, max((getattr(row, name) or 0) + delta, 0))


def increment(resource_id: int, on_date: date, revenue: int, is_peak: bool, is_member: bool):
    row = _locked_row(resource_id, on_date)
    _bump(row, "total_bookings", 1)
    _bump(row, "total_revenue", revenue)
    _bump(row, "peak_bookings" if is_peak else "off_peak_bookings", 1)
    _bump(row, "member_bookings" if is_member else "non_member_bookings", 1)
    return row


def decrement(resource_id: int, on_date: date, revenue: int, is_peak: bool, is_member: bool):
    row = _locked_row(resource_id, on_date)
    _bump(row, "total_bookings", -1)
    _bump(row, "total_revenue", -revenue)
    _bump(row, "peak_bookings" if is_peak else "off_peak_bookings", -1)
    _bump(row, "member_bookings" if is_member else "non_member_bookings", -1)
    _bump(row, "total_cancellations", 1)
    return row


def add_slots(resource_id: int, on_date: date, count: int, units: Optional[int] = None):
    """``units`` is the bookable capacity those slots add (defaults to one per slot)."""
    if count <= 0:
        return None
    row = _locked_row(resource_id, on_date)
    _bump(row, "total_slots", count)
    _bump(row, "total_capacity", count if units is None else units)
    return row


def remove_slots(resource_id: int, on_date: date, count: int, units: Optional[int] = None):
    if count <= 0:
        return None
    row = _locked_row(resource_id, on_date)
    _bump(row, "total_slots", -count)
    _bump(row, "total_capacity", -(count if units is None else units))
    return row


def daily_records(resource_id: int, start_date: date, end_date: date):
    return (
        DailyAnalyticsRecord.query
        .filter(
            DailyAnalyticsRecord.resource_id == resource_id,
            DailyAnalyticsRecord.date >= start_date,
            DailyAnalyticsRecord.date <= end_date,
        )
        .order_by(DailyAnalyticsRecord.date.asc())
        .all()
    )


def summarize(rows) -> dict:
    totals = {name: 0 for name in _COUNTERS}
    for row in rows:
        for name in _COUNTERS:
            totals[name] += getattr(row, name) or 0
    totals["average_utilization_percentage"] = utilization_percentage(
        totals["total_bookings"], totals["total_capacity"]
    )
    return totals
