from datetime import datetime
from models.db import db


def utilization_percentage(bookings: int, capacity: int) -> float:
    """Share of bookable units taken, 0-100, two decimals."""
    if not capacity:
        return 0.0
    return round(min(bookings / capacity, 1.0) * 100, 2)


class DailyAnalyticsRecord(db.Model):
    __tablename__ = "daily_analytics"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    total_slots = db.Column(db.Integer, nullable=False, default=0)
    total_capacity = db.Column(db.Integer, nullable=False, default=0)  # bookable units across those slots
    total_bookings = db.Column(db.Integer, nullable=False, default=0)
    total_cancellations = db.Column(db.Integer, nullable=False, default=0)
    total_revenue = db.Column(db.Integer, nullable=False, default=0)  # smallest unit
    peak_bookings = db.Column(db.Integer, nullable=False, default=0)
    off_peak_bookings = db.Column(db.Integer, nullable=False, default=0)
    member_bookings = db.Column(db.Integer, nullable=False, default=0)
    non_member_bookings = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("resource_id", "date", name="uq_analytics_resource_date"),
    )

    def to_dict(self) -> dict:
        return {
            "resource_id": self.resource_id,
            "date": self.date.isoformat(),
            "total_slots": self.total_slots,
            "total_capacity": self.total_capacity,
            "total_bookings": self.total_bookings,
            "total_cancellations": self.total_cancellations,
            "total_revenue": self.total_revenue,
            "peak_bookings": self.peak_bookings,
            "off_peak_bookings": self.off_peak_bookings,
            "member_bookings": self.member_bookings,
            "non_member_bookings": self.non_member_bookings,
            "average_utilization_percentage": utilization_percentage(self.total_bookings, self.total_capacity),
        }
