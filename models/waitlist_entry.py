from datetime import datetime
from models.db import db

WAITLIST_WAITING = "WAITING"
WAITLIST_OFFERED = "OFFERED"
WAITLIST_EXPIRED = "EXPIRED"
WAITLIST_FULFILLED = "FULFILLED"
WAITLIST_WITHDRAWN = "WITHDRAWN"

_WAITING_WHERE = db.text("status = 'WAITING'")


class WaitlistEntry(db.Model):
    __tablename__ = "waitlist_entries"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    requester_id = db.Column(db.Integer, nullable=False, index=True)
    is_member = db.Column(db.Boolean, default=False, nullable=False)

    preferred_date = db.Column(db.Date, nullable=False)
    # open-ended when null
    preferred_start_time = db.Column(db.Time, nullable=True)
    preferred_end_time = db.Column(db.Time, nullable=True)

    priority = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default=WAITLIST_WAITING)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_waitlist_bucket", "resource_id", "preferred_date", "status"),
        # one Waiting entry per requester per resource and day
        db.Index(
            "uq_waitlist_requester_waiting",
            "resource_id", "requester_id", "preferred_date",
            unique=True,
            sqlite_where=_WAITING_WHERE,
            postgresql_where=_WAITING_WHERE,
        ),
    )

    def matches(self, slot) -> bool:
        """True when the slot falls inside the preferred window."""
        if slot.resource_id != self.resource_id or slot.date != self.preferred_date:
            return False
        if self.preferred_start_time and slot.start_time < self.preferred_start_time:
            return False
        if self.preferred_end_time and slot.end_time > self.preferred_end_time:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "requester_id": self.requester_id,
            "preferred_date": self.preferred_date.isoformat(),
            "preferred_start_time": self.preferred_start_time.strftime("%H:%M") if self.preferred_start_time else None,
            "preferred_end_time": self.preferred_end_time.strftime("%H:%M") if self.preferred_end_time else None,
            "priority": self.priority,
            "status": self.status,
            "booking_id": self.booking_id,
            "created_at": self.created_at.isoformat(),
        }
