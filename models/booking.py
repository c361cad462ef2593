from datetime import datetime
from models.db import db

BOOKING_PENDING = "PENDING"
BOOKING_CONFIRMED = "CONFIRMED"
BOOKING_CANCELLED = "CANCELLED"
BOOKING_COMPLETED = "COMPLETED"

ACTIVE_BOOKING_STATUSES = (BOOKING_PENDING, BOOKING_CONFIRMED)

_ACTIVE_WHERE = db.text("status IN ('PENDING', 'CONFIRMED')")


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    slot_id = db.Column(db.Integer, db.ForeignKey("slots.id"), nullable=False, index=True)

    # denormalized from the slot for query convenience
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    resource_kind = db.Column(db.String(20), nullable=False)
    booking_date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    requester_id = db.Column(db.Integer, nullable=False, index=True)
    is_member = db.Column(db.Boolean, default=False, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=BOOKING_CONFIRMED)
    # status values: PENDING, CONFIRMED, CANCELLED, COMPLETED

    price_paid = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    waitlist_entry_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    slot = db.relationship("Slot")
    resource = db.relationship("Resource")

    __table_args__ = (
        # Hard backstop for "no double-booking yourself" across resources of one kind
        db.Index(
            "uq_booking_requester_active",
            "requester_id", "resource_kind", "booking_date", "start_time",
            unique=True,
            sqlite_where=_ACTIVE_WHERE,
            postgresql_where=_ACTIVE_WHERE,
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def starts_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.start_time)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slot_id": self.slot_id,
            "resource_id": self.resource_id,
            "resource_kind": self.resource_kind,
            "date": self.booking_date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "requester_id": self.requester_id,
            "is_member": self.is_member,
            "status": self.status,
            "price_paid": self.price_paid,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
