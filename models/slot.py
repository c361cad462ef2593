from datetime import datetime
from models.db import db

SLOT_OPEN = "OPEN"
SLOT_PARTIALLY_BOOKED = "PARTIALLY_BOOKED"
SLOT_FULL = "FULL"
SLOT_BLOCKED = "BLOCKED"
SLOT_CANCELLED = "CANCELLED"

# statuses set by an administrator, never derived from occupancy
SLOT_OVERRIDE_STATUSES = (SLOT_BLOCKED, SLOT_CANCELLED)

PEAK = "PEAK"
OFF_PEAK = "OFF_PEAK"


class Slot(db.Model):
    __tablename__ = "slots"

    id = db.Column(db.Integer, primary_key=True)

    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    capacity = db.Column(db.Integer, nullable=False, default=1)
    occupancy = db.Column(db.Integer, nullable=False, default=0)

    base_price = db.Column(db.Integer, nullable=False, default=0)  # store smallest unit
    final_price = db.Column(db.Integer, nullable=False, default=0)  # non-member, peak adjusted
    classification = db.Column(db.String(10), nullable=False, default=OFF_PEAK)

    status = db.Column(db.String(20), nullable=False, default=SLOT_OPEN, index=True)
    block_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    resource = db.relationship("Resource")

    __table_args__ = (
        # Regeneration must never duplicate a slot
        db.UniqueConstraint("resource_id", "date", "start_time", name="uq_resource_date_start"),
        db.CheckConstraint("occupancy >= 0 AND occupancy <= capacity", name="ck_slot_occupancy"),
    )

    @property
    def is_peak(self) -> bool:
        return self.classification == PEAK

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.occupancy, 0)

    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    def derive_status(self) -> str:
        if self.status in SLOT_OVERRIDE_STATUSES:
            return self.status
        if self.occupancy <= 0:
            return SLOT_OPEN
        if self.occupancy >= self.capacity:
            return SLOT_FULL
        return SLOT_PARTIALLY_BOOKED

    def refresh_status(self) -> str:
        self.status = self.derive_status()
        return self.status

    def is_bookable(self) -> bool:
        return self.status not in SLOT_OVERRIDE_STATUSES and self.occupancy < self.capacity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "capacity": self.capacity,
            "occupancy": self.occupancy,
            "base_price": self.base_price,
            "final_price": self.final_price,
            "classification": self.classification,
            "status": self.status,
            "block_reason": self.block_reason,
        }
