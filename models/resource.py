from datetime import datetime
from models.db import db

RESOURCE_KINDS = ("FACILITY", "TRAINER", "NUTRITIONIST")


class Resource(db.Model):
    __tablename__ = "resources"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(20), nullable=False, index=True)  # FACILITY, TRAINER, NUTRITIONIST
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # trainers and nutritionists are always 1; facilities may host groups
    capacity = db.Column(db.Integer, nullable=False, default=1)

    # pricing, stored in smallest currency unit
    base_price = db.Column(db.Integer, nullable=False, default=0)
    peak_start = db.Column(db.Time, nullable=True)
    peak_end = db.Column(db.Time, nullable=True)
    peak_multiplier = db.Column(db.Float, nullable=False, default=1.0)
    member_discount_pct = db.Column(db.Float, nullable=False, default=15.0)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    templates = db.relationship("AvailabilityTemplate", back_populates="resource", lazy="dynamic")
    cancellation_policy = db.relationship("CancellationPolicy", back_populates="resource", uselist=False)

    __table_args__ = (
        db.CheckConstraint("capacity >= 1", name="ck_resource_capacity_positive"),
    )

    def to_dict(self) -> dict:
        policy = self.cancellation_policy
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "description": self.description,
            "capacity": self.capacity,
            "base_price": self.base_price,
            "peak_start": self.peak_start.strftime("%H:%M") if self.peak_start else None,
            "peak_end": self.peak_end.strftime("%H:%M") if self.peak_end else None,
            "peak_multiplier": self.peak_multiplier,
            "member_discount_pct": self.member_discount_pct,
            "is_active": self.is_active,
            "cancellation_policy": {
                "min_notice_hours": policy.min_notice_hours,
                "refund_percentage": policy.refund_percentage,
            } if policy else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
