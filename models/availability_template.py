from datetime import datetime
from models.db import db


class AvailabilityTemplate(db.Model):
    __tablename__ = "availability_templates"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)

    day_of_week = db.Column(db.Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    slot_minutes = db.Column(db.Integer, nullable=False, default=60)
    break_minutes = db.Column(db.Integer, nullable=False, default=0)
    max_sessions_per_day = db.Column(db.Integer, nullable=True)
    is_available = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    resource = db.relationship("Resource", back_populates="templates")

    __table_args__ = (
        db.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_template_day_of_week"),
        db.CheckConstraint("start_time < end_time", name="ck_template_time_order"),
        db.CheckConstraint("slot_minutes > 0", name="ck_template_slot_minutes"),
        db.CheckConstraint("break_minutes >= 0", name="ck_template_break_minutes"),
        db.Index("ix_templates_resource_day", "resource_id", "day_of_week"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "slot_minutes": self.slot_minutes,
            "break_minutes": self.break_minutes,
            "max_sessions_per_day": self.max_sessions_per_day,
            "is_available": self.is_available,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
