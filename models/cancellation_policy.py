from datetime import datetime
from models.db import db


class CancellationPolicy(db.Model):
    __tablename__ = "cancellation_policies"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, unique=True)

    min_notice_hours = db.Column(db.Integer, nullable=False, default=24)
    refund_percentage = db.Column(db.Integer, nullable=False, default=100)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    resource = db.relationship("Resource", back_populates="cancellation_policy")

    __table_args__ = (
        db.CheckConstraint("min_notice_hours >= 0", name="ck_policy_notice"),
        db.CheckConstraint("refund_percentage BETWEEN 0 AND 100", name="ck_policy_refund"),
    )
