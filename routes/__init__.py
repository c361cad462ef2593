from routes.health import health_bp
from routes.resources import resources_bp
from routes.booking import booking_bp
from routes.waitlist import waitlist_bp
from routes.audit_logs import audit_bp

__all__ = ["health_bp", "resources_bp", "booking_bp", "waitlist_bp", "audit_bp"]
