import json
import logging

from flask import current_app, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def log_event(action: str, actor_id=None, entity=None, entity_id=None, metadata=None):
    """
    Append an audit row in its own commit.

    Call it after the business transaction has committed: an audit failure is
    logged and never reported back as a failed booking.
    """
    if not current_app.config.get("AUDIT_ENABLED", True):
        return

    ip = None
    user_agent = ""
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        actor_id=actor_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not write audit event %s", action)
