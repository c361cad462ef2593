from functools import wraps
from types import SimpleNamespace

from flask import current_app, g, jsonify, request


def _parse_bool(value) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def load_current_user():
    """
    Authentication lives in the upstream gateway; it forwards the verified
    requester id, member flag and roles as headers.
    """
    raw_id = request.headers.get(current_app.config.get("REQUESTER_ID_HEADER", "X-Requester-Id"))
    if not raw_id:
        g.user = None
        return
    try:
        requester_id = int(raw_id)
    except ValueError:
        g.user = None
        return

    raw_roles = request.headers.get(current_app.config.get("REQUESTER_ROLES_HEADER", "X-Requester-Roles"), "")
    g.user = SimpleNamespace(
        id=requester_id,
        is_member=_parse_bool(request.headers.get(
            current_app.config.get("REQUESTER_MEMBER_HEADER", "X-Requester-Member")
        )),
        roles={r.strip().upper() for r in raw_roles.split(",") if r.strip()},
    )

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
