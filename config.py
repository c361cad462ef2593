import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as gymslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "gymslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # Requester identity is resolved upstream; the gateway forwards it in these headers
    REQUESTER_ID_HEADER = "X-Requester-Id"
    REQUESTER_MEMBER_HEADER = "X-Requester-Member"
    REQUESTER_ROLES_HEADER = "X-Requester-Roles"

    # Cancellation policy used when a resource has none configured
    DEFAULT_CANCEL_NOTICE_HOURS = int(os.getenv("DEFAULT_CANCEL_NOTICE_HOURS", "24"))
    DEFAULT_REFUND_PERCENTAGE = int(os.getenv("DEFAULT_REFUND_PERCENTAGE", "100"))

    # Lock/storage timeouts are retried this many times before answering 503
    TRANSACTION_RETRY_ATTEMPTS = int(os.getenv("TRANSACTION_RETRY_ATTEMPTS", "3"))

    # Waitlist promotion right after a cancellation commits (the sweep CLI covers the rest)
    WAITLIST_PROMOTE_ON_CANCEL = _env_bool("WAITLIST_PROMOTE_ON_CANCEL", "true")

    # Longest range accepted by a single generate/clear request
    MAX_GENERATION_DAYS = int(os.getenv("MAX_GENERATION_DAYS", "92"))

    # Audit trail
    AUDIT_ENABLED = _env_bool("AUDIT_ENABLED", "true")

    # Basic app settings
    DEBUG = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///" + os.path.join(BASE_DIR, "gymslot-test.db")
    LOG_LEVEL = "WARNING"
