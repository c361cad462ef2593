import logging

from flask import current_app
from sqlalchemy.exc import OperationalError

from models import db
from models.db import READ_ONLY
from services.errors import SchedulingError, StorageUnavailable

logger = logging.getLogger(__name__)


def run_in_transaction(fn, *args, **kwargs):
    """
    Run ``fn`` and commit; roll back on any exception.

    Business errors propagate untouched. Lock/storage timeouts are retried
    (nothing was committed, so a retry is idempotent) and finally surface as
    ``StorageUnavailable``.
    """
    attempts = max(1, int(current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)))
    for attempt in range(1, attempts + 1):
        try:
            result = fn(*args, **kwargs)
            db.session.commit()
            return result
        except SchedulingError:
            db.session.rollback()
            raise
        except OperationalError as exc:
            db.session.rollback()
            if attempt == attempts:
                logger.exception("Transaction %s failed after %d attempts", fn.__name__, attempts)
                raise StorageUnavailable() from exc
            logger.warning("Transaction %s hit %s, retrying (%d/%d)", fn.__name__, exc.orig, attempt, attempts)
        except Exception:
            db.session.rollback()
            raise


def run_read_only(fn, *args, **kwargs):
    """
    Run a read-only ``fn`` in its own short transaction and roll it back.

    On SQLite the transaction does not take the write lock, so listings never
    wait behind reservations. ``fn`` must return plain data: ORM rows are
    expired by the rollback.
    """
    if db.session().in_transaction():
        return fn(*args, **kwargs)
    db.session.connection(execution_options={READ_ONLY: True})
    try:
        return fn(*args, **kwargs)
    finally:
        db.session.rollback()
