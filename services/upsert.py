from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from models import db

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def insert_if_absent(model, values: dict, index_elements) -> int:
    """
    INSERT ... ON CONFLICT DO NOTHING on the given unique key.

    Returns 1 when a row was written, 0 when it already existed.
    """
    dialect = db.session.get_bind().dialect.name
    insert_fn = _INSERTS.get(dialect)
    if insert_fn is None:
        raise RuntimeError(f"insert_if_absent is not supported on {dialect}")

    stmt = insert_fn(model).values(**values).on_conflict_do_nothing(index_elements=list(index_elements))
    result = db.session.execute(stmt)
    return max(result.rowcount or 0, 0)
