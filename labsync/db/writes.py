"""Write helpers shared by the services: atomic insert-if-absent and commit."""
import logging

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from labsync.core.errors import InfrastructureError

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_or_ignore(db: Session, model, values: dict, conflict_columns: list[str]) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. Returns True when a row was inserted.

    The conflict columns must be covered by a unique constraint or index.
    A concurrent writer holding the same key makes this wait, then no-op.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"upsert not supported on {dialect}")

    stmt = insert(model).values(**values).on_conflict_do_nothing(
        index_elements=conflict_columns
    )
    try:
        result = db.execute(stmt)
    except SQLAlchemyError as exc:
        db.rollback()
        raise InfrastructureError("Database write failed") from exc
    return result.rowcount == 1


def commit(db: Session, on_conflict: Exception | None = None) -> None:
    """Commit, turning database failures into ``InfrastructureError``.

    ``on_conflict`` is raised instead when a constraint rejects the write.
    """
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if on_conflict is not None:
            raise on_conflict from exc
        raise InfrastructureError("Database write failed") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise InfrastructureError("Database write failed") from exc
