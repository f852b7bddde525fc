# gamebase/database.py
from __future__ import annotations

import logging
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from gamebase.config import DATABASE_URL
from gamebase.errors import ConflictError, InternalError

logger = logging.getLogger(__name__)


def make_engine(url: str):
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        # Concurrent writers wait on the file lock instead of failing fast
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args, future=True)


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)

class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass

def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def insert_if_absent(db: Session, model: type[Base], values: dict[str, Any]) -> bool:
    """
    Single-row conditional insert: INSERT ... ON CONFLICT DO NOTHING.

    Returns True when this call created the row, False when a row with the
    same primary key already existed. This is the compare-and-swap primitive
    the claim, slot and counter rows are built on.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model.__table__).values(**values).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite.insert(model.__table__).values(**values).on_conflict_do_nothing()
    else:
        raise InternalError(
            "Unsupported database dialect",
            "PERSISTENCE_ERROR",
            dialect=dialect,
        )
    result = db.execute(stmt)
    return result.rowcount == 1


def persistence_error(db: Session, exc: SQLAlchemyError) -> InternalError:
    """Roll back and wrap a database failure as PERSISTENCE_ERROR."""
    db.rollback()
    logger.error(f"Database operation failed: {exc}")
    return InternalError("Failed to persist changes", "PERSISTENCE_ERROR", error=str(exc))


def commit_or_conflict(db: Session, code: str, message: str, **details: Any) -> None:
    """Commit, mapping a lost uniqueness race to a ConflictError."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(f"Commit rejected by constraint ({code}): {exc.orig}")
        raise ConflictError(message, code, **details) from exc
    except SQLAlchemyError as exc:
        raise persistence_error(db, exc) from exc
