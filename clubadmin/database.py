"""
Database schema and connection management.

SQLAlchemy models for the tables the maintenance tooling touches, and
helpers that scope an engine and session to a single operation.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Union

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .errors import InvalidInputError

Base = declarative_base()

POINT_SOURCES = (
    "ACTIVITY",
    "ATTENDANCE",
    "PURCHASE",
    "REQUIREMENT",
    "SPECIALTY",
    "REFUND",
    "MANUAL",
)


def _new_id() -> str:
    return str(uuid.uuid4())


class Club(Base):
    """Club model."""

    __tablename__ = "clubs"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    region = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class Member(Base):
    """Club member. `points` is a cache of the member's ledger sum."""

    __tablename__ = "members"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    club_id = Column(String, ForeignKey("clubs.id"), nullable=True)
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class PointEntry(Base):
    """Ledger entry: a signed point delta attributed to a member. Never updated."""

    __tablename__ = "point_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(String, ForeignKey("members.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    reason = Column(String, nullable=True)
    source = Column(String, nullable=False, default="MANUAL")  # one of POINT_SOURCES
    source_ref = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class Specialty(Base):
    """Specialty (honor) model."""

    __tablename__ = "specialties"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    area = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class Requirement(Base):
    """Requirement of a class (dbv_class) or of a specialty."""

    __tablename__ = "requirements"

    id = Column(String, primary_key=True, default=_new_id)
    code = Column(String, nullable=True)
    description = Column(Text, nullable=False)
    dbv_class = Column(String, nullable=True)
    specialty_id = Column(String, ForeignKey("specialties.id"), nullable=True)
    club_id = Column(String, ForeignKey("clubs.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


@event.listens_for(PointEntry, "before_update")
def _reject_entry_update(mapper, connection, target):
    raise InvalidInputError(f"Ledger entry {target.id} is immutable")


def resolve_database_url(database: Union[str, Path]) -> str:
    """
    Turn a filesystem path or SQLAlchemy URL into a URL.

    Args:
        database: Path to SQLite database file, or any SQLAlchemy URL

    Returns:
        SQLAlchemy database URL
    """
    database = str(database)
    if "://" in database:
        return database
    return f"sqlite:///{database}"


def create_db_engine(database: Union[str, Path]) -> Engine:
    return create_engine(resolve_database_url(database))


def init_database(database: Union[str, Path]) -> None:
    """
    Initialize database and create tables.

    Args:
        database: Path to SQLite database file, or SQLAlchemy URL
    """
    if "://" not in str(database):
        Path(database).parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(database)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()


def get_session(database: Union[str, Path]) -> Session:
    """
    Get database session.

    The caller owns the session and must close it.

    Args:
        database: Path to SQLite database file, or SQLAlchemy URL

    Returns:
        SQLAlchemy session
    """
    engine = create_db_engine(database)
    SessionLocal = sessionmaker(bind=engine)
    return SessionLocal()


@contextmanager
def session_scope(database: Union[str, Path]) -> Iterator[Session]:
    """
    Open a session for one operation and release it on every exit path.

    Uncommitted work is rolled back when the block raises.
    """
    engine = create_db_engine(database)
    session = sessionmaker(bind=engine)()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        engine.dispose()
