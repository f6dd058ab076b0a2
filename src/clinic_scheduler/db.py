"""SQLite engine and session handling for the clinic scheduler.

Settings come from the environment, optionally seeded from a ``.env`` file:

``CLINIC_DB_URL``
    SQLAlchemy URL of the clinic database. Defaults to ``data/clinic.db``
    under the working directory.
"""

import os
import warnings
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from dotenv import find_dotenv, load_dotenv
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .exceptions import DatabaseConnectionError

# Values already exported in the environment win over the .env file
load_dotenv(find_dotenv(usecwd=True), override=False)

FALLBACK_DIR = Path.home() / ".clinic_scheduler"


class Base(DeclarativeBase):
    """Base class for all ORM models."""


def database_url() -> str:
    url = os.environ.get("CLINIC_DB_URL")
    if url:
        return url
    path = Path.cwd() / "data" / "clinic.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def _usable_sqlite_url(url: str) -> str:
    """Point an unwritable SQLite file at a fresh per-user database instead."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or parsed.database in (None, "", ":memory:"):
        return url
    path = Path(parsed.database)
    if os.access(path if path.exists() else path.parent, os.W_OK):
        return url
    FALLBACK_DIR.mkdir(parents=True, exist_ok=True)
    fallback = FALLBACK_DIR / path.name
    warnings.warn(
        f"Clinic database {path} is not writable; using {fallback}",
        RuntimeWarning,
        stacklevel=3,
    )
    return f"sqlite:///{fallback}"


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite leaves foreign key enforcement off per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlite_engine(url: str | None = None) -> Engine:
    """Build the engine, enforce foreign keys and check that it answers."""
    engine = create_engine(_usable_sqlite_url(url or database_url()))
    event.listen(engine, "connect", _enable_foreign_keys)
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise DatabaseConnectionError(f"Cannot open clinic database {engine.url}.") from exc
    return engine


engine = create_sqlite_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker | None = None) -> Iterator[Session]:
    """Commit the unit of work on success, roll it back on a database error."""
    session: Session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise
    finally:
        session.close()
