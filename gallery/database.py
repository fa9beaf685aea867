"""Database connection and initialization."""

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from gallery.config import settings

# Import all models so SQLModel registers them
import gallery.models  # noqa: F401


def make_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections get foreign keys and WAL enabled."""
    is_sqlite = url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(url, echo=echo, connect_args=connect_args)

    if is_sqlite:
        # PRAGMAs are per-connection, so they are applied on every connect
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, _record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """Create all tables."""
    SQLModel.metadata.create_all(engine)


engine = make_engine(settings.sqlalchemy_url, echo=settings.debug)
