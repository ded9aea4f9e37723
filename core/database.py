import os
import time
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import DATABASE_URL, STORAGE_RETRIES

Base = declarative_base()


def get_engine(url: str = DATABASE_URL):
    connect_args = {}
    if url.startswith("sqlite"):
        # keep the SQLite file next to the app by default, easy to demo and wipe
        db_path = url.split("///", 1)[-1] if "///" in url else ""
        if db_path and db_path != ":memory:":
            os.makedirs(Path(db_path).parent, exist_ok=True)
        connect_args = {"check_same_thread": False, "timeout": 10}

    engine = create_engine(url, connect_args=connect_args, future=True, pool_pre_ping=True)

    if url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA busy_timeout=5000;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine


def make_session_factory(bind):
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,  # domain objects are built after commit
    )


def run_with_retry(fn, retries: int = STORAGE_RETRIES, delay: float = 0.2):
    """Re-run a whole unit of work while the database reports a lock conflict."""
    last_exc = None
    for _ in range(retries):
        try:
            return fn()
        except OperationalError as exc:
            last_exc = exc
            if "locked" not in str(exc).lower():
                raise
            time.sleep(delay)
    if last_exc:
        raise last_exc


def init_db(bind=None):
    """Create all tables if they do not exist yet."""
    from core import db_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


engine = get_engine()
SessionLocal = make_session_factory(engine)
