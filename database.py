from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _create_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url)
    if url in IN_MEMORY_URLS:
        # One shared connection, otherwise every checkout sees an empty database.
        # WAL does not apply to in-memory databases.
        return create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    eng = create_engine(url, connect_args={"check_same_thread": False})
    event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


engine = _create_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
