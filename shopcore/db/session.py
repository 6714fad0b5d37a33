from contextlib import contextmanager
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/app.db")


def _ensure_sqlite_dir(url: str) -> None:
    # Ensure sqlite file parent directory exists to avoid 'unable to open database file'
    if url.startswith("sqlite:///") and ":memory:" not in url:
        db_path = url.split("sqlite:///")[-1]
        Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def build_engine(url: str):
    if url.startswith("sqlite") and ":memory:" in url:
        # a single shared connection so every session sees the same in-memory database
        return create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    _ensure_sqlite_dir(url)
    return create_engine(url, future=True)


def make_session_factory(url_or_engine):
    """Return a ``get_session``-style context manager bound to the given engine."""
    engine = build_engine(url_or_engine) if isinstance(url_or_engine, str) else url_or_engine
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def session_scope():
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    session_scope.engine = engine
    return session_scope


def init_db(engine) -> None:
    from ..models import Base

    Base.metadata.create_all(engine)


get_session = make_session_factory(DATABASE_URL)
engine = get_session.engine
