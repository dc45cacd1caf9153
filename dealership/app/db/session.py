from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from dealership.app.core.settings import settings


def _connect_args(url: str) -> Dict[str, Any]:
    # sessions are opened in the threadpool and used on the event loop thread
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


ENGINE = create_engine(
    settings.database_url,
    future=True,
    echo=False,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.database_url),
)

SessionLocal = sessionmaker(bind=ENGINE, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
