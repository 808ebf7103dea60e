from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.settings import settings

_engine = None
_SessionLocal = None


def _normalize_db_url(url: str) -> str:
    if not url:
        return settings.database_url
    for prefix in ("postgresql+asyncpg://", "postgresql+psycopg2://", "postgresql://", "postgres://"):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+psycopg://", 1)
    return url


def init_db() -> None:
    """Cria as tabelas que ainda não existem."""
    from app.db.models import Base

    Base.metadata.create_all(get_engine())


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_engine(_normalize_db_url(settings.database_url), pool_pre_ping=True)
    return _engine


def get_sessionmaker():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


@contextmanager
def get_db():
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
