from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from musicbox.config import Settings
from musicbox.services.box.database.base import Base

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> Engine:
    db_url = settings.database_url

    # PgBouncer already pools connections; avoid pooling twice
    if "-pooler" in db_url or "pgbouncer=true" in db_url:
        return create_engine(db_url, poolclass=NullPool)
    if db_url.startswith("sqlite"):
        return create_engine(db_url)
    return create_engine(
        db_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(engine)
    logger.info("Database schema ready")


class SessionManager:
    def __init__(self, base_engine: Engine):
        self.base_engine = base_engine
        self._factory = sessionmaker(bind=base_engine, expire_on_commit=False)

    def get_session(self):
        """
        Returns a raw session.
        Caller MUST manually commit/rollback and close the session.
        Use with_session() instead for automatic cleanup.
        """
        return self._factory()

    @contextmanager
    def with_session(self):
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
