"""
strandly/database.py
────────────────────
SQLModel engine and session handling for quiz submissions.

• build_engine() turns a database URL into an engine; the module-level
  engine is built from Settings at import time.
• get_session() is the request-scoped session dependency; the repository
  in services/submissions.py is bound to it.
• ping() backs the /health readiness probe.
"""

import logging
from collections.abc import Generator

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from strandly.core.config import get_settings

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False, **kwargs) -> Engine:
    # SQLite connections are shared with the threadpool FastAPI runs sync routes in.
    is_sqlite = url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    return create_engine(
        url,
        echo=echo,
        connect_args=connect_args,
        pool_pre_ping=not is_sqlite,
        **kwargs,
    )


settings = get_settings()
engine = build_engine(settings.DATABASE_URL, echo=settings.APP_DEBUG)


def create_db_and_tables(bind: Engine = engine) -> None:
    SQLModel.metadata.create_all(bind)
    logger.info("Ensured tables: %s", ", ".join(sorted(SQLModel.metadata.tables)))


def get_session() -> Generator[Session, None, None]:
    """Yield one session per request; closed (and rolled back if needed) afterwards."""
    with Session(engine) as session:
        yield session


def ping(session: Session) -> None:
    """Round-trip a trivial query; raises on an unreachable database."""
    session.connection().execute(text("SELECT 1"))
