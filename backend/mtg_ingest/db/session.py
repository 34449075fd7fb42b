"""
Database session management.

Workers share one lazily created engine per process; tasks open short-lived
sessions from `get_session_maker()`.
"""
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from mtg_ingest.core.config import settings

# Create engine lazily to avoid connecting at import time
_engine: Engine | None = None
_session_maker: sessionmaker | None = None


def get_engine() -> Engine:
    """Get or create the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url_computed,
            echo=False,
            pool_pre_ping=True,  # Verify connections before using them
            pool_size=5,
            max_overflow=10,
            pool_recycle=1800,
            connect_args={
                # 60 second statement timeout for background jobs
                "options": "-c statement_timeout=60000 -c application_name=mtg_ingest_worker",
            },
        )
    return _engine


def get_session_maker() -> sessionmaker:
    """Get or create the session maker."""
    global _session_maker
    if _session_maker is None:
        _session_maker = sessionmaker(
            get_engine(),
            class_=Session,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker
