"""
Transaction management utilities.

Provides context managers for explicit transaction boundaries
to prevent partial commits on multi-step operations.
"""
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy.orm import Session

logger = structlog.get_logger(__name__)


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Execute operations atomically - all or nothing.

    Usage:
        with atomic(db) as session:
            commander.last_scraped_at = now
            session.add(decklist)
            # Commits on success, rolls back on exception

    Args:
        db: SQLAlchemy session

    Yields:
        The same session for chaining

    Raises:
        Exception: Re-raises any exception after rollback
    """
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Transaction rolled back", error=str(e), exc_info=True)
        raise
