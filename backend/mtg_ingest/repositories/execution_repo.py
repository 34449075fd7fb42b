"""
Scraper execution repository: discovery run bookkeeping and stats.
"""
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from mtg_ingest.core.logging import format_backtrace
from mtg_ingest.models.scraper_execution import ExecutionStatus, ScraperExecution
from mtg_ingest.repositories.base import BaseRepository


def error_summary(error: BaseException) -> str:
    """`"<ErrorClass>: <message>"` followed by the innermost backtrace lines."""
    lines = [f"{type(error).__name__}: {error}"]
    lines.extend(format_backtrace(error))
    return "\n".join(lines)


class ScraperExecutionRepository(BaseRepository[ScraperExecution]):
    def __init__(self, db: Session):
        super().__init__(ScraperExecution, db)

    def start(self, now: Optional[datetime] = None) -> ScraperExecution:
        return self.create(started_at=now or datetime.now(timezone.utc))

    def mark_success(
        self,
        execution: ScraperExecution,
        attempted: int,
        succeeded: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ScraperExecution:
        """
        Record the outcome of a run that finished without raising.

        Status is `partial_success` when some commanders failed.
        """
        succeeded = attempted if succeeded is None else succeeded
        execution.commanders_attempted = attempted
        execution.commanders_succeeded = succeeded
        execution.commanders_failed = attempted - succeeded
        execution.status = (
            ExecutionStatus.SUCCESS if succeeded == attempted else ExecutionStatus.PARTIAL_SUCCESS
        )
        execution.finished_at = now or datetime.now(timezone.utc)
        self.db.flush()
        return execution

    def mark_failure(
        self,
        execution: ScraperExecution,
        error: BaseException,
        now: Optional[datetime] = None,
    ) -> ScraperExecution:
        execution.status = ExecutionStatus.FAILURE
        execution.error_summary = error_summary(error)
        execution.finished_at = now or datetime.now(timezone.utc)
        self.db.flush()
        return execution

    def increment_cards_processed(self, execution_id: int, count: int) -> bool:
        """
        Add `count` to an execution's card total in a single UPDATE.

        Returns:
            False if the execution no longer exists
        """
        result = self.db.execute(
            update(ScraperExecution)
            .where(ScraperExecution.id == execution_id)
            .values(total_cards_processed=ScraperExecution.total_cards_processed + count)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def recent(self, limit: int = 10) -> Sequence[ScraperExecution]:
        query = (
            select(ScraperExecution)
            .order_by(ScraperExecution.started_at.desc(), ScraperExecution.id.desc())
            .limit(limit)
        )
        return self.db.execute(query).scalars().all()

    def stats(self) -> dict[str, Any]:
        """
        Aggregate view over all runs.

        Returns:
            Dict with `total`, per-status counts, `success_rate` (overall
            succeeded / attempted percentage) and `last_run_at`.
        """
        by_status = dict(
            self.db.execute(
                select(ScraperExecution.status, func.count()).group_by(ScraperExecution.status)
            ).all()
        )
        attempted, succeeded, last_run_at = self.db.execute(
            select(
                func.coalesce(func.sum(ScraperExecution.commanders_attempted), 0),
                func.coalesce(func.sum(ScraperExecution.commanders_succeeded), 0),
                func.max(ScraperExecution.started_at),
            )
        ).one()

        return {
            "total": sum(by_status.values()),
            **{status.value: by_status.get(status.value, 0) for status in ExecutionStatus},
            "success_rate": round(succeeded / attempted * 100, 2) if attempted else 0.0,
            "last_run_at": last_run_at,
        }
