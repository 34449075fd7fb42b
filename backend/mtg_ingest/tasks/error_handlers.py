"""
Dead letter queue for pipeline jobs.

A job that exhausts its retries lands here as a JSON entry recording which
commander, execution or card it was working on and how the source failed
(`error_kind` is the ScrapeError/PriceClientError kind). `run_job dlq`
lists, resubmits and clears entries.
"""
import json
from datetime import datetime, timezone
from typing import Any, Optional

import redis
import structlog
from celery import Task

from mtg_ingest.core.config import settings
from mtg_ingest.core.logging import log_error

logger = structlog.get_logger(__name__)

DLQ_KEY = "mtg_ingest:dead_letter_queue"
DLQ_MAX_SIZE = 1000

# Positional parameters of each job, in order, for naming its subject
JOB_PARAMETERS = {
    "mtg_ingest.tasks.commanders.discover_commanders": (),
    "mtg_ingest.tasks.commanders.scrape_commander_decklist": ("commander_id", "execution_id"),
    "mtg_ingest.tasks.pricing.update_card_prices": ("card_id",),
}


def get_redis() -> redis.Redis:
    return redis.from_url(settings.redis_url)


def job_subject(task_name: str, args, kwargs, exc: Optional[BaseException] = None) -> dict[str, Any]:
    """
    Name what a failed job was working on.

    Bound from the job's arguments; a PriceClientError raised during a full
    batch supplies the card the batch stopped on.
    """
    params = JOB_PARAMETERS.get(task_name, ())
    subject = dict(zip(params, args or ()))
    subject.update({key: value for key, value in (kwargs or {}).items() if key in params})
    if subject.get("card_id") is None and getattr(exc, "card_id", None):
        subject["card_id"] = exc.card_id
    return {key: value for key, value in subject.items() if value is not None}


def dead_letter_entry(
    task_name: str,
    task_id: str,
    exc: BaseException,
    args,
    kwargs,
    einfo=None,
    failed_at: Optional[datetime] = None,
) -> dict[str, Any]:
    kind = getattr(exc, "kind", None)
    return {
        "task_id": task_id,
        "task_name": task_name,
        "args": list(args) if args else [],
        "kwargs": kwargs if kwargs else {},
        "subject": job_subject(task_name, args, kwargs, exc),
        "error": str(exc),
        "error_class": type(exc).__name__,
        "error_kind": kind.value if kind is not None else None,
        "source_url": getattr(exc, "url", None),
        "traceback": str(einfo) if einfo else None,
        "failed_at": (failed_at or datetime.now(timezone.utc)).isoformat(),
    }


class TaskWithDLQ(Task):
    """
    Base for pipeline jobs: a permanent failure is pushed onto the DLQ.

    Usage:
        @celery_app.task(bind=True, base=TaskWithDLQ, max_retries=3)
        def my_job(self, commander_id):
            ...
    """

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        entry = dead_letter_entry(self.name, task_id, exc, args, kwargs, einfo=einfo)
        log_error(
            logger,
            exc,
            job=self.name,
            task_id=task_id,
            error_kind=entry["error_kind"],
            **entry["subject"],
        )

        try:
            r = get_redis()
            r.lpush(DLQ_KEY, json.dumps(entry, default=str))
            r.ltrim(DLQ_KEY, 0, DLQ_MAX_SIZE - 1)
            logger.info("job_dead_lettered", task_id=task_id, job=self.name, **entry["subject"])
        except redis.RedisError as e:
            logger.error("dead_letter_write_failed", error=str(e), task_id=task_id, job=self.name)

        super().on_failure(exc, task_id, args, kwargs, einfo)


def get_dlq_entries(limit: int = 100) -> list[dict[str, Any]]:
    """The newest `limit` entries, newest first."""
    entries = get_redis().lrange(DLQ_KEY, 0, limit - 1)
    return [json.loads(e) for e in entries]


def get_dlq_count() -> int:
    return get_redis().llen(DLQ_KEY)


def retry_dlq_entry(index: int) -> bool:
    """
    Resubmit the job at `index` (0 = newest) with its original arguments
    and drop it from the queue.

    Returns:
        False when there is no such entry or its job is no longer registered
    """
    from mtg_ingest.tasks.celery_app import celery_app

    r = get_redis()
    entry_json = r.lindex(DLQ_KEY, index)
    if not entry_json:
        logger.warning("dead_letter_not_found", index=index)
        return False

    entry = json.loads(entry_json)
    task = celery_app.tasks.get(entry["task_name"])
    if not task:
        logger.error("dead_letter_job_unknown", job=entry["task_name"])
        return False

    task.apply_async(args=entry["args"], kwargs=entry["kwargs"])
    r.lrem(DLQ_KEY, 1, entry_json)

    logger.info(
        "dead_letter_resubmitted",
        task_id=entry["task_id"],
        job=entry["task_name"],
        **entry.get("subject", {}),
    )
    return True


def clear_dlq() -> int:
    """Drop every entry; returns how many there were."""
    r = get_redis()
    count = r.llen(DLQ_KEY)
    r.delete(DLQ_KEY)
    logger.info("dead_letter_queue_cleared", count=count)
    return count
