"""
Card price update task.

update_card_prices runs daily in batch mode: every card id tracked in any
collection is priced once per UTC day, so a run that aborts on a rate limit
or network outage resumes where it stopped when retried. Price alert
detection follows the batch.
"""
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.orm import Session, sessionmaker

from mtg_ingest.core.config import settings
from mtg_ingest.core.logging import log_error
from mtg_ingest.db.session import get_session_maker
from mtg_ingest.repositories.collection_repo import CollectionRepository
from mtg_ingest.repositories.price_repo import PriceRepository
from mtg_ingest.services.errors import PriceClientError, PriceErrorKind
from mtg_ingest.services.price_alerts import PriceAlertDetector
from mtg_ingest.services.scryfall import ScryfallPriceClient
from mtg_ingest.tasks.celery_app import celery_app
from mtg_ingest.tasks.error_handlers import TaskWithDLQ

logger = structlog.get_logger(__name__)

PROGRESS_LOG_INTERVAL = 100

# Total attempts per error kind; other kinds are not retried
RETRY_ATTEMPTS = {
    PriceErrorKind.RATE_LIMIT: 5,
    PriceErrorKind.NETWORK: 3,
}
RETRY_BASE_COUNTDOWN = 60
RETRY_MAX_COUNTDOWN = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def retry_countdown(retries: int) -> int:
    """Exponential delay before the next attempt: 60s, 120s, 240s... capped at an hour."""
    return min(2 ** retries * RETRY_BASE_COUNTDOWN, RETRY_MAX_COUNTDOWN)


@celery_app.task(
    bind=True,
    base=TaskWithDLQ,
    name="mtg_ingest.tasks.pricing.update_card_prices",
    max_retries=max(RETRY_ATTEMPTS.values()) - 1,
)
def update_card_prices(self, card_id: Optional[str] = None) -> dict[str, Any]:
    """
    Fetch and store current prices.

    Args:
        card_id: Price only this card. All tracked cards when omitted.

    Returns:
        Summary of the run.
    """
    try:
        return run_price_update(card_id)
    except PriceClientError as e:
        attempts = RETRY_ATTEMPTS.get(e.kind)
        if attempts is None:
            raise
        countdown = retry_countdown(self.request.retries)
        logger.warning(
            "Price update failed, scheduling retry",
            error_kind=e.kind.value,
            retries=self.request.retries,
            max_attempts=attempts,
            countdown=countdown,
        )
        # Re-raises `e` once the per-kind budget is spent
        raise self.retry(exc=e, countdown=countdown, max_retries=attempts - 1)


def run_price_update(
    card_id: Optional[str] = None,
    session_maker: Optional[sessionmaker] = None,
    client: Optional[ScryfallPriceClient] = None,
    now: Callable[[], datetime] = _utcnow,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Task body with its collaborators injectable."""
    if card_id is not None and not str(card_id).strip():
        logger.error("card_id is required")
        raise ValueError("card_id is required")

    maker = session_maker or get_session_maker()
    owns_client = client is None
    client = client or ScryfallPriceClient(now=now)

    try:
        with maker() as db:
            if card_id is not None:
                return _update_single_card(db, client, card_id)
            return _update_all_cards(db, client, now, sleep)
    finally:
        if owns_client:
            client.close()


def _fetch_and_store(db: Session, client: ScryfallPriceClient, card_id: str) -> bool:
    """Store one snapshot. False when Scryfall doesn't know the card."""
    data = client.fetch(card_id)
    if data is None:
        logger.info("Card not found in Scryfall API", card_id=card_id)
        return False
    PriceRepository(db).add_snapshot(**data.to_dict())
    db.commit()
    return True


def _update_single_card(db: Session, client: ScryfallPriceClient, card_id: str) -> dict[str, Any]:
    logger.info("Updating prices for card", card_id=card_id)
    try:
        stored = _fetch_and_store(db, client, card_id)
    except Exception as e:
        db.rollback()
        log_error(logger, e, card_id=card_id, mode="single")
        raise
    return {"mode": "single", "card_id": card_id, "stored": stored}


def _update_all_cards(
    db: Session,
    client: ScryfallPriceClient,
    now: Callable[[], datetime],
    sleep: Callable[[float], None],
) -> dict[str, Any]:
    start = time.monotonic()
    summary: dict[str, Any] = {
        "mode": "batch",
        "total_cards": 0,
        "already_processed": 0,
        "processed": 0,
        "successful": 0,
        "not_found": 0,
        "failed": 0,
        "alerts_created": 0,
    }

    all_card_ids = CollectionRepository(db).tracked_card_ids()
    summary["total_cards"] = len(all_card_ids)
    if not all_card_ids:
        logger.info("No cards found to update")
        summary["execution_time"] = round(time.monotonic() - start, 2)
        return summary

    # Cards that already have a snapshot today are skipped, which makes
    # a retried run resume instead of starting over
    today_start = now().astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    processed_today = PriceRepository(db).card_ids_priced_since(all_card_ids, today_start)
    to_process = [cid for cid in all_card_ids if cid not in processed_today]
    summary["already_processed"] = len(processed_today)
    db.commit()

    logger.info(
        "Starting batch price update",
        total_cards=len(all_card_ids),
        to_process=len(to_process),
        already_processed=len(processed_today),
    )

    batch_size = settings.price_batch_size
    batches = [to_process[i:i + batch_size] for i in range(0, len(to_process), batch_size)]

    for batch_index, batch in enumerate(batches):
        for card_id in batch:
            try:
                if _fetch_and_store(db, client, card_id):
                    summary["successful"] += 1
                else:
                    summary["not_found"] += 1
            except PriceClientError as e:
                db.rollback()
                if e.aborts_batch:
                    logger.error(
                        "Price update aborted",
                        card_id=card_id,
                        error_kind=e.kind.value,
                        processed=summary["processed"],
                        error=str(e),
                    )
                    raise
                summary["failed"] += 1
                log_error(logger, e, card_id=card_id, error_kind=e.kind.value)
            except Exception as e:
                # One bad card must not stop the batch
                db.rollback()
                summary["failed"] += 1
                log_error(logger, e, card_id=card_id)

            summary["processed"] += 1
            if summary["processed"] % PROGRESS_LOG_INTERVAL == 0:
                logger.info(
                    "Price update progress",
                    processed=summary["processed"],
                    total=len(to_process),
                )

        if batch_index < len(batches) - 1:
            sleep(settings.price_batch_delay_seconds)

    logger.info(
        "Completed batch price update",
        execution_time=round(time.monotonic() - start, 2),
        successful=summary["successful"],
        not_found=summary["not_found"],
        failed=summary["failed"],
    )

    summary["alerts_created"] = _detect_price_changes(db, now)
    summary["execution_time"] = round(time.monotonic() - start, 2)
    return summary


def _detect_price_changes(db: Session, now: Callable[[], datetime]) -> int:
    """Run alert detection; a failure here is logged and never fails the run."""
    logger.info("Detecting price changes for alerts")
    try:
        alerts = PriceAlertDetector(db, now=now).detect_price_changes()
        db.commit()
    except Exception as e:
        db.rollback()
        log_error(logger, e, step="price_alert_detection")
        return 0
    return len(alerts)
