"""
Commander scraping tasks.

Two phases:
1. discover_commanders - Weekly. Reads the EDHREC top-commander ranking,
   upserts Commander rows and enqueues one decklist scrape per commander,
   spaced an hour apart (0h, 1h, ... 19h).
2. scrape_commander_decklist - One per commander. Fetches the average
   decklist and saves it atomically.

A failing decklist scrape only affects its own commander.
"""
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from mtg_ingest.core.config import settings
from mtg_ingest.core.logging import log_error
from mtg_ingest.db.session import get_session_maker
from mtg_ingest.db.transaction import atomic
from mtg_ingest.repositories.commander_repo import CommanderRepository
from mtg_ingest.repositories.execution_repo import ScraperExecutionRepository
from mtg_ingest.services.edhrec import EDHRECScraper
from mtg_ingest.services.errors import ScrapeError
from mtg_ingest.tasks.celery_app import celery_app
from mtg_ingest.tasks.error_handlers import TaskWithDLQ

logger = structlog.get_logger(__name__)

# (commander_id, execution_id, countdown_seconds)
ScheduleDecklist = Callable[[int, Optional[int], int], Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@celery_app.task(
    bind=True,
    base=TaskWithDLQ,
    name="mtg_ingest.tasks.commanders.discover_commanders",
    autoretry_for=(ScrapeError, SQLAlchemyError),
    retry_backoff=True,
    max_retries=2,
)
def discover_commanders(self) -> dict[str, Any]:
    """
    Discover this week's top commanders and schedule their decklist scrapes.

    Returns:
        Summary with the execution id and the number of commanders
        discovered and decklist jobs scheduled.
    """
    return run_discovery()


@celery_app.task(
    bind=True,
    base=TaskWithDLQ,
    name="mtg_ingest.tasks.commanders.scrape_commander_decklist",
    autoretry_for=(ScrapeError,),
    retry_backoff=True,
    retry_jitter=True,
    max_retries=3,
)
def scrape_commander_decklist(self, commander_id: int, execution_id: Optional[int] = None) -> dict[str, Any]:
    """
    Scrape and save the average decklist of one commander.

    Scraper errors of every kind are re-raised for the queue to retry.
    """
    return run_decklist_scrape(commander_id, execution_id=execution_id)


def enqueue_decklist_scrape(commander_id: int, execution_id: Optional[int], countdown: int) -> None:
    scrape_commander_decklist.apply_async(
        args=[commander_id],
        kwargs={"execution_id": execution_id},
        countdown=countdown,
    )


def build_decklist_contents(cards: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Scraped cards to stored decklist entries."""
    return [
        {
            "card_id": card.get("scryfall_id"),
            "card_name": card["name"],
            "card_url": card.get("scryfall_uri"),
            "quantity": 1,
            "is_commander": bool(card.get("is_commander")),
        }
        for card in cards
    ]


def run_discovery(
    session_maker: Optional[sessionmaker] = None,
    scraper: Optional[EDHRECScraper] = None,
    schedule_decklist: Optional[ScheduleDecklist] = None,
    now: Callable[[], datetime] = _utcnow,
) -> dict[str, Any]:
    """
    Discovery phase body, with its collaborators injectable.

    The execution row is committed before the ranking request so a failed
    run still leaves an audit record marked `failure`; anything raised after
    that, scheduling included, marks the row `failure` and re-raises.
    """
    maker = session_maker or get_session_maker()
    schedule = schedule_decklist or enqueue_decklist_scrape
    owns_scraper = scraper is None
    scraper = scraper or EDHRECScraper()
    start = time.monotonic()

    logger.info("scrape_started", job="discover_commanders")

    try:
        with maker() as db:
            executions = ScraperExecutionRepository(db)
            execution = executions.start(now())
            db.commit()

            try:
                entries = scraper.fetch_top_commanders()
                commanders = CommanderRepository(db).upsert_from_ranking(entries)
                db.commit()

                for commander in commanders:
                    logger.info(
                        "commander_processed",
                        commander_id=commander.id,
                        commander_name=commander.name,
                        rank=commander.rank,
                    )

                interval = settings.decklist_scrape_interval_hours * 3600
                for index, commander in enumerate(commanders):
                    countdown = index * interval
                    schedule(commander.id, execution.id, countdown)
                    logger.info(
                        "decklist_scrape_scheduled",
                        commander_id=commander.id,
                        commander_name=commander.name,
                        countdown_seconds=countdown,
                    )

                executions.mark_success(execution, attempted=len(commanders), now=now())
                db.commit()
            except Exception as e:
                db.rollback()
                log_error(logger, e, job="discover_commanders", execution_id=execution.id)
                executions.mark_failure(execution, e, now())
                db.commit()
                raise
            execution_id = execution.id
    finally:
        if owns_scraper:
            scraper.close()

    execution_time = round(time.monotonic() - start, 2)
    logger.info(
        "scrape_completed",
        job="discover_commanders",
        execution_id=execution_id,
        commanders_discovered=len(commanders),
        decklist_jobs_scheduled=len(commanders),
        execution_time=execution_time,
    )
    return {
        "execution_id": execution_id,
        "commanders_discovered": len(commanders),
        "decklist_jobs_scheduled": len(commanders),
        "execution_time": execution_time,
    }


def run_decklist_scrape(
    commander_id: int,
    execution_id: Optional[int] = None,
    session_maker: Optional[sessionmaker] = None,
    scraper: Optional[EDHRECScraper] = None,
    now: Callable[[], datetime] = _utcnow,
) -> dict[str, Any]:
    """
    Decklist phase body for one commander.

    The decklist is fetched with no transaction open; the commander
    timestamp, decklist contents and execution counter are then written in
    one transaction.
    """
    maker = session_maker or get_session_maker()
    owns_scraper = scraper is None
    scraper = scraper or EDHRECScraper()

    try:
        with maker() as db:
            repo = CommanderRepository(db)
            commander = repo.get_by_id(commander_id)
            if commander is None:
                # Nothing to retry: the commander row is gone
                logger.warning("Commander not found, skipping decklist scrape", commander_id=commander_id)
                return {"commander_id": commander_id, "status": "not_found", "cards_count": 0}
            # End the read transaction before the network call
            db.commit()

            logger.info(
                "decklist_scrape_started",
                commander_id=commander.id,
                commander_name=commander.name,
                edhrec_url=commander.edhrec_url,
            )

            try:
                cards = scraper.fetch_commander_decklist(commander.edhrec_url)
            except ScrapeError as e:
                log_error(
                    logger,
                    e,
                    error_kind=e.kind.value,
                    commander_id=commander.id,
                    commander_name=commander.name,
                    edhrec_url=commander.edhrec_url,
                )
                raise

            contents = build_decklist_contents(cards)
            with atomic(db):
                commander.last_scraped_at = now()
                repo.save_decklist(commander, contents)
                if execution_id is not None:
                    found = ScraperExecutionRepository(db).increment_cards_processed(
                        execution_id, len(contents)
                    )
                    if not found:
                        logger.warning("Scraper execution not found", execution_id=execution_id)

            logger.info(
                "decklist_scrape_completed",
                commander_id=commander.id,
                commander_name=commander.name,
                cards_count=len(contents),
            )
            return {
                "commander_id": commander.id,
                "commander_name": commander.name,
                "status": "success",
                "cards_count": len(contents),
            }
    finally:
        if owns_scraper:
            scraper.close()
