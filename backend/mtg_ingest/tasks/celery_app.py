"""
Celery application configuration.

Schedule:
- Commander discovery: Mondays at 3 AM UTC (EDHREC weekly ranking)
- Card price update: Daily at 2 AM UTC (Scryfall, batch mode)

Decklist scrapes are not on the beat schedule: discovery enqueues one per
commander, staggered an hour apart.
"""
from celery import Celery, signals
from celery.schedules import crontab

from mtg_ingest.core.config import settings
from mtg_ingest.core.logging import setup_logging

celery_app = Celery(
    "mtg_ingest",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "mtg_ingest.tasks.commanders",
        "mtg_ingest.tasks.pricing",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # A job is only acknowledged once it finished, so a lost worker
    # hands it to another one
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Worker settings
    worker_prefetch_multiplier=1,

    beat_schedule={
        "commanders-weekly-discovery": {
            "task": "mtg_ingest.tasks.commanders.discover_commanders",
            "schedule": crontab(hour=3, minute=0, day_of_week="mon"),
        },
        "pricing-daily-update": {
            "task": "mtg_ingest.tasks.pricing.update_card_prices",
            "schedule": crontab(hour=2, minute=0),
        },
    },

    # Task routing
    task_routes={
        "mtg_ingest.tasks.commanders.*": {"queue": "scraping"},
        "mtg_ingest.tasks.pricing.*": {"queue": "pricing"},
    },

    # Default queue
    task_default_queue="default",
)


@signals.setup_logging.connect
def configure_worker_logging(**kwargs):
    """Replace Celery's logging setup with the pipeline's structlog config."""
    setup_logging()
