"""
Celery tasks for commander scraping and card price updates.
"""
from mtg_ingest.tasks.celery_app import celery_app

__all__ = ["celery_app"]
