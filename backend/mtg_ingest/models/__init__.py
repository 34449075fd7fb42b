"""
SQLAlchemy models for the ingestion pipeline.
"""
from mtg_ingest.models.user import User
from mtg_ingest.models.collection_item import CollectionItem, CollectionType, TREATMENT_OPTIONS
from mtg_ingest.models.commander import Commander, Decklist
from mtg_ingest.models.card_price import CardPrice, price_for_treatment
from mtg_ingest.models.price_alert import AlertType, PriceAlert
from mtg_ingest.models.scraper_execution import ExecutionStatus, ScraperExecution

__all__ = [
    "User",
    "CollectionItem",
    "CollectionType",
    "TREATMENT_OPTIONS",
    "Commander",
    "Decklist",
    "CardPrice",
    "price_for_treatment",
    "AlertType",
    "PriceAlert",
    "ExecutionStatus",
    "ScraperExecution",
]
