"""
Repository layer for data access.

Repositories hide SQL queries and ORM details from the services and tasks.
"""
from mtg_ingest.repositories.base import BaseRepository
from mtg_ingest.repositories.alert_repo import PriceAlertRepository
from mtg_ingest.repositories.collection_repo import CollectionRepository, Holding
from mtg_ingest.repositories.commander_repo import CommanderRepository
from mtg_ingest.repositories.execution_repo import ScraperExecutionRepository
from mtg_ingest.repositories.price_repo import PriceRepository

__all__ = [
    "BaseRepository",
    "PriceAlertRepository",
    "CollectionRepository",
    "Holding",
    "CommanderRepository",
    "ScraperExecutionRepository",
    "PriceRepository",
]
