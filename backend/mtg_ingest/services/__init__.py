"""
External source clients and domain services.
"""
from mtg_ingest.services.edhrec import EDHRECScraper
from mtg_ingest.services.errors import (
    PriceClientError,
    PriceErrorKind,
    ScrapeError,
    ScrapeErrorKind,
)
from mtg_ingest.services.price_alerts import PriceAlertDetector
from mtg_ingest.services.scryfall import (
    PriceData,
    ScryfallCardResolver,
    ScryfallPriceClient,
    get_card_resolver,
)

__all__ = [
    "EDHRECScraper",
    "PriceClientError",
    "PriceErrorKind",
    "ScrapeError",
    "ScrapeErrorKind",
    "PriceAlertDetector",
    "PriceData",
    "ScryfallCardResolver",
    "ScryfallPriceClient",
    "get_card_resolver",
]
