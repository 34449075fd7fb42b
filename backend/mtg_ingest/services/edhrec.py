"""
EDHREC scraper.

Reads the weekly top-commander ranking and each commander's average decklist
from EDHREC's public JSON pages. Every request waits on the shared rate
limiter under the `edhrec` service name.
"""
import time
from typing import Any, Callable, Optional

import httpx
import structlog

from mtg_ingest.core.config import settings
from mtg_ingest.core.rate_limiter import EDHREC, RateLimiter, rate_limiter
from mtg_ingest.services.errors import ScrapeError, ScrapeErrorKind
from mtg_ingest.services.scryfall import ScryfallCardResolver, build_http_client, get_card_resolver

logger = structlog.get_logger(__name__)

COMMANDER_CATEGORY = "commanders"


class EDHRECScraper:
    """
    Client for EDHREC commander rankings and average decklists.

    Usage:
        scraper = EDHRECScraper()
        for commander in scraper.fetch_top_commanders():
            cards = scraper.fetch_commander_decklist(commander["url"])
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        resolver: Optional[ScryfallCardResolver] = None,
        limiter: RateLimiter = rate_limiter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client or build_http_client()
        self._resolver = resolver
        self._limiter = limiter
        self._sleep = sleep
        self.base_url = settings.edhrec_base_url.rstrip("/")
        self.json_url = settings.edhrec_json_url.rstrip("/")
        self.top_count = settings.edhrec_top_commander_count
        self.max_retries = settings.edhrec_max_retries
        self.backoff_base = settings.edhrec_backoff_base_seconds

    @property
    def resolver(self) -> ScryfallCardResolver:
        if self._resolver is None:
            self._resolver = get_card_resolver()
        return self._resolver

    def close(self) -> None:
        self._client.close()

    def fetch_top_commanders(self) -> list[dict[str, Any]]:
        """
        Fetch this week's top commanders.

        Returns:
            Up to 20 `{name, rank, url}` dicts in ranking order

        Raises:
            ScrapeError: FETCH on transport/HTTP failure, RATE_LIMIT on 429
                (not retried here), PARSE when the ranking can't be read.
        """
        url = f"{self.json_url}/pages/commanders/week.json"
        data = self._get_json(url, retry_rate_limit=False)

        cardlists = _cardlists(data, url)
        cardviews = (cardlists[0].get("cardviews") if cardlists else None) or []
        if not cardviews:
            logger.error("No cardviews found in EDHREC ranking", url=url)
            raise ScrapeError(
                ScrapeErrorKind.PARSE,
                "Could not find commander data in JSON - API structure may have changed",
                url=url,
            )

        commanders = []
        for position, cardview in enumerate(cardviews[:self.top_count], start=1):
            name, path = _text(cardview.get("name")), _text(cardview.get("url"))
            if not name or not path:
                continue
            rank = cardview.get("rank")
            commanders.append({
                "name": name,
                "rank": rank if isinstance(rank, int) and rank > 0 else position,
                "url": f"{self.base_url}{path}",
            })

        if len(commanders) < self.top_count:
            logger.warning(
                "Fewer commanders than expected",
                found=len(commanders),
                expected=self.top_count,
            )
        if not commanders:
            raise ScrapeError(
                ScrapeErrorKind.PARSE,
                "No commanders could be parsed from JSON",
                url=url,
            )

        logger.info("Fetched top commanders from EDHREC", count=len(commanders))
        return commanders

    def fetch_commander_decklist(self, commander_url: str) -> list[dict[str, Any]]:
        """
        Fetch a commander's average decklist.

        Args:
            commander_url: The commander's EDHREC page URL

        Returns:
            `{name, category, is_commander, scryfall_id, scryfall_uri}` per
            card. Scryfall fields are None for names that didn't resolve.

        Raises:
            ScrapeError: FETCH, RATE_LIMIT after the 429 retries run out, or
                PARSE when the decklist is missing or outside the allowed size.
        """
        slug = commander_url.rstrip("/").split("/")[-1]
        url = f"{self.json_url}/pages/commanders/{slug}.json"
        data = self._get_json(url, retry_rate_limit=True)

        cardlists = _cardlists(data, url)
        if not cardlists:
            logger.error("No cardlists found in EDHREC decklist", url=url)
            raise ScrapeError(
                ScrapeErrorKind.PARSE,
                "Could not find decklist data in JSON - API structure may have changed",
                url=url,
            )

        cards = []
        for cardlist in cardlists:
            category = _text(cardlist.get("tag")) or "Unknown"
            is_commander = category.lower() == COMMANDER_CATEGORY
            for cardview in cardlist.get("cardviews") or []:
                name = _text(cardview.get("name"))
                if name:
                    cards.append({
                        "name": name,
                        "category": category,
                        "is_commander": is_commander,
                    })

        self._validate_size(cards, url)

        resolved = self.resolver.resolve_cards([card["name"] for card in cards])
        for card in cards:
            match = resolved.get(card["name"])
            card["scryfall_id"] = match["id"] if match else None
            card["scryfall_uri"] = match["uri"] if match else None

        return cards

    def _validate_size(self, cards: list[dict[str, Any]], url: str) -> None:
        minimum = settings.decklist_min_cards
        maximum = settings.decklist_max_cards
        if minimum <= len(cards) <= maximum:
            return
        logger.warning(
            "Decklist size out of range",
            url=url,
            cards=len(cards),
            minimum=minimum,
            maximum=maximum,
        )
        if len(cards) < minimum:
            message = f"Decklist incomplete - only {len(cards)} cards found (expected {minimum}-{maximum})"
        else:
            message = f"Decklist has too many cards - {len(cards)} found (expected {minimum}-{maximum})"
        raise ScrapeError(ScrapeErrorKind.PARSE, message, url=url)

    def _get_json(self, url: str, retry_rate_limit: bool) -> dict[str, Any]:
        """
        GET a JSON document through the rate limiter.

        On 429, waits `backoff_base * 2**attempt` and retries up to
        `max_retries` times when `retry_rate_limit` is set.
        """
        attempt = 0
        while True:
            self._limiter.throttle(EDHREC)
            try:
                response = self._client.get(url)
            except httpx.TimeoutException as e:
                logger.error("EDHREC request timed out", url=url, error=str(e))
                raise ScrapeError(ScrapeErrorKind.FETCH, f"Timed out fetching {url}: {e}", url=url) from e
            except httpx.HTTPError as e:
                logger.error("EDHREC network error", url=url, error_type=type(e).__name__, error=str(e))
                raise ScrapeError(ScrapeErrorKind.FETCH, f"Network error fetching {url}: {e}", url=url) from e

            if response.status_code == 429:
                if retry_rate_limit and attempt < self.max_retries:
                    delay = self.backoff_base * 2 ** attempt
                    logger.warning(
                        "rate_limit_encountered",
                        service=EDHREC,
                        url=url,
                        retry_count=attempt + 1,
                        backoff_seconds=delay,
                    )
                    self._sleep(delay)
                    attempt += 1
                    continue
                logger.error("rate_limit_encountered", service=EDHREC, url=url, retries=attempt)
                raise ScrapeError(ScrapeErrorKind.RATE_LIMIT, f"EDHREC rate limit exceeded for {url}", url=url)

            if not response.is_success:
                logger.error("EDHREC HTTP error", url=url, status=response.status_code)
                raise ScrapeError(
                    ScrapeErrorKind.FETCH,
                    f"HTTP error {response.status_code} for {url}",
                    url=url,
                )

            try:
                data = response.json()
            except ValueError as e:
                logger.error("EDHREC JSON parsing error", url=url, error=str(e))
                raise ScrapeError(ScrapeErrorKind.PARSE, f"Failed to parse JSON response: {e}", url=url) from e
            if not isinstance(data, dict):
                raise ScrapeError(ScrapeErrorKind.PARSE, "EDHREC response is not a JSON object", url=url)
            return data


def _cardlists(data: dict[str, Any], url: str) -> list[dict[str, Any]]:
    """
    Pull `container.json_dict.cardlists` out of an EDHREC page.

    Missing levels give an empty list. Levels of the wrong type, or
    cardlists/cardviews that aren't objects, raise PARSE.
    """
    cardlists: Any = None
    container = data.get("container") or {}
    if isinstance(container, dict):
        json_dict = container.get("json_dict") or {}
        if isinstance(json_dict, dict):
            cardlists = json_dict.get("cardlists") or []
    if not isinstance(cardlists, list) or not all(
        isinstance(cardlist, dict) and _is_cardview_list(cardlist.get("cardviews"))
        for cardlist in cardlists
    ):
        logger.error("Unexpected EDHREC page structure", url=url)
        raise ScrapeError(
            ScrapeErrorKind.PARSE,
            "Unexpected JSON structure - API structure may have changed",
            url=url,
        )
    return cardlists


def _is_cardview_list(cardviews: Any) -> bool:
    if cardviews is None:
        return True
    return isinstance(cardviews, list) and all(isinstance(view, dict) for view in cardviews)


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None
