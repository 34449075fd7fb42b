"""
Scryfall clients: per-card price snapshots and card name resolution.

Every request goes through the shared rate limiter under the `scryfall`
service name, retries included.
"""
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Callable, Iterable, Optional

import httpx
import structlog

from mtg_ingest.core.config import settings
from mtg_ingest.core.rate_limiter import SCRYFALL, RateLimiter, rate_limiter
from mtg_ingest.services.errors import PriceClientError, PriceErrorKind

logger = structlog.get_logger(__name__)


def build_http_client() -> httpx.Client:
    """HTTP client with the pipeline's connect/read timeouts and user agent."""
    return httpx.Client(
        timeout=httpx.Timeout(settings.http_read_timeout, connect=settings.http_connect_timeout),
        headers={
            "User-Agent": settings.scraper_user_agent,
            "Accept": "application/json",
        },
        follow_redirects=True,
    )


def dollars_to_cents(value: Any) -> Optional[int]:
    """
    Convert a Scryfall dollar string ("12.345") to integer cents.

    Rounds half up on `dollars * 100`; None stays None.

    Raises:
        ValueError: NaN, infinite or negative amounts
        decimal.InvalidOperation: strings that aren't numbers
    """
    if value is None:
        return None
    dollars = Decimal(str(value))
    if not dollars.is_finite() or dollars < 0:
        raise ValueError(f"Invalid dollar amount: {value!r}")
    cents = (dollars * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


@dataclass(frozen=True)
class PriceData:
    """Prices for one card at one moment, in USD cents."""

    card_id: str
    usd_cents: Optional[int]
    usd_foil_cents: Optional[int]
    usd_etched_cents: Optional[int]
    fetched_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ScryfallPriceClient:
    """
    Fetches the current USD, foil and etched prices of a card.

    Usage:
        client = ScryfallPriceClient()
        data = client.fetch("0000579f-7b35-4ed3-b44c-db2a538066fe")
        if data is None:
            ...  # unknown card
    """

    NETWORK_ATTEMPTS = 3
    INITIAL_BACKOFF_SECONDS = 1.0

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        limiter: RateLimiter = rate_limiter,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        base_url: Optional[str] = None,
    ):
        self._client = client or build_http_client()
        self._limiter = limiter
        self._sleep = sleep
        self._now = now
        self.base_url = (base_url or settings.scryfall_base_url).rstrip("/")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ScryfallPriceClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch(self, card_id: str) -> Optional[PriceData]:
        """
        Fetch prices for one card.

        Returns:
            PriceData, or None when Scryfall does not know the card (404)

        Raises:
            PriceClientError: RATE_LIMIT on 429, TIMEOUT on connect/read
                timeout, NETWORK once connection retries are exhausted,
                INVALID_RESPONSE on any other status or malformed body.
        """
        response = self._get_with_retry(card_id)

        if response.status_code == 404:
            logger.info("Card not found on Scryfall", card_id=card_id)
            return None
        if response.status_code == 429:
            logger.warning("rate_limit_encountered", service=SCRYFALL, card_id=card_id)
            raise PriceClientError(
                PriceErrorKind.RATE_LIMIT,
                "Scryfall API rate limit exceeded",
                card_id=card_id,
            )
        if response.status_code != 200:
            raise PriceClientError(
                PriceErrorKind.INVALID_RESPONSE,
                f"Scryfall API returned unexpected status: {response.status_code}",
                card_id=card_id,
            )

        try:
            card = response.json()
        except ValueError as e:
            raise PriceClientError(
                PriceErrorKind.INVALID_RESPONSE,
                f"Invalid JSON response from Scryfall API: {e}",
                card_id=card_id,
            ) from e
        if not isinstance(card, dict):
            raise PriceClientError(
                PriceErrorKind.INVALID_RESPONSE,
                "Scryfall card response is not an object",
                card_id=card_id,
            )

        return self._parse_prices(card_id, card)

    def _get_with_retry(self, card_id: str) -> httpx.Response:
        url = f"{self.base_url}/cards/{card_id}"
        attempt = 1
        while True:
            self._limiter.throttle(SCRYFALL)
            try:
                return self._client.get(url)
            except httpx.TimeoutException as e:
                raise PriceClientError(
                    PriceErrorKind.TIMEOUT,
                    f"Request to Scryfall API timed out: {e}",
                    card_id=card_id,
                ) from e
            except httpx.TransportError as e:
                if attempt >= self.NETWORK_ATTEMPTS:
                    logger.error(
                        "Scryfall connection failed after retries",
                        card_id=card_id,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise PriceClientError(
                        PriceErrorKind.NETWORK,
                        f"Network error while connecting to Scryfall API: {e}",
                        card_id=card_id,
                    ) from e
                backoff = self.INITIAL_BACKOFF_SECONDS * 2 ** (attempt - 1)
                logger.warning(
                    "Scryfall connection failed, retrying",
                    card_id=card_id,
                    attempt=attempt,
                    backoff_seconds=backoff,
                    error=str(e),
                )
                self._sleep(backoff)
                attempt += 1

    def _parse_prices(self, card_id: str, card: dict[str, Any]) -> PriceData:
        prices = card.get("prices") or {}
        try:
            data = PriceData(
                card_id=card_id,
                usd_cents=dollars_to_cents(prices.get("usd")),
                usd_foil_cents=dollars_to_cents(prices.get("usd_foil")),
                usd_etched_cents=dollars_to_cents(prices.get("usd_etched")),
                fetched_at=self._now(),
            )
        except (InvalidOperation, ValueError, AttributeError) as e:
            raise PriceClientError(
                PriceErrorKind.INVALID_RESPONSE,
                f"Unparseable price in Scryfall response: {e}",
                card_id=card_id,
            ) from e

        if data.usd_cents is None and data.usd_foil_cents is None and data.usd_etched_cents is None:
            logger.info("Card has no price data available", card_id=card_id)
        return data


def _chunks(items: list[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _front_face(name: str) -> str:
    return name.split(" // ")[0].strip().lower()


class ScryfallCardResolver:
    """
    Resolves card names to Scryfall ids and page URIs.

    Best effort: a failed request leaves its names unresolved (None) and
    never raises. Answers from successful requests are cached per instance.
    """

    CHUNK_SIZE = 75  # /cards/collection accepts at most 75 identifiers
    MAX_RETRIES = 3
    INITIAL_BACKOFF_SECONDS = 0.5

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        limiter: RateLimiter = rate_limiter,
        sleep: Callable[[float], None] = time.sleep,
        base_url: Optional[str] = None,
    ):
        self._client = client or build_http_client()
        self._limiter = limiter
        self._sleep = sleep
        self.base_url = (base_url or settings.scryfall_base_url).rstrip("/")
        self._cache: dict[str, Optional[dict[str, str]]] = {}
        self._cache_lock = threading.Lock()

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def resolve_cards(self, names: Iterable[str]) -> dict[str, Optional[dict[str, str]]]:
        """
        Map each name to `{"id", "uri"}`, or None if it could not be resolved.
        """
        unique = list(dict.fromkeys(name for name in names if name))
        result: dict[str, Optional[dict[str, str]]] = {}

        with self._cache_lock:
            for name in unique:
                if name in self._cache:
                    result[name] = self._cache[name]
        missing = [name for name in unique if name not in result]

        for chunk in _chunks(missing, self.CHUNK_SIZE):
            resolved = self._resolve_chunk(chunk)
            if resolved is None:
                result.update({name: None for name in chunk})
                continue
            with self._cache_lock:
                self._cache.update(resolved)
            result.update(resolved)

        unresolved = sum(1 for value in result.values() if value is None)
        if unresolved:
            logger.warning("Unresolved card names", unresolved=unresolved, total=len(result))
        return result

    def _resolve_chunk(self, names: list[str]) -> Optional[dict[str, Optional[dict[str, str]]]]:
        url = f"{self.base_url}/cards/collection"
        payload = {"identifiers": [{"name": name} for name in names]}

        for attempt in range(self.MAX_RETRIES + 1):
            self._limiter.throttle(SCRYFALL)
            try:
                response = self._client.post(url, json=payload)
            except httpx.HTTPError as e:
                logger.error("Scryfall collection request failed", error=str(e), names=len(names))
                return None

            if response.status_code == 429:
                if attempt < self.MAX_RETRIES:
                    backoff = self.INITIAL_BACKOFF_SECONDS * 2 ** attempt
                    logger.warning(
                        "rate_limit_encountered",
                        service=SCRYFALL,
                        retry_count=attempt + 1,
                        backoff_seconds=backoff,
                    )
                    self._sleep(backoff)
                    continue
                logger.error("Scryfall rate limit exceeded, max retries reached", names=len(names))
                return None

            if response.status_code != 200:
                logger.error("Scryfall collection HTTP error", status=response.status_code)
                return None
            try:
                data = response.json()
            except ValueError as e:
                logger.error("Scryfall collection returned invalid JSON", error=str(e))
                return None
            if not isinstance(data, dict):
                logger.error("Scryfall collection response is not an object")
                return None
            return self._match(names, data.get("data") or [])

        return None

    @staticmethod
    def _match(
        names: list[str],
        cards: list[dict[str, Any]],
    ) -> dict[str, Optional[dict[str, str]]]:
        by_name: dict[str, dict[str, str]] = {}
        for card in cards:
            if not card.get("name") or not card.get("id"):
                continue
            entry = {"id": card["id"], "uri": card.get("scryfall_uri")}
            by_name.setdefault(card["name"].lower(), entry)
            # Double-faced cards are requested by their front face
            by_name.setdefault(_front_face(card["name"]), entry)
            for face in card.get("card_faces") or []:
                if face.get("name"):
                    by_name.setdefault(face["name"].lower(), entry)

        return {
            name: by_name.get(name.lower()) or by_name.get(_front_face(name))
            for name in names
        }


@lru_cache()
def get_card_resolver() -> ScryfallCardResolver:
    """Process-wide resolver so its cache is shared across scrapes."""
    return ScryfallCardResolver()
