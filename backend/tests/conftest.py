"""
Pytest configuration and fixtures.

Provides fixtures for:
- SQLite in-memory database sessions (one shared connection per test)
- A rate limiter that never waits
- Users, collection items and price snapshots
- EDHREC payload builders and httpx mock clients
"""
from datetime import datetime
from typing import Any, Callable

import httpx
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import mtg_ingest.models  # noqa: F401  registers tables on Base.metadata
from mtg_ingest.core.rate_limiter import EDHREC, SCRYFALL, RateLimiter
from mtg_ingest.db.base import Base
from mtg_ingest.models import CardPrice, CollectionItem, User


@pytest.fixture
def test_engine():
    """In-memory SQLite engine shared across sessions and threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return sessionmaker(test_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db_session(session_maker):
    with session_maker() as session:
        yield session
        session.rollback()


@pytest.fixture
def no_wait_limiter():
    """Rate limiter with zero intervals: records stamps, never sleeps."""
    return RateLimiter({EDHREC: 0.0, SCRYFALL: 0.0})


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make_user(email: str | None = None, name: str = "Collector") -> User:
        counter["n"] += 1
        user = User(email=email or f"user{counter['n']}@example.com", name=name)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def add_collection_item(db_session) -> Callable[..., CollectionItem]:
    def _add(
        user: User,
        card_id: str,
        collection_type: str = "inventory",
        treatment: str | None = None,
        quantity: int = 1,
    ) -> CollectionItem:
        item = CollectionItem(
            user_id=user.id,
            card_id=card_id,
            collection_type=collection_type,
            treatment=treatment,
            quantity=quantity,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _add


@pytest.fixture
def add_price(db_session) -> Callable[..., CardPrice]:
    def _add(
        card_id: str,
        fetched_at: datetime,
        usd_cents: int | None = None,
        usd_foil_cents: int | None = None,
        usd_etched_cents: int | None = None,
    ) -> CardPrice:
        price = CardPrice(
            card_id=card_id,
            fetched_at=fetched_at,
            usd_cents=usd_cents,
            usd_foil_cents=usd_foil_cents,
            usd_etched_cents=usd_etched_cents,
        )
        db_session.add(price)
        db_session.commit()
        return price

    return _add


@pytest.fixture
def ranking_payload() -> Callable[[int], dict[str, Any]]:
    """Builds an EDHREC weekly ranking document with `count` commanders."""
    def _build(count: int) -> dict[str, Any]:
        return {
            "container": {
                "json_dict": {
                    "cardlists": [{
                        "header": "Top Commanders",
                        "cardviews": [
                            {
                                "name": f"Commander {i}",
                                "url": f"/commanders/commander-{i}",
                                "rank": i,
                            }
                            for i in range(1, count + 1)
                        ],
                    }]
                }
            }
        }

    return _build


@pytest.fixture
def decklist_payload() -> Callable[..., dict[str, Any]]:
    """Builds an EDHREC commander page: the commander plus `count - 1` other cards."""
    def _build(count: int, commander: str = "Commander 1", prefix: str = "Card") -> dict[str, Any]:
        others = count - 1
        creatures = others // 2
        return {
            "container": {
                "json_dict": {
                    "cardlists": [
                        {"tag": "commanders", "cardviews": [{"name": commander}]},
                        {
                            "tag": "creatures",
                            "cardviews": [{"name": f"{prefix} {i}"} for i in range(creatures)],
                        },
                        {
                            "tag": "lands",
                            "cardviews": [{"name": f"{prefix} {i}"} for i in range(creatures, others)],
                        },
                    ]
                }
            }
        }

    return _build


@pytest.fixture
def mock_http_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    """httpx.Client whose requests are answered by `handler`."""
    clients = []

    def _build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _build
    for client in clients:
        client.close()
