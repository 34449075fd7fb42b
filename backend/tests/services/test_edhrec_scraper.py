"""
Tests for the EDHREC scraper.

HTTP is served by httpx.MockTransport; the card resolver is a MagicMock.
"""
from unittest.mock import MagicMock

import httpx
import pytest

from mtg_ingest.services.edhrec import EDHRECScraper
from mtg_ingest.services.errors import ScrapeError, ScrapeErrorKind


def _resolver():
    resolver = MagicMock()
    resolver.resolve_cards.side_effect = lambda names: {
        name: {"id": f"id-{name}", "uri": f"https://scryfall.com/card/{name}"}
        for name in names
    }
    return resolver


MALFORMED_PAYLOADS = [
    {"container": "oops"},
    {"container": {"json_dict": ["oops"]}},
    {"container": {"json_dict": {"cardlists": ["x"]}}},
    {"container": {"json_dict": {"cardlists": [{"cardviews": ["x"]}]}}},
    {"container": {"json_dict": {"cardlists": [{"cardviews": {"name": "Atraxa"}}]}}},
    {"container": {"json_dict": {"cardlists": {"a": 1}}}},
]


@pytest.fixture
def make_scraper(mock_http_client, no_wait_limiter):
    """Builds a scraper around a request handler; records requests and sleeps."""
    def _build(handler, resolver=None, limiter=None):
        requests = []
        sleeps = []

        def recording_handler(request):
            requests.append(request)
            return handler(request)

        scraper = EDHRECScraper(
            client=mock_http_client(recording_handler),
            resolver=resolver or _resolver(),
            limiter=limiter or no_wait_limiter,
            sleep=sleeps.append,
        )
        return scraper, requests, sleeps

    return _build


class TestFetchTopCommanders:
    """Weekly ranking parsing."""

    def test_returns_top_twenty_in_order(self, make_scraper, ranking_payload):
        scraper, requests, _ = make_scraper(lambda r: httpx.Response(200, json=ranking_payload(25)))

        commanders = scraper.fetch_top_commanders()

        assert len(commanders) == 20
        assert commanders[0] == {
            "name": "Commander 1",
            "rank": 1,
            "url": "https://edhrec.com/commanders/commander-1",
        }
        assert [c["rank"] for c in commanders] == list(range(1, 21))
        assert str(requests[0].url) == "https://json.edhrec.com/pages/commanders/week.json"

    def test_fewer_than_twenty_is_not_an_error(self, make_scraper, ranking_payload):
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=ranking_payload(12)))

        assert len(scraper.fetch_top_commanders()) == 12

    def test_rank_falls_back_to_position(self, make_scraper):
        payload = {"container": {"json_dict": {"cardlists": [{"cardviews": [
            {"name": "Atraxa", "url": "/commanders/atraxa"},
            {"name": "Nameless"},
            {"name": "Edgar Markov", "url": "/commanders/edgar-markov"},
        ]}]}}}
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=payload))

        commanders = scraper.fetch_top_commanders()

        assert [(c["name"], c["rank"]) for c in commanders] == [("Atraxa", 1), ("Edgar Markov", 3)]

    @pytest.mark.parametrize("payload", [
        {},
        {"container": {"json_dict": {"cardlists": []}}},
        {"container": {"json_dict": {"cardlists": [{"cardviews": []}]}}},
        {"container": {"json_dict": {"cardlists": [{"cardviews": [{"name": "No URL"}]}]}}},
    ])
    def test_missing_commander_data_is_parse_error(self, make_scraper, payload):
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=payload))

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_top_commanders()

        assert exc_info.value.kind == ScrapeErrorKind.PARSE

    @pytest.mark.parametrize("payload", MALFORMED_PAYLOADS)
    def test_wrong_structure_is_parse_error(self, make_scraper, payload):
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=payload))

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_top_commanders()

        assert exc_info.value.kind == ScrapeErrorKind.PARSE

    def test_non_string_fields_are_skipped(self, make_scraper):
        payload = {"container": {"json_dict": {"cardlists": [{"cardviews": [
            {"name": 42, "url": "/commanders/answer"},
            {"name": "Atraxa", "url": ["/commanders/atraxa"]},
            {"name": "Edgar Markov", "url": "/commanders/edgar-markov", "rank": "first"},
        ]}]}}}
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=payload))

        commanders = scraper.fetch_top_commanders()

        assert commanders == [{
            "name": "Edgar Markov",
            "rank": 3,
            "url": "https://edhrec.com/commanders/edgar-markov",
        }]

    def test_invalid_json_is_parse_error(self, make_scraper):
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, content=b"<html>"))

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_top_commanders()

        assert exc_info.value.kind == ScrapeErrorKind.PARSE

    def test_server_error_is_fetch_error(self, make_scraper):
        scraper, _, _ = make_scraper(lambda r: httpx.Response(500))

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_top_commanders()

        assert exc_info.value.kind == ScrapeErrorKind.FETCH
        assert exc_info.value.url.endswith("/week.json")

    @pytest.mark.parametrize("error", [httpx.ConnectError, httpx.ReadTimeout])
    def test_transport_failures_are_fetch_errors(self, make_scraper, error):
        def handler(request):
            raise error("boom", request=request)

        scraper, _, _ = make_scraper(handler)

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_top_commanders()

        assert exc_info.value.kind == ScrapeErrorKind.FETCH

    def test_rate_limit_is_not_retried(self, make_scraper):
        scraper, requests, sleeps = make_scraper(lambda r: httpx.Response(429))

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_top_commanders()

        assert exc_info.value.kind == ScrapeErrorKind.RATE_LIMIT
        assert exc_info.value.is_rate_limit
        assert len(requests) == 1
        assert sleeps == []

    def test_requests_wait_on_edhrec_limiter(self, make_scraper, ranking_payload):
        limiter = MagicMock()
        scraper, _, _ = make_scraper(
            lambda r: httpx.Response(200, json=ranking_payload(3)),
            limiter=limiter,
        )

        scraper.fetch_top_commanders()

        limiter.throttle.assert_called_once_with("edhrec")


class TestFetchCommanderDecklist:
    """Decklist parsing, size window and 429 backoff."""

    URL = "https://edhrec.com/commanders/atraxa-praetors-voice"

    def test_parses_cards_with_categories(self, make_scraper, decklist_payload):
        resolver = _resolver()
        scraper, requests, _ = make_scraper(
            lambda r: httpx.Response(200, json=decklist_payload(80, commander="Atraxa")),
            resolver=resolver,
        )

        cards = scraper.fetch_commander_decklist(self.URL)

        assert str(requests[0].url) == "https://json.edhrec.com/pages/commanders/atraxa-praetors-voice.json"
        assert len(cards) == 80
        assert cards[0] == {
            "name": "Atraxa",
            "category": "commanders",
            "is_commander": True,
            "scryfall_id": "id-Atraxa",
            "scryfall_uri": "https://scryfall.com/card/Atraxa",
        }
        assert sum(card["is_commander"] for card in cards) == 1
        assert {card["category"] for card in cards} == {"commanders", "creatures", "lands"}
        resolver.resolve_cards.assert_called_once()

    def test_unresolved_names_keep_null_ids(self, make_scraper, decklist_payload):
        resolver = MagicMock()
        resolver.resolve_cards.return_value = {}
        scraper, _, _ = make_scraper(
            lambda r: httpx.Response(200, json=decklist_payload(80)),
            resolver=resolver,
        )

        cards = scraper.fetch_commander_decklist(self.URL)

        assert all(card["scryfall_id"] is None and card["scryfall_uri"] is None for card in cards)

    def test_missing_tag_is_unknown_category(self, make_scraper):
        payload = {"container": {"json_dict": {"cardlists": [
            {"cardviews": [{"name": f"Card {i}"} for i in range(80)]},
        ]}}}
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=payload))

        cards = scraper.fetch_commander_decklist(self.URL)

        assert {card["category"] for card in cards} == {"Unknown"}
        assert not any(card["is_commander"] for card in cards)

    @pytest.mark.parametrize("count", [75, 100])
    def test_size_window_bounds_accepted(self, make_scraper, decklist_payload, count):
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=decklist_payload(count)))

        assert len(scraper.fetch_commander_decklist(self.URL)) == count

    @pytest.mark.parametrize("count", [74, 101])
    def test_size_outside_window_is_parse_error(self, make_scraper, decklist_payload, count):
        resolver = _resolver()
        scraper, _, _ = make_scraper(
            lambda r: httpx.Response(200, json=decklist_payload(count)),
            resolver=resolver,
        )

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_commander_decklist(self.URL)

        assert exc_info.value.kind == ScrapeErrorKind.PARSE
        assert str(count) in str(exc_info.value)
        resolver.resolve_cards.assert_not_called()

    def test_no_cardlists_is_parse_error(self, make_scraper):
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json={"container": {}}))

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_commander_decklist(self.URL)

        assert exc_info.value.kind == ScrapeErrorKind.PARSE

    @pytest.mark.parametrize("payload", MALFORMED_PAYLOADS)
    def test_wrong_structure_is_parse_error(self, make_scraper, payload):
        resolver = _resolver()
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=payload), resolver=resolver)

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_commander_decklist(self.URL)

        assert exc_info.value.kind == ScrapeErrorKind.PARSE
        resolver.resolve_cards.assert_not_called()

    def test_non_string_tag_is_unknown_category(self, make_scraper):
        payload = {"container": {"json_dict": {"cardlists": [
            {"tag": ["commanders"], "cardviews": [{"name": f"Card {i}"} for i in range(80)]},
        ]}}}
        scraper, _, _ = make_scraper(lambda r: httpx.Response(200, json=payload))

        cards = scraper.fetch_commander_decklist(self.URL)

        assert {card["category"] for card in cards} == {"Unknown"}

    def test_rate_limit_retried_with_exponential_backoff(self, make_scraper, decklist_payload):
        responses = iter([
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(429),
            httpx.Response(200, json=decklist_payload(80)),
        ])
        scraper, requests, sleeps = make_scraper(lambda r: next(responses))

        cards = scraper.fetch_commander_decklist(self.URL)

        assert len(cards) == 80
        assert len(requests) == 4
        assert sleeps == [2.0, 4.0, 8.0]

    def test_rate_limit_exhausts_retries(self, make_scraper):
        scraper, requests, sleeps = make_scraper(lambda r: httpx.Response(429))

        with pytest.raises(ScrapeError) as exc_info:
            scraper.fetch_commander_decklist(self.URL)

        assert exc_info.value.kind == ScrapeErrorKind.RATE_LIMIT
        assert len(requests) == 4
        assert sleeps == [2.0, 4.0, 8.0]

    def test_every_attempt_waits_on_limiter(self, make_scraper, decklist_payload):
        limiter = MagicMock()
        responses = iter([httpx.Response(429), httpx.Response(200, json=decklist_payload(80))])
        scraper, _, _ = make_scraper(lambda r: next(responses), limiter=limiter)

        scraper.fetch_commander_decklist(self.URL)

        assert limiter.throttle.call_count == 2
