"""Tests for the mtg-ingest command line entry point."""
import json
from unittest.mock import patch

import pytest

from mtg_ingest.scripts.run_job import build_parser, main


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("mtg_ingest.scripts.run_job.setup_logging"):
        yield


def _output(capsys):
    return json.loads(capsys.readouterr().out)


class TestParser:
    def test_scrape_decklist_arguments(self):
        args = build_parser().parse_args(["scrape-decklist", "42", "--execution-id", "7"])

        assert args.commander_id == 42
        assert args.execution_id == 7

    def test_dlq_defaults(self):
        args = build_parser().parse_args(["dlq", "list"])

        assert args.action == "list"
        assert args.index == 0
        assert args.limit == 100

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    def test_discover_prints_summary(self, capsys):
        with patch("mtg_ingest.tasks.commanders.run_discovery", return_value={"execution_id": 3}) as run:
            assert main(["discover"]) == 0

        run.assert_called_once_with()
        assert _output(capsys) == {"execution_id": 3}

    def test_scrape_decklist_not_found_exits_nonzero(self, capsys):
        result = {"commander_id": 9, "status": "not_found", "cards_count": 0}
        with patch("mtg_ingest.tasks.commanders.run_decklist_scrape", return_value=result) as run:
            assert main(["scrape-decklist", "9"]) == 1

        run.assert_called_once_with(9, execution_id=None)
        assert _output(capsys)["status"] == "not_found"

    def test_update_prices(self, capsys):
        with patch("mtg_ingest.tasks.pricing.run_price_update", return_value={"mode": "batch"}) as run:
            assert main(["update-prices"]) == 0

        run.assert_called_once_with()
        assert _output(capsys) == {"mode": "batch"}

    def test_update_card(self, capsys):
        summary = {"mode": "single", "card_id": "abc", "stored": True}
        with patch("mtg_ingest.tasks.pricing.run_price_update", return_value=summary) as run:
            assert main(["update-card", "abc"]) == 0

        run.assert_called_once_with("abc")

    def test_job_failure_returns_one(self):
        with patch("mtg_ingest.tasks.pricing.run_price_update", side_effect=RuntimeError("boom")):
            assert main(["update-prices"]) == 1

    def test_dlq_list(self, capsys):
        with patch("mtg_ingest.tasks.error_handlers.get_dlq_count", return_value=1), \
                patch("mtg_ingest.tasks.error_handlers.get_dlq_entries", return_value=[{"task_id": "t"}]) as entries:
            assert main(["dlq", "list", "--limit", "5"]) == 0

        entries.assert_called_once_with(limit=5)
        assert _output(capsys) == {"count": 1, "entries": [{"task_id": "t"}]}

    def test_dlq_retry_missing_entry(self, capsys):
        with patch("mtg_ingest.tasks.error_handlers.retry_dlq_entry", return_value=False):
            assert main(["dlq", "retry", "4"]) == 1

        assert _output(capsys) == {"retried": False, "index": 4}

    def test_dlq_clear(self, capsys):
        with patch("mtg_ingest.tasks.error_handlers.clear_dlq", return_value=2):
            assert main(["dlq", "clear"]) == 0

        assert _output(capsys) == {"removed": 2}
