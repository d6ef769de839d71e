"""CLI smoke tests against a throwaway SQLite file."""

import json
import logging
from datetime import date

import pytest
from click.testing import CliRunner

from orderflow.infrastructure import bootstrap
from orderflow.infrastructure.cli.main import cli
from orderflow.infrastructure.config import get_settings
from orderflow.infrastructure.persistence.database import session_scope
from tests.sql_seed import add_batch, add_order, create_test_database


def _clear_caches():
    get_settings.cache_clear()
    bootstrap.session_factory.cache_clear()
    bootstrap.status_resolver.cache_clear()


@pytest.fixture
def runner(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'orderflow.db'}"
    monkeypatch.setenv("ORDERFLOW_DATABASE_URL", url)
    monkeypatch.setenv("ORDERFLOW_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("ORDERFLOW_USER", "clerk")
    _clear_caches()
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level

    yield CliRunner(), url

    _clear_caches()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _seed(url):
    factory = create_test_database(url)
    with session_scope(factory) as session:
        add_order(session, "o1", [("i1", 5, "A")])
        add_batch(session, "W1", "B1", "A", 8, expiry_date=date(2025, 1, 1))


class TestCli:

    def test_db_init_is_repeatable(self, runner):
        cli_runner, _ = runner

        first = cli_runner.invoke(cli, ["db", "init"])
        second = cli_runner.invoke(cli, ["db", "init"])

        assert first.exit_code == 0, first.output
        assert "status codes added" in first.output
        assert "(0 status codes added)" in second.output

    def test_allocate_confirm_and_list(self, runner):
        cli_runner, url = runner
        _seed(url)

        allocated = cli_runner.invoke(cli, ["allocation", "allocate", "--order", "o1"])
        confirmed = cli_runner.invoke(cli, ["allocation", "confirm", "--order", "o1"])
        listed = cli_runner.invoke(cli, ["allocation", "list", "--order", "o1"])

        assert allocated.exit_code == 0, allocated.output
        assert len(json.loads(allocated.output)["allocation_ids"]) == 1
        assert json.loads(confirmed.output)["order_status"] == "ORDER_ALLOCATED"
        rows = json.loads(listed.output)["data"]
        assert [(r["batch_id"], r["status"], r["created_by"]) for r in rows] == [
            ("B1", "ALLOC_CONFIRMED", "clerk")
        ]

    def test_domain_error_becomes_click_error(self, runner):
        cli_runner, url = runner
        _seed(url)

        result = cli_runner.invoke(cli, ["allocation", "review", "--order", "o9"])

        assert result.exit_code == 1
        assert "Order o9 not found" in result.output

    def test_ship_rejects_missing_allocations(self, runner):
        cli_runner, url = runner
        _seed(url)

        result = cli_runner.invoke(cli, ["fulfillment", "ship", "--order", "o1", "--allocations", " , "])

        assert result.exit_code == 1
        assert "At least one allocation id is required" in result.output
