"""Unit tests for the swap maintenance CLI -- storyswap.cli.swaps."""

from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timezone

import pytest

from storyswap.cli.swaps import _build_parser, _parse_timestamp, main
from storyswap.providers.swap.sqlite_swap_provider import SQLiteSwapProvider
from tests.conftest import make_swap


@pytest.fixture
def cli_env(tmp_db, tmp_path, monkeypatch):
    """Point Settings at the temporary database and an absent rules file."""
    monkeypatch.setenv("DB_PATH", tmp_db)
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "missing.yaml"))
    return tmp_db


# ======================================================================
# Argument parsing
# ======================================================================


class TestParseTimestamp:
    def test_aware_timestamp_kept(self):
        parsed = _parse_timestamp("2025-06-15T12:00:00+02:00")
        assert parsed.utcoffset().total_seconds() == 7200

    def test_naive_timestamp_is_utc(self):
        parsed = _parse_timestamp("2025-06-15T12:00:00")
        assert parsed == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

    def test_garbage_rejected(self):
        with pytest.raises(argparse.ArgumentTypeError):
            _parse_timestamp("yesterday")


class TestParser:
    def test_reap_defaults(self):
        args = _build_parser().parse_args(["reap"])
        assert args.command == "reap"
        assert args.now is None

    def test_reap_with_cutoff(self):
        args = _build_parser().parse_args(["reap", "--now", "2025-06-16T00:00:00Z"])
        assert args.now == datetime(2025, 6, 16, tzinfo=timezone.utc)

    def test_stats_timeframe_choices(self):
        assert _build_parser().parse_args(["stats"]).timeframe == "7d"
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["stats", "--timeframe", "1y"])


# ======================================================================
# Commands
# ======================================================================


class TestMain:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1
        assert "reap" in capsys.readouterr().out

    def test_reap_expires_overdue_swaps(self, cli_env, capsys):
        async def seed():
            store = SQLiteSwapProvider(db_path=cli_env)
            await store.initialize()
            await store.insert_swap(make_swap())

        asyncio.run(seed())

        with pytest.raises(SystemExit) as exc_info:
            main(["reap", "--now", "2025-06-20T00:00:00+00:00"])

        assert exc_info.value.code == 0
        assert "Expired swaps: 1" in capsys.readouterr().out

    def test_reap_on_empty_database(self, cli_env, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["reap"])
        assert exc_info.value.code == 0
        assert "Expired swaps: 0" in capsys.readouterr().out

    def test_stats(self, cli_env, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["stats", "--timeframe", "30d"])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "Swap Statistics (30d)" in out
        assert "Total:         0" in out
