"""Tests for logging setup."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from logging_config import SQLiteHandler, setup_logging


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def _rows(db_path: Path) -> list[tuple[str, str]]:
    with sqlite3.connect(db_path) as conn:
        return conn.execute("SELECT level, message FROM logs ORDER BY id").fetchall()


class TestSQLiteHandler:
    def test_keeps_newest_entries(self, tmp_path: Path) -> None:
        db_path = tmp_path / "logs.db"
        logger = logging.getLogger("pullhook.test.sqlite")
        logger.propagate = False
        handler = SQLiteHandler(str(db_path), max_entries=3)
        logger.addHandler(handler)
        try:
            for i in range(5):
                logger.warning("message %d", i)
        finally:
            logger.removeHandler(handler)
            handler.close()

        assert _rows(db_path) == [("WARNING", "message 2"), ("WARNING", "message 3"), ("WARNING", "message 4")]


class TestSetupLogging:
    def test_repeated_setup_does_not_duplicate_handlers(self, restore_root_logger: None, tmp_path: Path) -> None:
        setup_logging(debug=True, log_db_path=str(tmp_path / "logs.db"))
        root = setup_logging(debug=False)
        owned = [h for h in root.handlers if getattr(h, "_pullhook", False)]
        assert len(owned) == 1
        assert root.level == logging.INFO
