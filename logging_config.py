# logging_config.py

import logging
import sqlite3
import sys
from datetime import datetime, timezone
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_ENTRIES = 10000

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL,
        logger TEXT NOT NULL,
        level TEXT NOT NULL,
        message TEXT NOT NULL,
        exception TEXT
    )
"""


class SQLiteHandler(logging.Handler):
    """
    Keeps the newest `max_entries` records in a `logs` table.

    Records arrive from the event loop and from sync worker threads; one
    connection is shared and Handler.handle() serializes access to it.
    """

    def __init__(self, db_path: str, max_entries: int = MAX_LOG_ENTRIES):
        super().__init__()
        self.db_path = db_path
        self.max_entries = max_entries
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        with self._conn:
            self._conn.execute(_SCHEMA)

    def emit(self, record: logging.LogRecord):
        try:
            exception = None
            if record.exc_info:
                exception = logging.Formatter().formatException(record.exc_info)
            with self._conn:
                cursor = self._conn.execute(
                    "INSERT INTO logs (created, logger, level, message, exception) VALUES (?, ?, ?, ?, ?)",
                    (
                        datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                        record.name,
                        record.levelname,
                        record.getMessage(),
                        exception,
                    ),
                )
                self._conn.execute("DELETE FROM logs WHERE id <= ?", (cursor.lastrowid - self.max_entries,))
        except Exception:
            self.handleError(record)

    def close(self):
        self.acquire()
        try:
            self._conn.close()
        finally:
            self.release()
        super().close()


def setup_logging(debug: bool = False, log_db_path: Optional[str] = None, max_entries: int = MAX_LOG_ENTRIES):
    """
    Configure the root logger: console output, plus a SQLite table of the
    newest records when log_db_path is set. Calling it again replaces the
    handlers installed by a previous call.
    """
    root = logging.getLogger()
    level = logging.DEBUG if debug else logging.INFO
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_pullhook", False):
            root.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_db_path:
        handlers.append(SQLiteHandler(log_db_path, max_entries))
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler._pullhook = True
        root.addHandler(handler)

    # watchdog is chatty at DEBUG level
    logging.getLogger("watchdog").setLevel(logging.INFO)
    return root
