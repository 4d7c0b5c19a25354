from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator


# =========================
# Time helpers
# =========================
def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =========================
# Database class
# =========================
class DB:
    """
    Single source of truth for SQLite access.
    Default path: data/alertbot.db
    """

    def __init__(self, path: str = "data/alertbot.db"):
        self.path = path

        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)

        self._init()

    # -------------------------
    # Connection manager
    # -------------------------
    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    # -------------------------
    # Init / migrations
    # -------------------------
    def _init(self) -> None:
        conn = sqlite3.connect(self.path, timeout=30)
        try:
            # =========================
            # Positions (one row per bot/symbol lifecycle)
            # =========================
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS positions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    bot_name TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    fills_count INTEGER NOT NULL,
                    avg_entry_price REAL NOT NULL,
                    amount_usd REAL NOT NULL,
                    realized_pnl REAL NOT NULL DEFAULT 0,
                    is_open INTEGER NOT NULL,
                    opened_at TEXT NOT NULL,
                    closed_at TEXT,
                    close_price REAL,
                    updated_at TEXT NOT NULL
                )
                """
            )

            # =========================
            # Fills (buys and sells applied to a position)
            # =========================
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS position_fills (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    position_id INTEGER NOT NULL,
                    action TEXT NOT NULL,               -- OPEN/ADD/REDUCE/CLOSE
                    price REAL NOT NULL,
                    usd REAL NOT NULL,
                    timestamp_utc TEXT NOT NULL,
                    FOREIGN KEY(position_id) REFERENCES positions(id)
                )
                """
            )

            # =========================
            # Events (audit log)
            # =========================
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp_utc TEXT NOT NULL,
                    alert_id TEXT,
                    bot_name TEXT,
                    symbol TEXT,
                    event_type TEXT NOT NULL,
                    action TEXT,
                    details_json TEXT
                )
                """
            )

            # =========================
            # Indexes
            # =========================
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_positions_open ON positions(bot_name, symbol, is_open)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_time ON events(timestamp_utc)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_alert ON events(alert_id)"
            )

            conn.commit()

        finally:
            conn.close()
