# alertbot/persistence/positions.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import List, Optional

from alertbot.persistence.db import DB, utc_now_iso


@dataclass
class Position:
    id: int
    bot_name: str
    symbol: str
    fills_count: int
    avg_entry_price: float
    amount_usd: float  # open notional at entry prices
    is_open: bool
    realized_pnl: float = 0.0
    opened_at: str = ""
    closed_at: Optional[str] = None


@dataclass
class PnLSnapshot:
    total_size: float  # tokens
    avg_entry_price: float
    current_price: float
    pnl: float
    pnl_percent: float


def _row_to_position(r) -> Position:
    return Position(
        id=int(r["id"]),
        bot_name=r["bot_name"],
        symbol=r["symbol"],
        fills_count=int(r["fills_count"]),
        avg_entry_price=float(r["avg_entry_price"]),
        amount_usd=float(r["amount_usd"]),
        is_open=bool(r["is_open"]),
        realized_pnl=float(r["realized_pnl"] or 0.0),
        opened_at=r["opened_at"],
        closed_at=r["closed_at"],
    )


class PositionsStore:
    """
    Long-only position book per (bot, symbol), backed by SQLite.

    Amounts are tracked as USD notional at entry; token size is derived
    as amount_usd / avg_entry_price.
    """

    def __init__(self, db: DB):
        self.db = db

    # ---------- READ ----------
    def get(self, position_id: int) -> Optional[Position]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM positions WHERE id = ?", (int(position_id),)
            ).fetchone()
        return _row_to_position(row) if row else None

    def find_open(self, bot: str, symbol: str) -> Optional[Position]:
        with self.db.connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM positions
                WHERE bot_name = ? AND symbol = ? AND is_open = 1
                ORDER BY id DESC LIMIT 1
                """,
                (bot, symbol),
            ).fetchone()
        return _row_to_position(row) if row else None

    def list_open(self) -> List[Position]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM positions WHERE is_open = 1 ORDER BY id"
            ).fetchall()
        return [_row_to_position(r) for r in rows]

    # ---------- WRITE ----------
    def open(self, bot: str, symbol: str, price: str, usd: str) -> Position:
        px = float(price)
        amount = float(usd)
        now = utc_now_iso()

        with self.db.connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO positions(
                    bot_name, symbol, fills_count, avg_entry_price, amount_usd,
                    realized_pnl, is_open, opened_at, updated_at
                )
                VALUES (?,?,?,?,?,?,?,?,?)
                """,
                (bot, symbol, 1, px, amount, 0.0, 1, now, now),
            )
            position_id = int(cur.lastrowid)
            self._record_fill(conn, position_id, "OPEN", px, amount)

        return self.get(position_id)

    def add(self, position: Position, price: str, usd: str) -> Position:
        px = float(price)
        amount = float(usd)

        tokens = position.amount_usd / position.avg_entry_price + amount / px
        new_amount = position.amount_usd + amount
        new_avg = new_amount / tokens

        with self.db.connect() as conn:
            conn.execute(
                """
                UPDATE positions
                SET fills_count = fills_count + 1, avg_entry_price = ?, amount_usd = ?, updated_at = ?
                WHERE id = ?
                """,
                (new_avg, new_amount, utc_now_iso(), position.id),
            )
            self._record_fill(conn, position.id, "ADD", px, amount)

        return self.get(position.id)

    def reduce(self, position: Position, price: str, usd: float) -> Position:
        """Take `usd` of entry notional off the position, realizing its PnL."""
        px = float(price)
        amount = min(float(usd), position.amount_usd)
        tokens = amount / position.avg_entry_price
        realized = tokens * px - amount

        with self.db.connect() as conn:
            conn.execute(
                """
                UPDATE positions
                SET amount_usd = amount_usd - ?, realized_pnl = realized_pnl + ?, updated_at = ?
                WHERE id = ?
                """,
                (amount, realized, utc_now_iso(), position.id),
            )
            self._record_fill(conn, position.id, "REDUCE", px, amount)

        return self.get(position.id)

    def close(self, position: Position, price: str) -> Position:
        px = float(price)
        snap = self.calculate_pnl(position, px)
        now = utc_now_iso()

        with self.db.connect() as conn:
            conn.execute(
                """
                UPDATE positions
                SET is_open = 0, closed_at = ?, close_price = ?,
                    realized_pnl = realized_pnl + ?, updated_at = ?
                WHERE id = ?
                """,
                (now, px, snap.pnl, now, position.id),
            )
            self._record_fill(conn, position.id, "CLOSE", px, position.amount_usd)

        return self.get(position.id)

    # ---------- PNL ----------
    def calculate_pnl(self, position: Position, price: float) -> PnLSnapshot:
        px = float(price)
        avg = float(position.avg_entry_price)
        amount = float(position.amount_usd)
        size = amount / avg if avg > 0 else 0.0
        pnl = size * px - amount
        pct = (pnl / amount * 100.0) if amount > 0 else 0.0
        return PnLSnapshot(
            total_size=size,
            avg_entry_price=avg,
            current_price=px,
            pnl=pnl,
            pnl_percent=pct,
        )

    def get_position_info(self, position: Position, price: float) -> dict:
        return {
            "position": asdict(position),
            "pnl": self.calculate_pnl(position, price),
        }

    def _record_fill(self, conn, position_id: int, action: str, price: float, usd: float) -> None:
        conn.execute(
            """
            INSERT INTO position_fills(position_id, action, price, usd, timestamp_utc)
            VALUES (?,?,?,?,?)
            """,
            (int(position_id), action, float(price), float(usd), utc_now_iso()),
        )
