from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from alertbot.persistence.db import utc_now_iso

log = logging.getLogger("alertbot.exchange.paper")


@dataclass
class PaperOrder:
    symbol: str
    side: str
    size: float
    client_order_id: str
    kind: str = "MARKET"
    timestamp_utc: str = field(default_factory=utc_now_iso)


class PaperExchange:
    """
    Dry-run exchange: same port as the live client, fills everything
    instantly and keeps net token positions in memory.
    """

    def __init__(self, allowed_symbols: Iterable[str] = ()):
        self.allowed_symbols = {s.upper() for s in allowed_symbols}
        self.orders: List[PaperOrder] = []
        self.positions: Dict[str, float] = {}
        self.leverage: Dict[str, int] = {}
        self._lock = threading.Lock()

    def is_allowed(self, symbol_id: str) -> bool:
        return not self.allowed_symbols or symbol_id.upper() in self.allowed_symbols

    def ensure_leverage(self, symbol_id: str, leverage: int) -> dict:
        self.leverage[symbol_id.upper()] = int(leverage)
        return {"symbol": symbol_id.upper(), "leverage": int(leverage)}

    def calc_size_from_usd(self, symbol_id: str, price: float, usd: float) -> float:
        lev = self.leverage.get(symbol_id.upper(), 1)
        return round(float(usd) * lev / float(price), 8)

    def place_market(self, symbol_id: str, side: str, size: str, client_order_id: str) -> dict:
        sym = symbol_id.upper()
        qty = float(size)
        signed_qty = qty if side.lower() == "buy" else -qty
        with self._lock:
            self.orders.append(PaperOrder(sym, side.upper(), qty, client_order_id))
            self.positions[sym] = round(self.positions.get(sym, 0.0) + signed_qty, 12)
        log.info("[PAPER] %s %s %s (%s)", side.upper(), qty, sym, client_order_id)
        return {"status": "FILLED", "symbol": sym, "side": side.upper(), "qty": qty}

    def flash_close(self, symbol: str, side: str) -> dict:
        sym = symbol.upper()
        with self._lock:
            amt = self.positions.pop(sym, 0.0)
            if amt:
                close_side = "SELL" if amt > 0 else "BUY"
                self.orders.append(PaperOrder(sym, close_side, abs(amt), f"flash-{sym}", kind="CLOSE"))
        log.info("[PAPER] flash close %s %s (%s)", side, sym, amt)
        return {"status": "CLOSED" if amt else "no_position", "symbol": sym, "qty": abs(amt)}
