from __future__ import annotations

from typing import Any, Optional, Protocol

from alertbot.bots.models import BotConfig
from alertbot.persistence.positions import PnLSnapshot, Position


class ExchangePort(Protocol):
    """
    Every method is optional on a concrete adapter; the strategy skips the
    ones an adapter does not have. All of them may raise.
    """

    def is_allowed(self, symbol_id: str) -> bool: ...

    def ensure_leverage(self, symbol_id: str, leverage: int) -> Any: ...

    def calc_size_from_usd(self, symbol_id: str, price: float, usd: float) -> float: ...

    def place_market(
        self, symbol_id: str, side: str, size: str, client_order_id: str
    ) -> Any: ...

    def flash_close(self, symbol: str, side: str) -> Any: ...


class PositionsPort(Protocol):
    def find_open(self, bot: str, symbol: str) -> Optional[Position]: ...

    def open(self, bot: str, symbol: str, price: str, usd: str) -> Position: ...

    def add(self, position: Position, price: str, usd: str) -> Position: ...

    def reduce(self, position: Position, price: str, usd: float) -> Position: ...

    def close(self, position: Position, price: str) -> Position: ...

    def calculate_pnl(self, position: Position, price: float) -> PnLSnapshot: ...

    def get_position_info(self, position: Position, price: float) -> dict: ...


class BotHandle(Protocol):
    """What a strategy may touch on a bot."""

    name: str
    cfg: BotConfig
    exchange: Any

    def base_usd(self) -> float: ...

    def add_usd(self) -> float: ...

    def notify(self, text: str) -> None: ...
