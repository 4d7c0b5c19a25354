from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from alertbot.core.config import _parse_list
from alertbot.symbols.universe import to_exchange_symbol

DOMINATION = "domination"
PARTIAL_CLOSE = "smartvol-partial-close"


class BotConfig(BaseModel):
    """
    One bot entry from BOTS_CONFIG. Accepts snake_case or the camelCase
    keys used by the alert templates (symbolFilter, maxFills, baseUsd, addUsd).

    base_usd / add_usd are kept raw: a bad value must only abort the
    transition that needs it, not the whole registry.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str
    symbol_filter: List[str] = Field(default_factory=list, alias="symbolFilter")
    strategy: str = PARTIAL_CLOSE
    max_fills: Optional[int] = Field(default=None, alias="maxFills")
    leverage: Optional[int] = None
    base_usd: Any = Field(default=None, alias="baseUsd")
    add_usd: Any = Field(default=None, alias="addUsd")
    enabled: bool = True
    # own exchange account; falls back to BINANCE_API_KEY / BINANCE_API_SECRET
    api_key: str = Field(default="", alias="apiKey", repr=False)
    api_secret: str = Field(default="", alias="apiSecret", repr=False)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = str(v).strip()
        if not v:
            raise ValueError("bot name must not be empty")
        return v

    @field_validator("symbol_filter", mode="before")
    @classmethod
    def _parse_filter(cls, v: Any) -> List[str]:
        return [to_exchange_symbol(s) for s in _parse_list(v)]

    @field_validator("strategy", mode="before")
    @classmethod
    def _norm_strategy(cls, v: Any) -> str:
        return str(v or PARTIAL_CLOSE).strip().lower()

    @model_validator(mode="after")
    def _credentials_in_pairs(self) -> "BotConfig":
        if bool(self.api_key) != bool(self.api_secret):
            raise ValueError(f"bot {self.name}: apiKey and apiSecret must be set together")
        return self

    def matches(self, symbol: str) -> bool:
        """Empty filter matches every symbol. Both sides compare as exchange ids."""
        return not self.symbol_filter or to_exchange_symbol(symbol) in self.symbol_filter
