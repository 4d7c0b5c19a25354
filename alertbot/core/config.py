# alertbot/core/config.py
from __future__ import annotations

import json
import logging
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger("alertbot.config")


def _parse_list(v: Any) -> List[str]:
    """
    Accepts:
      - list: ["BTCUSDT","ETHUSDT"]
      - csv:  "BTCUSDT,ETHUSDT"
      - json: '["BTCUSDT","ETHUSDT"]'
    Returns uppercase, trimmed symbols.
    """
    if v is None:
        return []
    if isinstance(v, (list, tuple, set)):
        return [str(x).strip().upper() for x in v if str(x).strip()]
    s = str(v).strip()
    if not s:
        return []
    if s.startswith("["):
        try:
            arr = json.loads(s)
            return [str(x).strip().upper() for x in arr if str(x).strip()]
        except ValueError:
            # fall back to csv parse
            pass
    return [p.strip().upper() for p in s.split(",") if p.strip()]


class Settings(BaseSettings):
    """Runtime configuration loaded from .env / environment variables."""

    # enable_decoding=False keeps pydantic-settings from json-decoding List fields itself.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        enable_decoding=False,
    )

    # --- Exchange / API ---
    BINANCE_API_KEY: str = ""
    BINANCE_API_SECRET: str = ""
    BINANCE_ENV: str = "mainnet"  # mainnet/testnet
    BINANCE_FAPI_BASE_URL: str = "https://fapi.binance.com"
    BINANCE_RECV_WINDOW: int = 5000

    # --- Execution ---
    EXECUTION_MODE: str = "paper"  # paper/live
    ALLOWED_SYMBOLS: List[str] = Field(default_factory=list)  # empty = every TRADING symbol
    MIN_NOTIONAL_USDT: float = 5.0

    # --- Strategy defaults (per-bot config may override) ---
    ENTRY_BLOCK_SECONDS: int = 3600
    DEFAULT_MAX_FILLS: int = 4
    DEFAULT_LEVERAGE: int = 5

    # --- Bots ---
    # JSON list of bot objects, or a path to a JSON file holding that list.
    BOTS_CONFIG: str = ""
    BOTS_CONFIG_PATH: str = "bots.json"

    # --- Notifications ---
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""

    # --- Persistence / logs ---
    DB_PATH: str = "data/alertbot.db"
    AUDIT_JSONL_PATH: str = "logs/alerts_audit.jsonl"
    LOG_LEVEL: str = "INFO"

    @field_validator("ALLOWED_SYMBOLS", mode="before")
    @classmethod
    def parse_allowed_symbols(cls, v: Any) -> List[str]:
        return _parse_list(v)

    def model_post_init(self, __context: Any) -> None:
        self.BINANCE_ENV = (self.BINANCE_ENV or "mainnet").lower().strip()
        self.EXECUTION_MODE = (self.EXECUTION_MODE or "paper").lower().strip()

        # Keep base URL consistent with BINANCE_ENV unless user explicitly overrides
        if self.BINANCE_ENV == "testnet":
            if self.BINANCE_FAPI_BASE_URL.strip() == "https://fapi.binance.com":
                self.BINANCE_FAPI_BASE_URL = "https://testnet.binancefuture.com"

    def validate_runtime(self) -> List[str]:
        """
        Fail-fast validation. Returns warnings (non-fatal).
        Raises ValueError for fatal misconfiguration.
        """
        errors: List[str] = []
        warnings: List[str] = []

        if self.EXECUTION_MODE not in {"paper", "live"}:
            errors.append("EXECUTION_MODE must be 'paper' or 'live'.")

        if self.BINANCE_ENV not in {"mainnet", "testnet"}:
            errors.append("BINANCE_ENV must be 'mainnet' or 'testnet'.")

        if self.EXECUTION_MODE == "live" and not (
            self.BINANCE_API_KEY and self.BINANCE_API_SECRET
        ):
            errors.append(
                "EXECUTION_MODE=live requires BINANCE_API_KEY and BINANCE_API_SECRET."
            )

        if self.ENTRY_BLOCK_SECONDS <= 0:
            errors.append("ENTRY_BLOCK_SECONDS must be > 0.")

        if self.DEFAULT_MAX_FILLS < 1:
            errors.append("DEFAULT_MAX_FILLS must be >= 1.")

        if self.DEFAULT_LEVERAGE < 1:
            errors.append("DEFAULT_LEVERAGE must be >= 1.")

        if self.MIN_NOTIONAL_USDT < 0:
            errors.append("MIN_NOTIONAL_USDT must be >= 0.")

        if not (self.TELEGRAM_BOT_TOKEN and self.TELEGRAM_CHAT_ID):
            warnings.append(
                "Telegram is not configured (TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID); "
                "notifications will only be logged."
            )

        # Safety: mismatch guard
        if (
            self.BINANCE_FAPI_BASE_URL.strip() == "https://fapi.binance.com"
            and self.BINANCE_ENV != "mainnet"
        ):
            errors.append(
                "BINANCE_ENV mismatch: base URL is mainnet but BINANCE_ENV is not 'mainnet'."
            )

        # Safety warning for real money
        if self.EXECUTION_MODE == "live" and self.BINANCE_ENV == "mainnet":
            warnings.append(
                "EXECUTION_MODE=live with BINANCE_ENV=mainnet will trade REAL money. "
                "If you meant demo/testnet, set BINANCE_ENV=testnet (recommended)."
            )

        if errors:
            msg = "Config validation failed:\n" + "\n".join([f"- {e}" for e in errors])
            raise ValueError(msg)

        for w in warnings:
            log.warning(w)
        return warnings


# Pydantic v2 + postponed annotations safety
Settings.model_rebuild()
settings = Settings()
