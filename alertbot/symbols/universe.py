from __future__ import annotations

from typing import Set

# TradingView decorations around a futures ticker
_PREFIX_SEP = ":"
_SUFFIXES = (".P", ".PERP", "PERP")


def to_exchange_symbol(symbol: str) -> str:
    """
    Normalize an alert symbol to an exchange symbol id:
      "BINANCE:BTCUSDT.P" -> "BTCUSDT"
      "btcusdt"           -> "BTCUSDT"
      "BTC/USDT"          -> "BTCUSDT"
    """
    s = (symbol or "").strip().upper()
    if _PREFIX_SEP in s:
        s = s.split(_PREFIX_SEP, 1)[1]
    for suffix in _SUFFIXES:
        if s.endswith(suffix) and len(s) > len(suffix):
            s = s[: -len(suffix)]
            break
    return s.replace("/", "").replace("-", "")


def base_asset(symbol: str) -> str:
    s = to_exchange_symbol(symbol)
    for quote in ("USDT", "USDC", "BUSD"):
        if s.endswith(quote) and len(s) > len(quote):
            return s[: -len(quote)]
    return s


def tradable_symbols(exchange_info: dict) -> Set[str]:
    # Binance exchangeInfo structure: {"symbols": [{"symbol": "...", "status":"TRADING", ...}, ...]}
    info_symbols = exchange_info.get("symbols", [])
    return {s["symbol"] for s in info_symbols if s.get("status") == "TRADING"}
