from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN


@dataclass(frozen=True)
class SymbolFilters:
    symbol: str
    step_size: Decimal
    min_qty: Decimal
    tick_size: Decimal
    min_notional: Decimal = Decimal("0")


def _get_filter(symbol_info: dict, filter_type: str) -> dict | None:
    for f in symbol_info.get("filters", []):
        if f.get("filterType") == filter_type:
            return f
    return None


def extract_filters(exchange_info: dict, symbol: str) -> SymbolFilters:
    symbol = symbol.upper()

    for s in exchange_info.get("symbols", []):
        if s.get("symbol") != symbol:
            continue

        # MARKET_LOT_SIZE applies to market orders when present, LOT_SIZE otherwise
        lot = _get_filter(s, "MARKET_LOT_SIZE") or _get_filter(s, "LOT_SIZE")
        if not lot:
            raise ValueError(f"LOT_SIZE filter not found for {symbol}")

        price_filter = _get_filter(s, "PRICE_FILTER")
        if not price_filter:
            raise ValueError(f"PRICE_FILTER not found for {symbol}")

        notional = _get_filter(s, "MIN_NOTIONAL") or {}

        return SymbolFilters(
            symbol=symbol,
            step_size=Decimal(lot["stepSize"]),
            min_qty=Decimal(lot["minQty"]),
            tick_size=Decimal(price_filter["tickSize"]),
            min_notional=Decimal(str(notional.get("notional", "0"))),
        )

    raise ValueError(f"Symbol not found in exchangeInfo: {symbol}")


def _to_decimal(x) -> Decimal:
    return x if isinstance(x, Decimal) else Decimal(str(x))


def round_qty(qty: float, step_size) -> Decimal:
    """
    Round quantity DOWN to nearest valid stepSize.
    step_size can be Decimal or float/string.
    """
    q = Decimal(str(qty))
    step = _to_decimal(step_size)
    return (q / step).to_integral_value(rounding=ROUND_DOWN) * step

