from __future__ import annotations

import logging
import random
import time
from typing import Dict, Iterable

import requests

from alertbot.core.errors import ConfigurationError, ExchangeError
from alertbot.exchange.binance.filters import extract_filters, round_qty
from alertbot.exchange.binance.signing import signed_query
from alertbot.symbols.universe import tradable_symbols

log = logging.getLogger("alertbot.exchange.binance")

# Binance: newClientOrderId must match ^[.A-Z:/a-z0-9_-]{1,36}$
_CLIENT_ORDER_ID_MAX = 36


class BinanceFuturesClient:
    """
    USDT-M futures adapter for the strategy's exchange port
    (is_allowed / ensure_leverage / calc_size_from_usd / place_market / flash_close).
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        recv_window: int = 5000,
        *,
        allowed_symbols: Iterable[str] = (),
        min_notional_usdt: float = 0.0,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.recv_window = recv_window
        self.allowed_symbols = {s.upper() for s in allowed_symbols}
        self.min_notional_usdt = float(min_notional_usdt)

        self._exchange_info_cache: dict | None = None
        self._exchange_info_cache_ts: float = 0.0
        self._time_offset_ms: int = 0
        # symbol -> leverage confirmed by the exchange
        self._leverage: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # request helper: retries 418/429/5xx/timeouts, resyncs clock on -1021
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        params=None,
        *,
        signed: bool = False,
        max_retries: int = 6,
    ):
        params = dict(params or {})
        headers = {}
        if signed:
            if not self.api_key or not self.api_secret:
                raise ExchangeError("Missing BINANCE_API_KEY or BINANCE_API_SECRET in .env")
            headers["X-MBX-APIKEY"] = self.api_key

        last_err = None
        for attempt in range(max_retries + 1):
            url = f"{self.base_url}{path}"
            if signed:
                params["timestamp"] = int(time.time() * 1000) + int(self._time_offset_ms)
                params["recvWindow"] = self.recv_window
                url = f"{url}?{signed_query(self.api_secret, params)}"
                query = None
            else:
                query = params

            try:
                r = requests.request(method, url, params=query, headers=headers, timeout=15)

                # Rate limit / temp ban
                if r.status_code in (418, 429):
                    ra = r.headers.get("Retry-After")
                    sleep_s = float(ra) if ra else (0.4 * (2**attempt))
                    sleep_s += random.uniform(0, 0.2)
                    time.sleep(min(sleep_s, 10.0))
                    last_err = f"HTTP {r.status_code}"
                    continue

                # Timestamp drift
                if r.status_code == 400 and "timestamp" in r.text.lower():
                    self.sync_time()
                    last_err = r.text
                    continue

                # Server errors
                if r.status_code >= 500:
                    time.sleep(min(0.4 * (2**attempt), 8.0))
                    last_err = f"HTTP {r.status_code}"
                    continue

                if r.status_code >= 400:
                    # client errors are not retried
                    raise ExchangeError(f"Binance HTTP {r.status_code}: {r.text}")
                return r.json() if r.content else None

            except (requests.Timeout, requests.ConnectionError) as e:
                last_err = e
                time.sleep(min(0.4 * (2**attempt), 8.0))
                continue

        raise ExchangeError(
            f"Binance request failed after retries: {method} {path} ({last_err})"
        )

    # ---------------- TIME SYNC ----------------

    def sync_time(self) -> int:
        """
        Computes and stores local->server time offset.
        Positive offset means local clock is behind server.
        """
        local_ms = int(time.time() * 1000)
        data = self._request("GET", "/fapi/v1/time", max_retries=1)
        self._time_offset_ms = int(data["serverTime"]) - local_ms
        return self._time_offset_ms

    # ---------------- PUBLIC ----------------

    def exchange_info(self) -> dict:
        return self._request("GET", "/fapi/v1/exchangeInfo")

    def exchange_info_cached(self, ttl_seconds: int = 300) -> dict:
        now = time.time()
        if (
            self._exchange_info_cache
            and (now - self._exchange_info_cache_ts) < ttl_seconds
        ):
            return self._exchange_info_cache

        data = self.exchange_info()
        self._exchange_info_cache = data
        self._exchange_info_cache_ts = now
        return data

    # ---------------- EXCHANGE PORT ----------------

    def is_allowed(self, symbol_id: str) -> bool:
        sym = symbol_id.upper()
        if self.allowed_symbols and sym not in self.allowed_symbols:
            return False
        return sym in tradable_symbols(self.exchange_info_cached())

    def ensure_leverage(self, symbol_id: str, leverage: int) -> dict:
        sym = symbol_id.upper()
        lev = int(leverage)
        if self._leverage.get(sym) == lev:
            return {"symbol": sym, "leverage": lev, "cached": True}
        res = self._request(
            "POST", "/fapi/v1/leverage", {"symbol": sym, "leverage": lev}, signed=True
        )
        self._leverage[sym] = int((res or {}).get("leverage", lev))
        log.info("leverage %s -> %s", sym, self._leverage[sym])
        return res

    def calc_size_from_usd(self, symbol_id: str, price: float, usd: float) -> float:
        """
        usd is the MARGIN to commit; notional = usd * leverage.
        Quantity is floored to the symbol's step size.
        """
        sym = symbol_id.upper()
        flt = extract_filters(self.exchange_info_cached(), sym)
        lev = self._leverage.get(sym, 1)

        notional_target = float(usd) * float(lev)
        qty = round_qty(notional_target / float(price), flt.step_size)
        notional = float(qty) * float(price)
        min_notional = max(float(flt.min_notional), self.min_notional_usdt)

        if qty <= 0 or qty < flt.min_qty:
            raise ConfigurationError(
                f"{sym}: ${usd} x{lev} is below min qty {flt.min_qty} at {price}"
            )
        if min_notional > 0 and notional < min_notional:
            raise ConfigurationError(
                f"{sym}: notional {notional:.2f} is below min notional {min_notional:.2f}"
            )
        return float(qty)

    def place_market(self, symbol_id: str, side: str, size: str, client_order_id: str) -> dict:
        params = {
            "symbol": symbol_id.upper(),
            "side": side.upper(),
            "type": "MARKET",
            "quantity": size,
            "newClientOrderId": client_order_id[-_CLIENT_ORDER_ID_MAX:],
        }
        if side.upper() == "SELL":
            # strategy only sells out of its long
            params["reduceOnly"] = "true"
        return self._request("POST", "/fapi/v1/order", params, signed=True)

    def flash_close(self, symbol: str, side: str) -> dict:
        sym = symbol.upper()
        amt = self.get_position_amt(sym)

        if side.lower() == "long":
            if amt <= 1e-12:
                return {"status": "no_position", "symbol": sym}
            order_side = "SELL"
        else:
            if amt >= -1e-12:
                return {"status": "no_position", "symbol": sym}
            order_side = "BUY"

        return self._request(
            "POST",
            "/fapi/v1/order",
            {
                "symbol": sym,
                "side": order_side,
                "type": "MARKET",
                "quantity": abs(amt),
                "reduceOnly": "true",
            },
            signed=True,
        )

    # ---------------- ACCOUNT ----------------

    def position_risk(self, symbol: str | None = None) -> list:
        params = {}
        if symbol:
            params["symbol"] = symbol.upper()
        data = self._request("GET", "/fapi/v2/positionRisk", params, signed=True)
        return data if isinstance(data, list) else []

    def get_position_amt(self, symbol: str) -> float:
        # pick the entry with the largest absolute positionAmt
        best = 0.0
        for p in self.position_risk(symbol):
            try:
                amt = float(p.get("positionAmt", "0") or "0")
            except (TypeError, ValueError):
                amt = 0.0
            if abs(amt) > abs(best):
                best = amt
        return best
