from decimal import Decimal

import pytest

from alertbot.core.errors import ConfigurationError
from alertbot.exchange.binance.client import BinanceFuturesClient
from alertbot.exchange.binance.filters import extract_filters, round_qty
from alertbot.symbols.universe import base_asset, to_exchange_symbol


def _is_multiple(value: float, step: float) -> bool:
    """
    Check that value is an exact multiple of step using Decimal arithmetic.
    Float math is NOT reliable for this (e.g. 1.9 / 0.1 issues).
    """
    v = Decimal(str(value))
    s = Decimal(str(step))
    return (v / s) % 1 == 0


EXCHANGE_INFO = {
    "symbols": [
        {
            "symbol": "BTCUSDT",
            "status": "TRADING",
            "filters": [
                {"filterType": "PRICE_FILTER", "tickSize": "0.10"},
                {"filterType": "LOT_SIZE", "stepSize": "0.001", "minQty": "0.001"},
                {"filterType": "MARKET_LOT_SIZE", "stepSize": "0.001", "minQty": "0.002"},
                {"filterType": "MIN_NOTIONAL", "notional": "100"},
            ],
        },
        {
            "symbol": "DOGEUSDT",
            "status": "TRADING",
            "filters": [
                {"filterType": "PRICE_FILTER", "tickSize": "0.00001"},
                {"filterType": "LOT_SIZE", "stepSize": "1", "minQty": "1"},
            ],
        },
        {"symbol": "OLDUSDT", "status": "SETTLING", "filters": []},
    ]
}


@pytest.mark.parametrize(
    "qty,step,expected",
    [
        (0.01234, 0.001, 0.012),
        (0.01299, 0.001, 0.012),
        (1.999, 0.1, 1.9),
        (10.0, 0.01, 10.0),
    ],
)
def test_round_qty_floors_to_step(qty, step, expected):
    out = float(round_qty(qty, step))
    assert out == expected
    assert _is_multiple(out, step)


def test_extract_filters_prefers_market_lot_size():
    flt = extract_filters(EXCHANGE_INFO, "btcusdt")
    assert flt.min_qty == Decimal("0.002")
    assert flt.min_notional == Decimal("100")

    doge = extract_filters(EXCHANGE_INFO, "DOGEUSDT")
    assert doge.step_size == Decimal("1")
    assert doge.min_notional == Decimal("0")

    with pytest.raises(ValueError):
        extract_filters(EXCHANGE_INFO, "ETHUSDT")


def _client(monkeypatch, allowed=(), min_notional=0.0):
    c = BinanceFuturesClient(
        "key", "secret", "https://testnet.binancefuture.com",
        allowed_symbols=allowed, min_notional_usdt=min_notional,
    )
    monkeypatch.setattr(c, "exchange_info_cached", lambda ttl_seconds=300: EXCHANGE_INFO)
    return c


def test_calc_size_uses_leverage_and_floors_to_step(monkeypatch):
    c = _client(monkeypatch)
    c._leverage["BTCUSDT"] = 5

    # $100 margin x5 at 40000 -> 0.0125 -> floored to 0.012
    assert c.calc_size_from_usd("BTCUSDT", 40000.0, 100) == 0.012
    # whole-unit steps
    assert c.calc_size_from_usd("DOGEUSDT", 0.15, 10) == 66.0


def test_calc_size_rejects_below_minimums(monkeypatch):
    c = _client(monkeypatch)
    with pytest.raises(ConfigurationError):
        c.calc_size_from_usd("BTCUSDT", 40000.0, 40)  # 0.001 < minQty 0.002

    c._leverage["BTCUSDT"] = 2
    with pytest.raises(ConfigurationError):
        c.calc_size_from_usd("BTCUSDT", 40000.0, 45)  # 0.002 * 40000 = 80 < 100


def test_is_allowed_checks_allowlist_and_trading_status(monkeypatch):
    c = _client(monkeypatch)
    assert c.is_allowed("BTCUSDT")
    assert not c.is_allowed("OLDUSDT")
    assert not c.is_allowed("ETHUSDT")

    limited = _client(monkeypatch, allowed=["DOGEUSDT"])
    assert limited.is_allowed("dogeusdt")
    assert not limited.is_allowed("BTCUSDT")


def test_place_market_sends_reduce_only_sells(monkeypatch):
    c = _client(monkeypatch)
    sent = []
    monkeypatch.setattr(
        c, "_request", lambda method, path, params=None, **kw: sent.append(params) or {}
    )

    c.place_market("BTCUSDT", "buy", "0.012", "alpha-open-1700000000000")
    c.place_market("BTCUSDT", "sell", "0.006", "x" * 50)

    assert sent[0]["side"] == "BUY" and "reduceOnly" not in sent[0]
    assert sent[1]["reduceOnly"] == "true"
    assert len(sent[1]["newClientOrderId"]) == 36


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("BTCUSDT", "BTCUSDT"),
        ("btcusdt", "BTCUSDT"),
        ("BINANCE:BTCUSDT.P", "BTCUSDT"),
        ("ETHUSDTPERP", "ETHUSDT"),
        ("BTC/USDT", "BTCUSDT"),
    ],
)
def test_to_exchange_symbol(raw, expected):
    assert to_exchange_symbol(raw) == expected


def test_base_asset():
    assert base_asset("BINANCE:SOLUSDT.P") == "SOL"
    assert base_asset("XYZ") == "XYZ"
