import requests

from alertbot.exchange.paper import PaperExchange
from alertbot.notify.telegram import TelegramNotifier


def test_paper_exchange_tracks_net_position():
    ex = PaperExchange(allowed_symbols=["BTCUSDT"])
    assert ex.is_allowed("btcusdt")
    assert not ex.is_allowed("ETHUSDT")

    ex.ensure_leverage("BTCUSDT", 4)
    size = ex.calc_size_from_usd("BTCUSDT", 100.0, 50)
    assert size == 2.0

    ex.place_market("BTCUSDT", "buy", str(size), "a-open-1")
    ex.place_market("BTCUSDT", "sell", "0.5", "a-partial-close-2")
    assert ex.positions["BTCUSDT"] == 1.5

    res = ex.flash_close("BTCUSDT", "long")
    assert res["status"] == "CLOSED"
    assert res["qty"] == 1.5
    assert "BTCUSDT" not in ex.positions
    assert [o.kind for o in ex.orders] == ["MARKET", "MARKET", "CLOSE"]

    assert ex.flash_close("BTCUSDT", "long")["status"] == "no_position"


def test_notifier_disabled_only_logs(monkeypatch):
    def _boom(*a, **kw):
        raise AssertionError("should not post")

    monkeypatch.setattr(requests, "post", _boom)
    n = TelegramNotifier()
    assert not n.enabled
    assert n("hello") is False


def test_notifier_swallows_network_errors(monkeypatch):
    def _down(*a, **kw):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests, "post", _down)
    assert TelegramNotifier("token", "chat").send("hi") is False


def test_notifier_posts_message(monkeypatch):
    sent = {}

    class _Resp:
        status_code = 200
        text = "ok"

    def _post(url, json=None, timeout=None):
        sent["url"] = url
        sent["json"] = json
        return _Resp()

    monkeypatch.setattr(requests, "post", _post)
    assert TelegramNotifier("token", "chat").send("x" * 5000) is True
    assert sent["url"].endswith("/bottoken/sendMessage")
    assert sent["json"]["chat_id"] == "chat"
    assert len(sent["json"]["text"]) == 4096
