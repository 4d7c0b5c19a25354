import pytest

from alertbot.alerts.classifier import classify
from alertbot.alerts.models import Alert, AlertKind
from alertbot.bots.bot import Bot
from alertbot.bots.models import BotConfig
from alertbot.bots.registry import BotsRegistry
from alertbot.core.errors import UnknownAlertType
from alertbot.routing.router import AlertsRouter


class _Recorder:
    """Stands in for a bot's strategy; optionally blows up."""

    def __init__(self, calls, fail=False):
        self.calls = calls
        self.fail = fail

    def handle(self, bot, alert):
        self.calls.append(bot.name)
        if self.fail:
            raise RuntimeError(f"{bot.name} exploded")


class _Domination:
    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    def _record(self, method, bot, alert):
        self.calls.append((method, bot.name))
        if bot.name in self.fail_for:
            raise RuntimeError("domination handler failed")
        return True

    def on_buyer_domination(self, bot, alert):
        return self._record("buyer", bot, alert)

    def on_seller_domination(self, bot, alert):
        return self._record("seller", bot, alert)

    def on_buyer_continuation(self, bot, alert):
        return self._record("buyer_cont", bot, alert)

    def on_seller_continuation(self, bot, alert):
        return self._record("seller_cont", bot, alert)


class _Audit:
    def __init__(self):
        self.events = []

    def event(self, **kw):
        self.events.append(kw)


def _bot(name, calls, *, symbols=(), strategy="smartvol-partial-close", fail=False):
    cfg = BotConfig(name=name, symbol_filter=list(symbols), strategy=strategy)
    return Bot(cfg, exchange=None, strategy=_Recorder(calls, fail=fail))


def _smart(symbol="BTCUSDT"):
    return classify({"alertName": "SmartOpen", "symbol": symbol, "price": "1"})


def _dom(name="Buyer domination", symbol="BTCUSDT"):
    return classify({"alertName": name, "symbol": symbol, "price": "1"})


def test_fanout_respects_symbol_filter_and_order():
    calls = []
    reg = BotsRegistry(
        [
            _bot("a", calls),
            _bot("b", calls, symbols=["ETHUSDT"]),
            _bot("c", calls, symbols=["BTCUSDT", "SOLUSDT"]),
        ]
    )
    report = AlertsRouter(reg, _Domination()).dispatch(_smart("BTCUSDT"))

    assert calls == ["a", "c"]
    assert report.delivered == ["a", "c"]
    assert report.skipped == ["b"]


def test_failing_bot_does_not_stop_later_bots():
    calls = []
    audit = _Audit()
    reg = BotsRegistry(
        [
            _bot("first", calls, fail=True),
            _bot("second", calls),
            _bot("third", calls, fail=True),
            _bot("fourth", calls),
        ]
    )
    report = AlertsRouter(reg, _Domination(), audit=audit).dispatch(_smart())

    assert calls == ["first", "second", "third", "fourth"]
    assert report.delivered == ["second", "fourth"]
    assert set(report.failed) == {"first", "third"}
    assert "RuntimeError" in report.failed["first"]
    assert [e["bot_name"] for e in audit.events] == ["first", "third"]


def test_broken_audit_does_not_break_fanout():
    class _BrokenAudit:
        def event(self, **kw):
            raise OSError("disk full")

    calls = []
    reg = BotsRegistry([_bot("a", calls, fail=True), _bot("b", calls)])
    report = AlertsRouter(reg, _Domination(), audit=_BrokenAudit()).dispatch(_smart())
    assert report.delivered == ["b"]


def test_handle_rejects_invalid_payload_before_dispatch():
    calls = []
    router = AlertsRouter(BotsRegistry([_bot("a", calls)]), _Domination())
    with pytest.raises(UnknownAlertType):
        router.handle({"symbol": "BTCUSDT", "price": "1"})
    assert calls == []


def test_domination_without_domination_bots_is_noop():
    calls = []
    dom = _Domination()
    router = AlertsRouter(BotsRegistry([_bot("a", calls)]), dom)

    report = router.dispatch(_dom())

    assert calls == []
    assert dom.calls == []
    assert report.delivered == [] and report.failed == {}


@pytest.mark.parametrize(
    "name,method",
    [
        ("Buyer domination", "buyer"),
        ("Seller domination", "seller"),
        ("Continuation of buyer dominance", "buyer_cont"),
        ("Continuation of seller dominance", "seller_cont"),
    ],
)
def test_domination_dispatches_by_type(name, method):
    calls = []
    dom = _Domination()
    reg = BotsRegistry(
        [
            _bot("general", calls),
            _bot("dom1", calls, strategy="domination"),
            _bot("dom2", calls, strategy="domination", symbols=["ETHUSDT"]),
        ]
    )
    report = AlertsRouter(reg, dom).dispatch(_dom(name, "BTCUSDT"))

    assert dom.calls == [(method, "dom1")]
    assert calls == []  # smartvol pathway untouched
    assert report.delivered == ["dom1"]
    assert report.skipped == ["dom2"]


def test_domination_failure_is_isolated():
    calls = []
    dom = _Domination(fail_for={"dom1"})
    reg = BotsRegistry(
        [
            _bot("dom1", calls, strategy="domination"),
            _bot("dom2", calls, strategy="domination"),
        ]
    )
    report = AlertsRouter(reg, dom).dispatch(_dom())

    assert [c[1] for c in dom.calls] == ["dom1", "dom2"]
    assert report.delivered == ["dom2"]
    assert "dom1" in report.failed


def test_unknown_domination_type_is_noop():
    calls = []
    dom = _Domination()
    reg = BotsRegistry([_bot("dom1", calls, strategy="domination")])
    odd = Alert(kind=AlertKind.DOMINATION, type="Sideways domination", symbol="BTCUSDT", price="1")

    report = AlertsRouter(reg, dom).dispatch(odd)

    assert dom.calls == []
    assert report.skipped == ["dom1"]


def test_domination_bot_ignores_smartvol_alerts():
    reg = BotsRegistry([Bot(BotConfig(name="dom", strategy="domination"), exchange=None)])
    report = AlertsRouter(reg, _Domination()).dispatch(_smart())
    assert report.failed == {}
