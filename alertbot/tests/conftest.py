import pytest

from alertbot.bots.bot import Bot
from alertbot.bots.models import BotConfig
from alertbot.persistence.db import DB
from alertbot.persistence.positions import PositionsStore
from alertbot.strategy.partial_close import SmartVolPartialCloseStrategy


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    """
    Ensure tests never hit live trading accidentally.
    """
    monkeypatch.setenv("EXECUTION_MODE", "paper")
    monkeypatch.setenv("BINANCE_ENV", "testnet")
    monkeypatch.setenv("BINANCE_API_KEY", "")
    monkeypatch.setenv("BINANCE_API_SECRET", "")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "")
    monkeypatch.setenv("BOTS_CONFIG", "[]")


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingExchange:
    """Exchange port double: records every call, sizes at 1x (usd / price)."""

    def __init__(self, allowed=None):
        self.allowed = allowed
        self.orders = []  # (symbol_id, side, size, client_order_id)
        self.flash_closes = []  # (symbol, side)
        self.leverage_calls = []
        self.fail_next = None  # exception raised by the next order/close

    def is_allowed(self, symbol_id):
        return self.allowed is None or symbol_id in self.allowed

    def ensure_leverage(self, symbol_id, leverage):
        self.leverage_calls.append((symbol_id, leverage))

    def calc_size_from_usd(self, symbol_id, price, usd):
        return round(usd / price, 8)

    def _maybe_fail(self):
        if self.fail_next is not None:
            err, self.fail_next = self.fail_next, None
            raise err

    def place_market(self, symbol_id, side, size, client_order_id):
        self._maybe_fail()
        self.orders.append((symbol_id, side, size, client_order_id))
        return {"status": "FILLED"}

    def flash_close(self, symbol, side):
        self._maybe_fail()
        self.flash_closes.append((symbol, side))
        return {"status": "CLOSED"}


class Inbox(list):
    def __call__(self, text):
        self.append(text)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def exchange():
    return RecordingExchange()


@pytest.fixture
def store(tmp_path):
    return PositionsStore(DB(str(tmp_path / "test.db")))


@pytest.fixture
def strategy(store, clock):
    return SmartVolPartialCloseStrategy(
        store, entry_block_seconds=3600, default_max_fills=4, clock=clock
    )


@pytest.fixture
def make_bot(exchange, strategy):
    def _make(name="alpha", inbox=None, **cfg):
        base = dict(name=name, base_usd=100, add_usd=50, max_fills=3, leverage=5)
        base.update(cfg)
        return Bot(
            BotConfig(**base),
            exchange=exchange,
            strategy=strategy,
            notifier=inbox if inbox is not None else Inbox(),
        )

    return _make
