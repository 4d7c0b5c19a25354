from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from alertbot.alerts.models import Alert, AlertKind
from alertbot.bots.models import BotConfig
from alertbot.strategy.base import Strategy

log = logging.getLogger("alertbot.bots")

Notifier = Callable[[str], Any]


def _usd(raw: Any) -> float:
    # NaN marks "not configured"; the strategy turns it into a ConfigurationError
    if raw is None or isinstance(raw, bool):
        return float("nan")
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float("nan")


class Bot:
    def __init__(
        self,
        cfg: BotConfig,
        *,
        exchange: Any,
        strategy: Optional[Strategy] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.cfg = cfg
        self.name = cfg.name
        self.exchange = exchange
        self.strategy = strategy
        self._notifier = notifier

    def base_usd(self) -> float:
        return _usd(self.cfg.base_usd)

    def add_usd(self) -> float:
        return _usd(self.cfg.add_usd)

    def notify(self, text: str) -> None:
        if self._notifier is None:
            log.info("[notify] %s", text)
            return
        self._notifier(text)

    def process(self, alert: Alert) -> None:
        if alert.kind != AlertKind.SMARTVOL:
            log.warning("%s: %s alerts are not processed here", self.name, alert.kind.value)
            return
        if self.strategy is None:
            log.debug("%s: no SmartVol strategy, %s ignored", self.name, alert.type_name)
            return
        self.strategy.handle(self, alert)

    def __repr__(self) -> str:
        return f"Bot(name={self.name!r}, strategy={self.cfg.strategy!r})"
