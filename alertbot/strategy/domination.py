from __future__ import annotations

import logging
from typing import Protocol

from alertbot.alerts.models import Alert

log = logging.getLogger("alertbot.strategy.domination")


class DominationHandlers(Protocol):
    def on_buyer_domination(self, bot, alert: Alert) -> bool: ...

    def on_seller_domination(self, bot, alert: Alert) -> bool: ...

    def on_buyer_continuation(self, bot, alert: Alert) -> bool: ...

    def on_seller_continuation(self, bot, alert: Alert) -> bool: ...


class DominationStrategy:
    """Default domination handlers: relay the signal to the bot, no trading."""

    name = "domination"

    def _relay(self, bot, alert: Alert, label: str) -> bool:
        log.info("%s: %s %s @%s", bot.name, label, alert.symbol, alert.price)
        bot.notify(f"🎯 {bot.name}: {label} {alert.symbol} @{alert.price}")
        return True

    def on_buyer_domination(self, bot, alert: Alert) -> bool:
        return self._relay(bot, alert, "Buyer domination")

    def on_seller_domination(self, bot, alert: Alert) -> bool:
        return self._relay(bot, alert, "Seller domination")

    def on_buyer_continuation(self, bot, alert: Alert) -> bool:
        return self._relay(bot, alert, "Buyer continuation")

    def on_seller_continuation(self, bot, alert: Alert) -> bool:
        return self._relay(bot, alert, "Seller continuation")
