from __future__ import annotations

from typing import Dict

from alertbot.alerts.models import Alert, SmartVolType

# SmartVol alert type -> strategy method
HANDLERS: Dict[SmartVolType, str] = {
    SmartVolType.SMART_OPEN: "on_open",
    SmartVolType.SMART_VOL_ADD: "on_add",
    SmartVolType.SMART_CLOSE: "on_close",
    SmartVolType.SMART_BIG_CLOSE: "on_big_close",
    SmartVolType.SMART_BIG_ADD: "on_big_add",
    SmartVolType.SMART_VOLUME_OPEN: "on_smart_volume_open",
    SmartVolType.BULLISH_VOLUME: "on_bullish_volume",
    SmartVolType.VOLUME_UP: "on_volume_up",
    SmartVolType.FIXED_SHORT_SYNC: "on_fixed_short_sync",
    SmartVolType.LIVE_SHORT_SYNC: "on_live_short_sync",
}


class Strategy:
    name: str = "base"

    def handle(self, bot, alert: Alert) -> None:
        method = HANDLERS.get(alert.type)
        if method is None:
            raise ValueError(f"{self.name} cannot handle {alert.type!r}")
        getattr(self, method)(bot, alert)

    def on_open(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_add(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_close(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_big_close(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_big_add(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_smart_volume_open(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_bullish_volume(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_volume_up(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_fixed_short_sync(self, bot, alert: Alert) -> None:
        raise NotImplementedError

    def on_live_short_sync(self, bot, alert: Alert) -> None:
        raise NotImplementedError
