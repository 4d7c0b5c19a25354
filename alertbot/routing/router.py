from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from alertbot.alerts.classifier import classify
from alertbot.alerts.models import Alert, AlertKind, DominationType
from alertbot.bots.bot import Bot
from alertbot.bots.models import DOMINATION
from alertbot.bots.registry import BotsRegistry
from alertbot.strategy.domination import DominationHandlers

log = logging.getLogger("alertbot.router")


@dataclass
class DispatchReport:
    alert: Alert
    delivered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "alert": self.alert.to_dict(),
            "delivered": list(self.delivered),
            "skipped": list(self.skipped),
            "failed": dict(self.failed),
        }


class AlertsRouter:
    """
    Fans one alert out to the registered bots.

    Domination alerts go only to bots tagged "domination"; everything else
    goes to every bot whose symbol filter admits the symbol. Bots are served
    one after another in registry order, and an exception in one bot is
    logged and recorded but never stops the next one.
    """

    def __init__(
        self,
        registry: BotsRegistry,
        domination: DominationHandlers,
        *,
        audit: Any = None,
    ):
        self.registry = registry
        self.domination = domination
        self.audit = audit

    def handle(self, payload: Any) -> DispatchReport:
        # ValidationError propagates: the caller rejects the request
        alert = classify(payload)
        return self.dispatch(alert)

    def dispatch(self, alert: Alert) -> DispatchReport:
        if alert.kind == AlertKind.DOMINATION:
            return self._dispatch_domination(alert)

        report = DispatchReport(alert=alert)
        for bot in self.registry.all():
            if not bot.cfg.matches(alert.symbol):
                report.skipped.append(bot.name)
                continue
            try:
                bot.process(alert)
                report.delivered.append(bot.name)
            except Exception as e:
                self._failed(report, bot, e)
        return report

    # ---------------- DOMINATION ----------------

    def _dispatch_domination(self, alert: Alert) -> DispatchReport:
        report = DispatchReport(alert=alert)
        log.info("domination alert %s for %s", alert.type_name, alert.symbol)

        bots = [b for b in self.registry.all() if b.cfg.strategy == DOMINATION]
        if not bots:
            log.warning("no bots with strategy=domination for %s", alert.type_name)
            return report

        log.info("domination bots: %s", ", ".join(b.name for b in bots))
        for bot in bots:
            try:
                if self._process_domination(bot, alert):
                    report.delivered.append(bot.name)
                else:
                    report.skipped.append(bot.name)
            except Exception as e:
                self._failed(report, bot, e)
        return report

    def _process_domination(self, bot: Bot, alert: Alert) -> bool:
        # re-checked per bot; the registry may change between select and call
        if bot.cfg.strategy != DOMINATION:
            log.warning("%s does not use domination (strategy=%s)", bot.name, bot.cfg.strategy)
            return False

        if not bot.cfg.matches(alert.symbol):
            log.info(
                "%s skips %s (filter: %s)", bot.name, alert.symbol, ",".join(bot.cfg.symbol_filter)
            )
            return False

        t = alert.type
        if t == DominationType.BUYER_DOMINATION:
            self.domination.on_buyer_domination(bot, alert)
        elif t == DominationType.SELLER_DOMINATION:
            self.domination.on_seller_domination(bot, alert)
        elif t == DominationType.BUYER_CONTINUATION:
            self.domination.on_buyer_continuation(bot, alert)
        elif t == DominationType.SELLER_CONTINUATION:
            self.domination.on_seller_continuation(bot, alert)
        else:
            log.warning("unknown domination alert type: %r", t)
            return False
        return True

    # ---------------- FAILURES ----------------

    def _failed(self, report: DispatchReport, bot: Bot, err: Exception) -> None:
        msg = f"{type(err).__name__}: {err}"
        report.failed[bot.name] = msg
        log.exception(
            "%s failed on %s %s: %s", bot.name, report.alert.type_name, report.alert.symbol, msg
        )

        if self.audit is None:
            return
        try:
            self.audit.event(
                event_type="ERROR",
                bot_name=bot.name,
                symbol=report.alert.symbol,
                action="BOT_FAILED",
                details={"alert": report.alert.to_dict(), "error": msg},
            )
        except Exception:
            # an audit write failure must not turn into a failure of the next bot
            log.exception("audit write failed for %s", bot.name)
