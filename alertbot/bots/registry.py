from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from alertbot.bots.bot import Bot, Notifier
from alertbot.bots.models import DOMINATION, PARTIAL_CLOSE, BotConfig
from alertbot.core.config import Settings
from alertbot.strategy.base import Strategy

log = logging.getLogger("alertbot.registry")


class BotsRegistry:
    """Ordered set of bots. Iteration order is insertion order."""

    def __init__(self, bots: Iterable[Bot] = ()):
        self._bots: Dict[str, Bot] = {}
        for b in bots:
            self.add(b)

    def add(self, bot: Bot) -> None:
        if bot.name in self._bots:
            raise ValueError(f"duplicate bot name: {bot.name}")
        self._bots[bot.name] = bot

    def all(self) -> List[Bot]:
        return list(self._bots.values())

    def get(self, name: str) -> Optional[Bot]:
        return self._bots.get(name)

    def __len__(self) -> int:
        return len(self._bots)


def _raw_bot_entries(s: Settings) -> List[Any]:
    raw = (s.BOTS_CONFIG or "").strip()
    if not raw:
        path = Path(s.BOTS_CONFIG_PATH)
        if not path.exists():
            log.warning("no bots configured (BOTS_CONFIG empty, %s missing)", path)
            return []
        raw = path.read_text(encoding="utf-8")

    data = json.loads(raw)
    if isinstance(data, dict):
        data = data.get("bots", [])
    if not isinstance(data, list):
        raise ValueError("bots config must be a JSON list (or {'bots': [...]})")
    return data


def load_bot_configs(s: Settings) -> List[BotConfig]:
    """
    Parse and validate bot configs. Fails fast on malformed entries,
    duplicate names and unknown strategies; disabled bots are dropped.
    """
    out: List[BotConfig] = []
    seen = set()
    for i, entry in enumerate(_raw_bot_entries(s)):
        try:
            cfg = BotConfig.model_validate(entry)
        except PydanticValidationError as e:
            raise ValueError(f"bot #{i} is invalid: {e}") from e

        if cfg.name in seen:
            raise ValueError(f"duplicate bot name: {cfg.name}")
        seen.add(cfg.name)

        if cfg.strategy not in {PARTIAL_CLOSE, DOMINATION}:
            raise ValueError(f"bot {cfg.name}: unknown strategy {cfg.strategy!r}")

        if not cfg.enabled:
            log.info("bot %s disabled, skipped", cfg.name)
            continue
        out.append(cfg)
    return out


def build_registry(
    configs: Iterable[BotConfig],
    *,
    exchange_for: Callable[[BotConfig], Any],
    partial_close: Strategy,
    notifier: Optional[Notifier] = None,
) -> BotsRegistry:
    """
    exchange_for(cfg) gives each bot its own exchange handle: a full close
    flattens the whole symbol on that account, so bots must not share one.
    """
    reg = BotsRegistry()
    for cfg in configs:
        # domination bots are driven by the router's domination pathway
        strategy = partial_close if cfg.strategy == PARTIAL_CLOSE else None
        reg.add(Bot(cfg, exchange=exchange_for(cfg), strategy=strategy, notifier=notifier))
        log.info(
            "bot %s registered (strategy=%s, symbols=%s)",
            cfg.name, cfg.strategy, ",".join(cfg.symbol_filter) or "*",
        )
    return reg
