from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from alertbot.alerts.models import Alert
from alertbot.core.errors import ConfigurationError
from alertbot.persistence.positions import PnLSnapshot, Position
from alertbot.strategy.base import Strategy
from alertbot.strategy.ports import BotHandle, PositionsPort
from alertbot.strategy.state import (
    Clock,
    EntryBlockBook,
    KeyLocks,
    PartialCloseBook,
    StateKey,
    format_remaining,
)
from alertbot.symbols.universe import base_asset, to_exchange_symbol

log = logging.getLogger("alertbot.strategy.partial_close")

OPEN_TIMEFRAME = "1h"
FULL_CLOSE_TIMEFRAME = "4h"
PARTIAL_CLOSE_FRACTION = 0.5


def _resolve_usd(fn: Callable[[], float], label: str) -> float:
    try:
        v = float(fn())
    except (TypeError, ValueError):
        raise ConfigurationError(f"{label} is not a number")
    if math.isnan(v) or v <= 0:
        raise ConfigurationError(f"{label} is not configured ({v})")
    return v


def _optional(exchange, name: str) -> Optional[Callable]:
    """Adapters may leave out any exchange call; a missing one is skipped."""
    return getattr(exchange, name, None)


class SmartVolPartialCloseStrategy(Strategy):
    """
    SmartVol strategy with a confirmed, two-step exit.

    Per (bot, symbol):
      - SmartOpen on 1h opens (or adds up to max_fills), unless the entry
        is blocked by a short-synchronization signal.
      - SmartClose on 4h closes everything. On any other timeframe the
        first close is only counted, the second sells half the notional,
        the third closes the rest.
      - SmartBigClose always closes everything.

    Every alert for a key runs under that key's lock, so the guard checks,
    the exchange call and the store write never interleave with another
    alert for the same bot and symbol. The exchange is always called before
    the store is written; if it raises, nothing is persisted.
    """

    name = "smartvol-partial-close"

    def __init__(
        self,
        store: PositionsPort,
        *,
        entry_block_seconds: int = 3600,
        default_max_fills: int = 4,
        default_leverage: int = 5,
        clock: Clock = time.time,
    ):
        self.store = store
        self.entry_block_seconds = int(entry_block_seconds)
        self.default_max_fills = int(default_max_fills)
        self.default_leverage = int(default_leverage)
        self._clock = clock

        self.partial = PartialCloseBook(clock)
        self.blocks = EntryBlockBook(clock)
        self.locks = KeyLocks()

    # ---------------- DISPATCH ----------------

    def handle(self, bot: BotHandle, alert: Alert) -> None:
        # lock, state books and store rows are all keyed on the exchange id
        symbol_id = to_exchange_symbol(alert.symbol)
        if symbol_id != alert.symbol:
            alert = replace(alert, symbol=symbol_id)
        with self.locks.hold(StateKey(bot.name, symbol_id)):
            super().handle(bot, alert)

    def snapshot(self) -> dict:
        return {
            "partial_close": self.partial.snapshot(),
            "entry_blocks": self.blocks.snapshot(),
        }

    # ---------------- INTERNAL HELPERS ----------------

    def _max_fills(self, bot: BotHandle) -> int:
        return int(bot.cfg.max_fills or self.default_max_fills)

    def _order_id(self, bot: BotHandle, tag: str) -> str:
        return f"{bot.name}-{tag}-{int(self._clock() * 1000)}"

    def _size(self, bot: BotHandle, symbol_id: str, price: float, usd: float) -> float:
        calc = _optional(bot.exchange, "calc_size_from_usd")
        if calc is None:
            raise ConfigurationError("exchange cannot size orders (no calc_size_from_usd)")
        size = calc(symbol_id, price, usd)
        try:
            size = float(size)
        except (TypeError, ValueError):
            raise ConfigurationError(f"size for ${usd} could not be resolved: {size!r}")
        if math.isnan(size) or size <= 0:
            raise ConfigurationError(f"size for ${usd} could not be resolved: {size}")
        return size

    def _place(self, bot: BotHandle, symbol_id: str, side: str, size: str, tag: str):
        place = _optional(bot.exchange, "place_market")
        if place is None:
            log.warning("%s: exchange has no place_market, %s %s skipped", bot.name, side, symbol_id)
            return None
        return place(symbol_id, side, size, self._order_id(bot, tag))

    def _flash_close(self, bot: BotHandle, symbol_id: str):
        flash = _optional(bot.exchange, "flash_close")
        if flash is None:
            log.warning("%s: exchange has no flash_close, close of %s skipped", bot.name, symbol_id)
            return None
        return flash(symbol_id, "long")

    def _position_lines(self, alert: Alert, snap: PnLSnapshot) -> str:
        return (
            f"Size: {snap.total_size:.8f} {base_asset(alert.symbol)}\n"
            f"Avg entry: ${snap.avg_entry_price:.8g}\n"
            f"Price: ${snap.current_price:.8g}\n"
            f"PnL: ${snap.pnl:.2f} ({snap.pnl_percent:.2f}%)"
        )

    # ---------------- OPEN / ADD ----------------

    def on_open(self, bot: BotHandle, alert: Alert) -> None:
        key = StateKey(bot.name, alert.symbol)
        log.info("%s: SmartOpen %s @%s", bot.name, alert.symbol, alert.price)

        if self.blocks.is_blocked(key):
            left = format_remaining(self.blocks.remaining_seconds(key))
            log.info("%s: entry blocked for %s (%s left)", bot.name, alert.symbol, left)
            bot.notify(f"⏸ {bot.name}: entry blocked for {alert.symbol} @{alert.price} - {left} left")
            return

        timeframe = alert.timeframe_or(OPEN_TIMEFRAME)
        if timeframe != OPEN_TIMEFRAME:
            log.info("%s: SmartOpen on %s ignored (needs %s)", bot.name, timeframe, OPEN_TIMEFRAME)
            bot.notify(
                f"⏸ {bot.name}: SmartOpen {alert.symbol} on {timeframe} skipped - "
                f"positions open on {OPEN_TIMEFRAME} only"
            )
            return

        existing = self.store.find_open(bot.name, alert.symbol)
        if existing is not None:
            log.info(
                "%s: %s already open (%s/%s fills)",
                bot.name, alert.symbol, existing.fills_count, self._max_fills(bot),
            )
            self._add(bot, alert, existing)
            return

        symbol_id = to_exchange_symbol(alert.symbol)

        is_allowed = _optional(bot.exchange, "is_allowed")
        if is_allowed is not None and not is_allowed(symbol_id):
            log.info("%s: %s not allowed on exchange", bot.name, symbol_id)
            bot.notify(f"⚠️ {bot.name}: {symbol_id} not allowed")
            return

        try:
            usd = _resolve_usd(bot.base_usd, "base_usd")
            leverage = int(bot.cfg.leverage or self.default_leverage)
            ensure = _optional(bot.exchange, "ensure_leverage")
            if ensure is not None:
                ensure(symbol_id, leverage)
            size = self._size(bot, symbol_id, alert.price_f, usd)
        except ConfigurationError as e:
            log.error("%s: open %s aborted: %s", bot.name, alert.symbol, e)
            bot.notify(f"❌ {bot.name}: configuration error, {alert.symbol} not opened - {e}")
            return

        self._place(bot, symbol_id, "buy", str(size), "open")
        position = self.store.open(bot.name, alert.symbol, alert.price, str(usd))

        # fresh lifecycle, fresh counter
        self.partial.clear(key)
        self.partial.get_or_create(key)

        info = self.store.get_position_info(position, alert.price_f)
        log.info("%s: opened %s id=%s $%s size=%s", bot.name, alert.symbol, position.id, usd, size)
        bot.notify(
            f"✅ {bot.name}: OPEN {alert.symbol} @{alert.price} ${usd:g}\n"
            + self._position_lines(alert, info["pnl"])
        )

    def on_add(self, bot: BotHandle, alert: Alert) -> None:
        log.info("%s: SmartVolAdd %s @%s", bot.name, alert.symbol, alert.price)
        existing = self.store.find_open(bot.name, alert.symbol)
        if existing is None:
            log.info("%s: no open %s position, add skipped", bot.name, alert.symbol)
            return
        self._add(bot, alert, existing)

    def _add(self, bot: BotHandle, alert: Alert, existing: Position) -> None:
        max_fills = self._max_fills(bot)
        if existing.fills_count >= max_fills:
            log.info("%s: max fills reached for %s (%s)", bot.name, alert.symbol, max_fills)
            bot.notify(f"⚠️ {bot.name}: max fills reached for {alert.symbol} ({existing.fills_count}/{max_fills})")
            return

        symbol_id = to_exchange_symbol(alert.symbol)
        try:
            usd = _resolve_usd(bot.add_usd, "add_usd")
            size = self._size(bot, symbol_id, alert.price_f, usd)
        except ConfigurationError as e:
            log.error("%s: add %s aborted: %s", bot.name, alert.symbol, e)
            bot.notify(f"❌ {bot.name}: configuration error, {alert.symbol} add skipped - {e}")
            return

        self._place(bot, symbol_id, "buy", str(size), "add")
        updated = self.store.add(existing, alert.price, str(usd))

        info = self.store.get_position_info(updated, alert.price_f)
        log.info(
            "%s: added $%s to %s (fill %s/%s)",
            bot.name, usd, alert.symbol, updated.fills_count, max_fills,
        )
        bot.notify(
            f"➕ {bot.name}: ADD {alert.symbol} @{alert.price} ${usd:g} "
            f"(fill {updated.fills_count}/{max_fills})\n"
            + self._position_lines(alert, info["pnl"])
        )

    # ---------------- CLOSE ----------------

    def on_close(self, bot: BotHandle, alert: Alert) -> None:
        key = StateKey(bot.name, alert.symbol)
        timeframe = alert.timeframe_or(OPEN_TIMEFRAME)
        log.info("%s: SmartClose (%s) %s @%s", bot.name, timeframe, alert.symbol, alert.price)

        existing = self.store.find_open(bot.name, alert.symbol)
        if existing is None:
            log.info("%s: no open %s position, close skipped", bot.name, alert.symbol)
            return

        if timeframe == FULL_CLOSE_TIMEFRAME:
            self._close_all(bot, alert, existing, f"CLOSE {FULL_CLOSE_TIMEFRAME}")
            return

        count = self.partial.get_or_create(key).close_count

        if count == 0:
            self.partial.bump(key, 1)
            log.info("%s: first SmartClose for %s recorded", bot.name, alert.symbol)
            bot.notify(
                f"⏳ {bot.name}: first SmartClose for {alert.symbol} @{alert.price} - "
                f"waiting for a second one to close 50%"
            )
            return

        if count == 1:
            self._close_half(bot, alert, existing)
            self.partial.bump(key, 2)
            return

        self._close_all(bot, alert, existing, "FINAL CLOSE")

    def on_big_close(self, bot: BotHandle, alert: Alert) -> None:
        log.info("%s: SmartBigClose %s @%s", bot.name, alert.symbol, alert.price)
        existing = self.store.find_open(bot.name, alert.symbol)
        if existing is None:
            log.info("%s: no open %s position, big close skipped", bot.name, alert.symbol)
            return
        self._close_all(bot, alert, existing, "BIG CLOSE")

    def _close_half(self, bot: BotHandle, alert: Alert, existing: Position) -> None:
        close_usd = existing.amount_usd * PARTIAL_CLOSE_FRACTION
        close_tokens = close_usd / existing.avg_entry_price
        symbol_id = to_exchange_symbol(alert.symbol)

        self._place(bot, symbol_id, "sell", f"{close_tokens:.8f}", "partial-close")
        snap = self.store.calculate_pnl(existing, alert.price_f)
        remaining = self.store.reduce(existing, alert.price, close_usd)

        log.info(
            "%s: closed 50%% of %s ($%.2f, %.8f tokens)",
            bot.name, alert.symbol, close_usd, close_tokens,
        )
        bot.notify(
            f"🔄 {bot.name}: PARTIAL CLOSE 50% {alert.symbol} @{alert.price}\n"
            f"Closed: ${close_usd:.2f} ({close_tokens:.8f} {base_asset(alert.symbol)})\n"
            f"Remaining: ${remaining.amount_usd:.2f}\n"
            + self._position_lines(alert, snap)
        )

    def _close_all(self, bot: BotHandle, alert: Alert, existing: Position, label: str) -> None:
        key = StateKey(bot.name, alert.symbol)

        self._flash_close(bot, to_exchange_symbol(alert.symbol))
        final = self.store.calculate_pnl(existing, alert.price_f)
        self.store.close(existing, alert.price)
        self.partial.clear(key)

        log.info("%s: %s %s pnl=%.2f", bot.name, label, alert.symbol, final.pnl)
        bot.notify(
            f"🛑 {bot.name}: {label} {alert.symbol} @{alert.price}\n"
            + self._position_lines(alert, final)
        )

    # ---------------- SIGNAL-ONLY ----------------

    def on_big_add(self, bot: BotHandle, alert: Alert) -> None:
        """Announced to the bot only; no order is placed and the position is unchanged."""
        log.info("%s: SmartBigAdd %s @%s", bot.name, alert.symbol, alert.price)
        bot.notify(f"🚀 {bot.name}: BIG ADD signal for {alert.symbol} @{alert.price}")

    def on_smart_volume_open(self, bot: BotHandle, alert: Alert) -> None:
        log.info("%s: SmartVolumeOpen not used by %s", bot.name, self.name)

    def on_bullish_volume(self, bot: BotHandle, alert: Alert) -> None:
        log.info("%s: BullishVolume not used by %s", bot.name, self.name)

    def on_volume_up(self, bot: BotHandle, alert: Alert) -> None:
        log.info("%s: VolumeUp not used by %s", bot.name, self.name)

    # ---------------- ENTRY BLOCK ----------------

    def on_fixed_short_sync(self, bot: BotHandle, alert: Alert) -> None:
        self._block_entry(bot, alert, "Fixed Short Synchronization")

    def on_live_short_sync(self, bot: BotHandle, alert: Alert) -> None:
        self._block_entry(bot, alert, "Live Short Synchronization")

    def _block_entry(self, bot: BotHandle, alert: Alert, reason: str) -> None:
        timeframe = alert.timeframe_or(OPEN_TIMEFRAME)
        if timeframe != OPEN_TIMEFRAME:
            log.info("%s: %s on %s ignored (needs %s)", bot.name, reason, timeframe, OPEN_TIMEFRAME)
            return

        st = self.blocks.block(
            StateKey(bot.name, alert.symbol), self.entry_block_seconds, reason=reason
        )
        until = datetime.fromtimestamp(st.blocked_until, tz=timezone.utc)
        log.info("%s: entry blocked for %s until %s (%s)", bot.name, alert.symbol, until.isoformat(), reason)
        bot.notify(
            f"🔒 {bot.name}: {reason} for {alert.symbol} @{alert.price}\n"
            f"Entry blocked for {format_remaining(self.entry_block_seconds)}\n"
            f"Unblocks at: {until:%Y-%m-%d %H:%M:%S} UTC"
        )
