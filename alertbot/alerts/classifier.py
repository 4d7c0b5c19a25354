from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from alertbot.alerts.models import Alert, AlertKind, DominationType, SmartVolType
from alertbot.core.errors import InvalidField, MissingField, UnknownAlertType, ValidationError
from alertbot.symbols.universe import to_exchange_symbol

DISCRIMINATOR = "alertName"

_SMARTVOL_TYPES = {t.value: t for t in SmartVolType}
_DOMINATION_TYPES = {t.value: t for t in DominationType}


def _present(v: Any) -> bool:
    if v is None:
        return False
    if isinstance(v, str) and not v.strip():
        return False
    return True


def _price(v: Any) -> str:
    s = str(v).strip()
    try:
        d = Decimal(s)
    except InvalidOperation:
        raise InvalidField("price", v, "price must be a number")
    if not d.is_finite():
        raise InvalidField("price", v, "price must be a finite number")
    if d <= 0:
        raise InvalidField("price", v, "price must be positive")
    return s


def _volume(v: Any) -> float:
    try:
        out = float(v)
    except (TypeError, ValueError):
        raise InvalidField("volume", v, "volume must be a number")
    if math.isnan(out):
        raise InvalidField("volume", v, "volume must be a number")
    return out


def _symbol(v: Any) -> str:
    sym = to_exchange_symbol(str(v))
    if not sym:
        raise InvalidField("symbol", v, "symbol is empty after normalization")
    return sym


def _require_symbol_and_price(p: Mapping[str, Any]) -> None:
    if not _present(p.get("symbol")):
        raise MissingField("symbol", "symbol and price are required")
    if p.get("price") is None:
        raise MissingField("price", "symbol and price are required")


def classify(payload: Any) -> Alert:
    """
    Turn an untyped webhook payload into a typed Alert.

    The discriminator is ``alertName``. SmartVol alerts (including the
    short-synchronization pair) and Domination alerts need ``symbol`` and
    ``price``; ``VolumeUp`` also needs ``volume`` and ``timeframe``.
    The symbol is normalized to the exchange id (``BINANCE:BTCUSDT.P`` ->
    ``BTCUSDT``) so every downstream key uses one spelling.

    Raises ValidationError (UnknownAlertType / MissingField / InvalidField).
    Pure: no logging, no I/O.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid payload")

    if DISCRIMINATOR not in payload:
        raise UnknownAlertType("Only SmartVol and Domination alerts are supported")

    name = str(payload[DISCRIMINATOR]).strip()
    timeframe = payload.get("timeframe")
    timeframe = str(timeframe).strip() if _present(timeframe) else None

    if name in _SMARTVOL_TYPES:
        t = _SMARTVOL_TYPES[name]
        _require_symbol_and_price(payload)

        volume = None
        if t == SmartVolType.VOLUME_UP:
            if payload.get("volume") is None:
                raise MissingField("volume", "volume is required for VolumeUp alerts")
            if timeframe is None:
                raise MissingField(
                    "timeframe", "timeframe is required for VolumeUp alerts"
                )
            volume = _volume(payload["volume"])

        return Alert(
            kind=AlertKind.SMARTVOL,
            type=t,
            symbol=_symbol(payload["symbol"]),
            price=_price(payload["price"]),
            timeframe=timeframe,
            volume=volume,
        )

    if name in _DOMINATION_TYPES:
        _require_symbol_and_price(payload)
        return Alert(
            kind=AlertKind.DOMINATION,
            type=_DOMINATION_TYPES[name],
            symbol=_symbol(payload["symbol"]),
            price=_price(payload["price"]),
            timeframe=timeframe,
        )

    raise UnknownAlertType(f"Unknown alert type: {name}")
