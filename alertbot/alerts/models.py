from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class AlertKind(str, Enum):
    SMARTVOL = "smartvol"
    DOMINATION = "domination"


class SmartVolType(str, Enum):
    SMART_OPEN = "SmartOpen"
    SMART_VOL_ADD = "SmartVolAdd"
    SMART_CLOSE = "SmartClose"
    SMART_BIG_CLOSE = "SmartBigClose"
    SMART_BIG_ADD = "SmartBigAdd"
    SMART_VOLUME_OPEN = "SmartVolumeOpen"
    BULLISH_VOLUME = "BullishVolume"
    VOLUME_UP = "VolumeUp"
    # synchronization signals, drive the entry block
    FIXED_SHORT_SYNC = "Fixed Short Synchronization"
    LIVE_SHORT_SYNC = "Live Short Synchronization"


class DominationType(str, Enum):
    BUYER_DOMINATION = "Buyer domination"
    SELLER_DOMINATION = "Seller domination"
    BUYER_CONTINUATION = "Continuation of buyer dominance"
    SELLER_CONTINUATION = "Continuation of seller dominance"


AlertType = Union[SmartVolType, DominationType]


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    type: AlertType
    symbol: str
    price: str  # decimal string, as received
    timeframe: Optional[str] = None
    volume: Optional[float] = None

    @property
    def type_name(self) -> str:
        return getattr(self.type, "value", str(self.type))

    @property
    def price_f(self) -> float:
        return float(self.price)

    def timeframe_or(self, default: str = "1h") -> str:
        """Signals without a timeframe are treated as the default chart (1h)."""
        return self.timeframe or default

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "type": self.type_name,
            "symbol": self.symbol,
            "price": self.price,
            "timeframe": self.timeframe,
            "volume": self.volume,
        }
