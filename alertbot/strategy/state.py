from __future__ import annotations

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional

Clock = Callable[[], float]


class StateKey(NamedTuple):
    """(bot, symbol) key. A tuple, so bot names containing ':' can't collide."""

    bot_name: str
    symbol: str


@dataclass
class PartialCloseState:
    close_count: int = 0
    last_update: float = 0.0


@dataclass
class EntryBlockState:
    blocked_until: float
    reason: str = ""


class PartialCloseBook:
    """In-memory SmartClose counters, one per (bot, symbol)."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._states: Dict[StateKey, PartialCloseState] = {}

    def get(self, key: StateKey) -> Optional[PartialCloseState]:
        return self._states.get(key)

    def get_or_create(self, key: StateKey) -> PartialCloseState:
        st = self._states.get(key)
        if st is None:
            st = PartialCloseState(close_count=0, last_update=self._clock())
            self._states[key] = st
        return st

    def bump(self, key: StateKey, count: int) -> PartialCloseState:
        st = self.get_or_create(key)
        st.close_count = int(count)
        st.last_update = self._clock()
        return st

    def clear(self, key: StateKey) -> None:
        self._states.pop(key, None)

    def snapshot(self) -> List[dict]:
        return [
            {
                "bot": k.bot_name,
                "symbol": k.symbol,
                "close_count": st.close_count,
                "last_update": st.last_update,
            }
            for k, st in self._states.items()
        ]

    def __len__(self) -> int:
        return len(self._states)


class EntryBlockBook:
    """
    Time-boxed entry blocks with lazy expiry: an entry read at or after
    blocked_until is dropped and reported as absent. Nothing expires in the
    background; sweep() is there for callers that want to bound memory.
    """

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._blocks: Dict[StateKey, EntryBlockState] = {}

    def block(self, key: StateKey, seconds: float, reason: str = "") -> EntryBlockState:
        st = EntryBlockState(blocked_until=self._clock() + float(seconds), reason=reason)
        self._blocks[key] = st
        return st

    def active(self, key: StateKey) -> Optional[EntryBlockState]:
        st = self._blocks.get(key)
        if st is None:
            return None
        if self._clock() >= st.blocked_until:
            del self._blocks[key]
            return None
        return st

    def is_blocked(self, key: StateKey) -> bool:
        return self.active(key) is not None

    def remaining_seconds(self, key: StateKey) -> float:
        st = self.active(key)
        if st is None:
            return 0.0
        return max(0.0, st.blocked_until - self._clock())

    def sweep(self) -> int:
        now = self._clock()
        expired = [k for k, st in self._blocks.items() if now >= st.blocked_until]
        for k in expired:
            del self._blocks[k]
        return len(expired)

    def snapshot(self) -> List[dict]:
        # raw view, expired-but-unread entries included
        return [
            {
                "bot": k.bot_name,
                "symbol": k.symbol,
                "blocked_until": st.blocked_until,
                "reason": st.reason,
            }
            for k, st in self._blocks.items()
        ]

    def __len__(self) -> int:
        return len(self._blocks)


class KeyLocks:
    """One lock per key; guard check, exchange call and store write run under it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.Lock)  # StateKey -> Lock

    @contextmanager
    def hold(self, key: StateKey) -> Iterator[None]:
        with self._guard:
            lock = self._locks[key]
        with lock:
            yield


def format_remaining(seconds: float) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    return f"{hours}h {rest // 60}m"
