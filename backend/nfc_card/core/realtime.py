from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple


logger = logging.getLogger(__name__)

EventType = Literal["INSERT", "UPDATE", "DELETE"]


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: EventType
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    def matches(self, where: Optional[Tuple[str, Any]]) -> bool:
        if where is None:
            return True
        column, value = where
        row = self.new if self.event_type != "DELETE" else self.old
        return row.get(column) == value


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(
        self,
        hub: "ChangeHub",
        table: str,
        callback: ChangeCallback,
        where: Optional[Tuple[str, Any]],
    ) -> None:
        self.hub = hub
        self.table = table
        self.callback = callback
        self.where = where
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self.hub._remove(self)


class ChangeHub:
    """In-process table change channels.

    One channel per table is shared by every subscriber of that table and is
    dropped as soon as its last subscriber leaves. Delivery is synchronous, in
    the publishing thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: Dict[str, List[Subscription]] = {}

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        where: Optional[Tuple[str, Any]] = None,
    ) -> Subscription:
        sub = Subscription(self, table, callback, where)
        with self._lock:
            if table not in self._channels:
                logger.debug("Opening change channel for %s", table)
            self._channels.setdefault(table, []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._channels.get(sub.table)
            if not subs:
                return
            if sub in subs:
                subs.remove(sub)
            if not subs:
                del self._channels[sub.table]
                logger.debug("Released change channel for %s", sub.table)

    def channels(self) -> List[str]:
        with self._lock:
            return sorted(self._channels)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._channels.get(table, []))

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = list(self._channels.get(event.table, []))
        for sub in targets:
            if not sub.active or not event.matches(sub.where):
                continue
            try:
                sub.callback(event)
            except Exception:  # noqa: BLE001
                logger.exception("Change listener on %s failed", event.table)


# 全局变更通道（进程内）
hub = ChangeHub()


def get_hub() -> ChangeHub:
    return hub
