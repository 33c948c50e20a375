from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, Optional, TypeVar

log = logging.getLogger("loyerfacile.realtime")

T = TypeVar("T")


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str  # insert | update | delete
    row_id: Optional[int]
    space_id: Optional[int]
    at: datetime


Listener = Callable[[ChangeEvent], None]


class RealtimeHub:
    """
    In-process change feed keyed by (table, event).

    Publishers call publish() after their commit. Listeners get only the
    event; they re-read whatever they need.

        from ..services.realtime import hub
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[tuple[str, str], list[Listener]] = {}

    def subscribe(self, table: str, event: str, listener: Listener) -> Callable[[], None]:
        key = (str(table), str(event))
        with self._lock:
            self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                items = self._listeners.get(key, [])
                if listener in items:
                    items.remove(listener)

        return unsubscribe

    def publish(self, table: str, event: str, row_id: Optional[int] = None, *, space_id: Optional[int] = None) -> ChangeEvent:
        ev = ChangeEvent(table=str(table), event=str(event), row_id=row_id, space_id=space_id, at=datetime.utcnow())
        with self._lock:
            listeners = list(self._listeners.get((ev.table, ev.event), []))
        for fn in listeners:
            try:
                fn(ev)
            except Exception:
                # a broken subscriber must not fail the write that already committed
                log.exception("realtime listener failed", extra={"space_id": space_id})
        return ev

    def __call__(self, table: str, event: str, row_id: Optional[int] = None, *, space_id: Optional[int] = None) -> ChangeEvent:
        return self.publish(table, event, row_id, space_id=space_id)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()


class LiveQuery(Generic[T]):
    """Keeps `value` fresh by re-running `loader` whenever a watched change arrives."""

    def __init__(
        self,
        hub_: RealtimeHub,
        loader: Callable[[], T],
        *,
        table: str,
        events: tuple[str, ...] = ("insert", "update"),
        space_id: Optional[int] = None,
    ) -> None:
        self.loader = loader
        self.space_id = space_id
        self.reloads = 0
        self.value: T = loader()
        self._unsubs = [hub_.subscribe(table, e, self._on_change) for e in events]

    def _on_change(self, ev: ChangeEvent) -> None:
        if self.space_id is not None and ev.space_id is not None and ev.space_id != self.space_id:
            return
        self.value = self.loader()
        self.reloads += 1

    def close(self) -> None:
        for u in self._unsubs:
            u()
        self._unsubs = []

    def __enter__(self) -> "LiveQuery[T]":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


hub = RealtimeHub()
