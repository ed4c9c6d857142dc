"""
Notification records and the append-only log they are emitted onto.

Every successful state change in a registry or a ledger appends one
`Notification`. The log is a derived side channel: the state fields of the
emitting instance are authoritative, and a subscriber that fails never rolls
anything back.

Notification names:
  - EntityCreated     {id, owner, init}
  - EntityChanged     {id, state}
  - Deposit           {depositor, amount, timestamp}
  - Withdrawal        {recipient, amount, timestamp}
  - RecipientChanged  {previous, recipient}
  - Halted            {by}
  - Resumed           {by}

Timestamps use UNIX milliseconds. `seq` is dense and zero-based per source.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional
import time

from ledgerlab.logging import get_logger

log = get_logger(__name__)

Clock = Callable[[], int]
Handler = Callable[["Notification"], None]


def now_ms() -> int:
    """Current UNIX time in milliseconds (int)."""
    return int(time.time() * 1000)


class NotificationName(str, Enum):
    ENTITY_CREATED = "EntityCreated"
    ENTITY_CHANGED = "EntityChanged"
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"
    RECIPIENT_CHANGED = "RecipientChanged"
    HALTED = "Halted"
    RESUMED = "Resumed"


@dataclass(frozen=True)
class Notification:
    seq: int
    name: str
    source: str
    ts_ms: int
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "name": self.name,
            "source": self.source,
            "ts_ms": self.ts_ms,
            "fields": dict(self.fields),
        }

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Notification":
        return Notification(
            seq=int(d["seq"]),
            name=str(d["name"]),
            source=str(d["source"]),
            ts_ms=int(d["ts_ms"]),
            fields=dict(d.get("fields") or {}),
        )


class NotificationLog:
    """
    Append-only, in-memory notification log for one source (registry or ledger).

    `next_seq` lets a restored instance continue numbering where the
    persisted log left off without holding the old records in memory.
    """

    def __init__(self, source: str, *, clock: Optional[Clock] = None, next_seq: int = 0) -> None:
        self.source = source
        self._clock = clock or now_ms
        self._records: List[Notification] = []
        self._base = int(next_seq)
        self._handlers: List[Handler] = []
        self._lock = RLock()

    def __len__(self) -> int:
        return self._base + len(self._records)

    @property
    def next_seq(self) -> int:
        return len(self)

    def now(self) -> int:
        return int(self._clock())

    def emit(
        self,
        name: NotificationName | str,
        *,
        stamp: Optional[str] = None,
        **fields: Any,
    ) -> Notification:
        """
        Append one record. If `stamp` names a field, that field carries the
        same clock reading as the record's `ts_ms`.
        """
        with self._lock:
            ts = self.now()
            if stamp is not None:
                fields[stamp] = ts
            rec = Notification(
                seq=len(self),
                name=name.value if isinstance(name, NotificationName) else str(name),
                source=self.source,
                ts_ms=ts,
                fields=fields,
            )
            self._records.append(rec)
            handlers = tuple(self._handlers)
        for h in handlers:
            try:
                h(rec)
            except Exception:
                log.exception(
                    "notification handler failed",
                    extra={"notification": rec.name, "seq": rec.seq},
                )
        return rec

    def records(self, since: int = 0) -> List[Notification]:
        """Records with seq >= since that are still held in memory."""
        with self._lock:
            return [r for r in self._records if r.seq >= since]

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register `handler`; returns a callable that unsubscribes it."""
        with self._lock:
            self._handlers.append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _unsubscribe


__all__ = [
    "Clock",
    "Notification",
    "NotificationLog",
    "NotificationName",
    "now_ms",
]
