"""Record cache that tracks expiry and asks for renewal before records expire."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, fields
from typing import Callable, List, Optional

from .dns import ANY
from .records import Record

Clock = Callable[[], float]
RecordCallback = Callable[[Record], None]

# Fractions of the TTL at which a renewal query is due; the record expires at 100%.
_QUERY_POINTS = (0.50, 0.85, 0.90, 0.95)
_MAX_JITTER_MS = 20
_IGNORED_FIELDS = frozenset({"ttl", "flush_cache"})


def _same_record(a: Record, b: Record) -> bool:
    """Compare two records by identity and data, ignoring TTL and the flush bit."""
    return all(
        getattr(a, f.name) == getattr(b, f.name)
        for f in fields(Record)
        if f.name not in _IGNORED_FIELDS
    )


@dataclass
class _Entry:
    record: Record
    triggers: List[float]


class Cache:
    """Hold records until their TTL runs out.

    Time is read from ``clock`` (seconds). Nothing runs on its own: the owner
    calls :meth:`check` at or after :meth:`next_trigger` to fire callbacks.
    Callbacks in ``should_query`` are called when a record is due for renewal,
    callbacks in ``record_expired`` when a record leaves the cache.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock if clock is not None else time.monotonic
        self._entries: List[_Entry] = []
        self._next_trigger: Optional[float] = None
        self.should_query: List[RecordCallback] = []
        self.record_expired: List[RecordCallback] = []

    def _emit(self, callbacks: List[RecordCallback], record: Record) -> None:
        for callback in list(callbacks):
            callback(record)

    def add_record(self, record: Record) -> None:
        """Insert or refresh a record; a TTL of zero removes a matching record."""
        remaining: List[_Entry] = []
        entries = iter(self._entries)
        for entry in entries:
            matches = (
                record.flush_cache
                and entry.record.name == record.name
                and entry.record.type == record.type
            ) or _same_record(entry.record, record)
            if not matches:
                remaining.append(entry)
                continue
            if record.ttl == 0:
                self._emit(self.record_expired, entry.record)
                remaining.extend(entries)
                self._entries = remaining
                return
        self._entries = remaining

        now = self._clock()
        jitter = random.randrange(_MAX_JITTER_MS) / 1000.0
        triggers = [now + record.ttl * point + jitter for point in _QUERY_POINTS]
        triggers.append(now + record.ttl)
        self._entries.append(_Entry(record, triggers))

        if self._next_trigger is None or triggers[0] < self._next_trigger:
            self._next_trigger = triggers[0]

    def lookup_records(self, name: Optional[bytes], type: int) -> List[Record]:
        """Return all records matching name (None for any) and type (ANY for any)."""
        return [
            entry.record
            for entry in self._entries
            if (name is None or entry.record.name == name)
            and (type == ANY or entry.record.type == type)
        ]

    def lookup_record(self, name: Optional[bytes], type: int) -> Optional[Record]:
        """Return the first matching record, or None."""
        records = self.lookup_records(name, type)
        return records[0] if records else None

    def next_trigger(self) -> Optional[float]:
        """Return the clock time at which :meth:`check` next has work, or None."""
        return self._next_trigger

    def check(self) -> None:
        """Fire renewal and expiry callbacks for every trigger that has passed."""
        now = self._clock()
        new_next: Optional[float] = None
        kept: List[_Entry] = []
        for entry in self._entries:
            should_query = False
            while entry.triggers and entry.triggers[0] <= now:
                entry.triggers.pop(0)
                should_query = True
            if entry.triggers:
                if new_next is None or entry.triggers[0] < new_next:
                    new_next = entry.triggers[0]
                if should_query:
                    self._emit(self.should_query, entry.record)
                kept.append(entry)
            else:
                self._emit(self.record_expired, entry.record)
        self._entries = kept
        self._next_trigger = new_next