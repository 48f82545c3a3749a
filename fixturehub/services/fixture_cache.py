from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from fixturehub.services.models import CacheEntry
from fixturehub.services.normalize import local_today_iso
from fixturehub.services.persistent_store import PersistentStore


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class CacheLookup:
    entry: CacheEntry | None = None
    tier: str | None = None
    fresh: bool = False

    @property
    def hit(self) -> bool:
        return self.entry is not None and self.fresh


class FixtureCache:
    """Memory tier in front of per-date files.

    The current local day goes stale after ``today_ttl_seconds`` because live
    scores move; other days use the much longer ``settled_ttl_seconds``.
    Empty assemblies are never stored.
    """

    def __init__(
        self,
        store: PersistentStore,
        memory_ttl_seconds: int = 300,
        today_ttl_seconds: int = 180,
        settled_ttl_seconds: int = 21600,
        clock: Callable[[], int] = now_millis,
        today: Callable[[], str] = local_today_iso,
    ) -> None:
        self.store = store
        self.memory_ttl_ms = int(memory_ttl_seconds) * 1000
        self.today_ttl_ms = int(today_ttl_seconds) * 1000
        self.settled_ttl_ms = int(settled_ttl_seconds) * 1000
        self._clock = clock
        self._today = today
        self._memory: dict[str, tuple[CacheEntry, int]] = {}
        self._lock = threading.Lock()

    def now(self) -> int:
        return self._clock()

    def ttl_ms_for(self, date: str) -> int:
        return self.today_ttl_ms if date == self._today() else self.settled_ttl_ms

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.written_at_unix_millis < self.ttl_ms_for(entry.date)

    def _remember(self, entry: CacheEntry) -> None:
        with self._lock:
            memory = dict(self._memory)
            memory[entry.date] = (entry, self._clock())
            self._memory = memory

    def _read_disk(self, date: str) -> CacheEntry | None:
        raw = self.store.load_map(date)
        if not raw:
            return None
        try:
            entry = CacheEntry.model_validate(raw)
        except ValueError as exc:
            logger.warning(f"Discarding malformed cache file for {date}: {exc}")
            return None
        return entry if entry.date == date else None

    def peek_memory(self, date: str) -> CacheLookup:
        slot = self._memory.get(date)
        if slot is None:
            return CacheLookup()
        entry, loaded_at = slot
        fresh = self._clock() - loaded_at < self.memory_ttl_ms and self.is_fresh(entry)
        return CacheLookup(entry=entry, tier="memory", fresh=fresh)

    def read(self, date: str) -> CacheLookup:
        memory = self.peek_memory(date)
        if memory.hit:
            logger.bind(date=date).debug("cache hit tier=memory")
            return memory

        disk_entry = self._read_disk(date)
        if disk_entry is not None:
            self._remember(disk_entry)
            lookup = CacheLookup(entry=disk_entry, tier="disk", fresh=self.is_fresh(disk_entry))
            logger.bind(date=date).debug(f"cache {'hit' if lookup.fresh else 'stale'} tier=disk")
            return lookup

        if memory.entry is not None:
            return CacheLookup(entry=memory.entry, tier="memory", fresh=self.is_fresh(memory.entry))

        logger.bind(date=date).debug("cache miss")
        return CacheLookup()

    def write(self, entry: CacheEntry) -> bool:
        if not entry.fixtures:
            logger.bind(date=entry.date).info("Skipping cache write for an empty fixture set.")
            return False
        self._remember(entry)
        self.store.save_map(entry.date, entry.to_json_dict())
        return True

    def flush(self, date: str) -> bool:
        with self._lock:
            memory = dict(self._memory)
            had_memory = memory.pop(date, None) is not None
            self._memory = memory
        had_disk = self.store.delete(date)
        return had_memory or had_disk

    def flush_all(self) -> int:
        with self._lock:
            dates = set(self._memory)
            self._memory = {}
        for date in self.store.list_dates():
            if self.store.delete(date):
                dates.add(date)
        return len(dates)

    def cached_dates(self) -> list[str]:
        return sorted(set(self._memory) | set(self.store.list_dates()))
