from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from loguru import logger

from fixturehub.services.models import Fixture, LogoCacheEntry
from fixturehub.services.normalize import norm_text, normalize_team_name
from fixturehub.services.persistent_store import PersistentStore
from fixturehub.services.sportsdb import SportsDBTeamLogoAdapter

LOGO_CACHE_NAMESPACE = "_logos"


def team_key(sport: str, name: str) -> str:
    return f"{norm_text(sport)}|{normalize_team_name(name)}"


def _now_millis() -> int:
    return int(time.time() * 1000)


class LogoCache:
    """Process-wide (sport, team) -> badge map, including expiring negative entries."""

    def __init__(
        self,
        store: PersistentStore | None = None,
        ttl_hours: int = 168,
        negative_ttl_hours: int = 12,
        clock: Callable[[], int] = _now_millis,
    ) -> None:
        self.store = store
        self.ttl_ms = int(ttl_hours) * 3600 * 1000
        self.negative_ttl_ms = int(negative_ttl_hours) * 3600 * 1000
        self._clock = clock
        self._entries: dict[str, LogoCacheEntry] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if self.store is None:
            return
        data = self.store.load_map(LOGO_CACHE_NAMESPACE)
        loaded: dict[str, LogoCacheEntry] = {}
        for key, raw in data.items():
            if not isinstance(raw, dict):
                continue
            try:
                loaded[str(key)] = LogoCacheEntry.model_validate(raw)
            except ValueError:
                continue
        self._entries = loaded
        if loaded:
            logger.info(f"Loaded logo cache entries: {len(loaded)}.")

    def _is_fresh(self, entry: LogoCacheEntry) -> bool:
        ttl = self.ttl_ms if entry.url else self.negative_ttl_ms
        return self._clock() - entry.written_at_unix_millis < ttl

    def get(self, sport: str, name: str) -> LogoCacheEntry | None:
        entry = self._entries.get(team_key(sport, name))
        if entry is None or not self._is_fresh(entry):
            return None
        return entry

    def put(self, sport: str, name: str, url: str | None) -> None:
        entry = LogoCacheEntry(sport=sport, name=name, url=url, written_at_unix_millis=self._clock())
        with self._lock:
            entries = dict(self._entries)
            entries[team_key(sport, name)] = entry
            self._entries = entries

    def save(self) -> None:
        if self.store is None:
            return
        snapshot = {
            key: entry.model_dump(mode="json", by_alias=True)
            for key, entry in self._entries.items()
            if self._is_fresh(entry)
        }
        self.store.save_map(LOGO_CACHE_NAMESPACE, snapshot)

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._entries)
            self._entries = {}
        if self.store is not None:
            self.store.delete(LOGO_CACHE_NAMESPACE)
        return cleared

    def __len__(self) -> int:
        return len(self._entries)


class LogoEnricher:
    def __init__(
        self,
        lookup: SportsDBTeamLogoAdapter,
        cache: LogoCache,
        batch_size: int = 6,
    ) -> None:
        self.lookup = lookup
        self.cache = cache
        self.batch_size = max(1, min(10, int(batch_size)))

    def _missing_teams(self, fixtures: list[Fixture]) -> list[tuple[str, str]]:
        wanted: dict[str, tuple[str, str]] = {}
        for fixture in fixtures:
            for side in (fixture.home, fixture.away):
                if side.logo or not side.name:
                    continue
                if self.cache.get(fixture.sport, side.name) is not None:
                    continue
                wanted.setdefault(team_key(fixture.sport, side.name), (fixture.sport, side.name))
        return list(wanted.values())

    def _lookup_one(self, sport: str, name: str) -> bool:
        url, error = self.lookup.lookup(name, sport)
        if error:
            # Transport failures are not cached; a clean miss is.
            logger.bind(provider=self.lookup.name).warning(f"Logo lookup failed for {name!r}: {error}")
            return False
        self.cache.put(sport, name, url)
        return url is not None

    def enrich(self, fixtures: list[Fixture]) -> list[Fixture]:
        missing = self._missing_teams(fixtures)
        found = 0
        if missing:
            with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
                for start in range(0, len(missing), self.batch_size):
                    batch = missing[start : start + self.batch_size]
                    found += sum(executor.map(lambda item: self._lookup_one(*item), batch))
            self.cache.save()
            logger.info(f"Logo enrichment looked up {len(missing)} team(s), found {found}.")

        enriched: list[Fixture] = []
        for fixture in fixtures:
            home_logo = fixture.home.logo or self._cached_url(fixture.sport, fixture.home.name)
            away_logo = fixture.away.logo or self._cached_url(fixture.sport, fixture.away.name)
            if home_logo == fixture.home.logo and away_logo == fixture.away.logo:
                enriched.append(fixture)
                continue
            enriched.append(
                fixture.model_copy(
                    update={
                        "home": fixture.home.model_copy(update={"logo": home_logo}),
                        "away": fixture.away.model_copy(update={"logo": away_logo}),
                    }
                )
            )
        return enriched

    def _cached_url(self, sport: str, name: str) -> str | None:
        entry = self.cache.get(sport, name)
        return entry.url if entry is not None else None
