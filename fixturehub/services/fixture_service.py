from __future__ import annotations

import datetime as dt
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import Any

from loguru import logger

from fixturehub.config import Config
from fixturehub.services.api_football import ApiFootballAdapter
from fixturehub.services.enricher import LogoCache, LogoEnricher
from fixturehub.services.espn_scoreboard import build_espn_adapters
from fixturehub.services.fixture_cache import CacheLookup, FixtureCache
from fixturehub.services.http_client import JsonHttpClient
from fixturehub.services.merger import merge_fixtures
from fixturehub.services.models import CacheEntry, CacheMeta
from fixturehub.services.normalize import local_now
from fixturehub.services.orchestrator import FetchOrchestrator
from fixturehub.services.persistent_store import PersistentStore
from fixturehub.services.provider_base import FetchFilters
from fixturehub.services.sportsdb import SportsDBTeamLogoAdapter, build_sportsdb_adapters


class DateState(str, Enum):
    COLD = "COLD"
    BUILDING = "BUILDING"
    WARM = "WARM"
    STALE = "STALE"


def _dedupe_text(items: list[str]) -> list[str]:
    deduped: list[str] = []
    seen: set[str] = set()
    for item in items:
        value = str(item).strip()
        if not value or value in seen:
            continue
        seen.add(value)
        deduped.append(value)
    return deduped


def _payload(entry: CacheEntry, cache_state: str, extra_notices: list[str] | None = None) -> dict[str, Any]:
    data = entry.to_json_dict()
    meta = data["meta"]
    meta["notices"] = _dedupe_text(meta.get("notices", []) + (extra_notices or []))
    meta["cache"] = cache_state
    meta["builtAt"] = (
        dt.datetime.fromtimestamp(entry.written_at_unix_millis / 1000, tz=dt.UTC)
        .isoformat()
        .replace("+00:00", "Z")
    )
    return {"date": entry.date, "fixtures": data["fixtures"], "meta": meta}


class FixtureService:
    """Entry point for one date's fixture payload.

    Holds no per-request state apart from the in-flight map, whose entries
    live exactly as long as one assembly.
    """

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        enricher: LogoEnricher,
        cache: FixtureCache,
        filters: FetchFilters | None = None,
        strict_merge_key: bool = False,
        http: JsonHttpClient | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.enricher = enricher
        self.cache = cache
        self.filters = filters or FetchFilters()
        self.strict_merge_key = strict_merge_key
        self.http = http
        self._inflight: dict[str, Future] = {}
        self._inflight_lock = threading.Lock()
        self._refresh_stop = threading.Event()
        self._refresh_thread: threading.Thread | None = None
        self.build_count = 0

    def state(self, date: str) -> DateState:
        if date in self._inflight:
            return DateState.BUILDING
        entry = self.cache.peek_memory(date).entry or self.cache.read(date).entry
        if entry is None:
            return DateState.COLD
        return DateState.WARM if self.cache.is_fresh(entry) else DateState.STALE

    def get(self, date: str, force: bool = False) -> dict[str, Any]:
        lookup = CacheLookup()
        if not force:
            lookup = self.cache.read(date)
            if lookup.hit:
                return _payload(lookup.entry, lookup.tier or "memory")

        with self._inflight_lock:
            future = self._inflight.get(date)
            owner = future is None
            if owner:
                if not force:
                    # A build may have finished between the read above and taking the lock.
                    memory = self.cache.peek_memory(date)
                    if memory.hit:
                        return _payload(memory.entry, "memory")
                future = Future()
                self._inflight[date] = future

        if not owner:
            logger.bind(date=date).debug("Joining in-flight build.")
            return future.result()

        try:
            result = self._build(date, stale=lookup.entry)
        except Exception as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._inflight_lock:
                self._inflight.pop(date, None)

    def _build(self, date: str, stale: CacheEntry | None = None) -> dict[str, Any]:
        started = time.perf_counter()
        with self._inflight_lock:
            self.build_count += 1
        log = logger.bind(date=date)

        outcome = self.orchestrator.run(date, self.filters)
        raw = outcome.fixtures
        merged = merge_fixtures(raw, strict=self.strict_merge_key)
        fixtures = self.enricher.enrich(merged)

        entry = CacheEntry(
            date=date,
            fixtures=fixtures,
            meta=CacheMeta(source_counts=outcome.source_counts, notices=_dedupe_text(outcome.notices)),
            written_at_unix_millis=self.cache.now(),
        )
        elapsed_ms = (time.perf_counter() - started) * 1000
        log.info(f"Assembled {len(fixtures)} fixtures from {len(raw)} raw records in {elapsed_ms:.0f} ms.")

        if self.cache.write(entry):
            return _payload(entry, "live")

        if stale is None:
            stale = self.cache.read(date).entry
        if stale is not None and stale.fixtures:
            log.warning("Rebuild produced no fixtures; serving the previous cache entry.")
            return _payload(
                stale,
                "stale",
                extra_notices=[
                    f"Rebuild for {date} returned no fixtures; serving cached fixtures.",
                    *entry.meta.notices,
                ],
            )
        return _payload(entry, "live")

    def precache(self, date: str) -> dict[str, Any]:
        payload = self.get(date, force=True)
        return {
            "ok": True,
            "date": date,
            "counts": payload["meta"].get("sourceCounts", {}),
            "size": len(payload["fixtures"]),
        }

    def flush(self, date: str | None = None) -> dict[str, Any]:
        if date is None:
            cleared = self.cache.flush_all()
            logos = self.enricher.cache.clear()
            logger.info(f"Flushed {cleared} cached date(s) and {logos} logo entries.")
            return {"ok": True, "cleared": "all", "dates": cleared, "logos": logos}
        removed = self.cache.flush(date)
        logger.bind(date=date).info(f"Flushed cache entry (existed={removed}).")
        return {"ok": True, "cleared": date if removed else "none"}

    def probe(self, date: str) -> dict[str, Any]:
        report: dict[str, Any] = {"date": date}
        for result in self.orchestrator.run_adapters(self.orchestrator.adapters, date, self.filters):
            report[result.source] = {
                "ok": result.ok,
                "count": len(result.fixtures),
                "reason": result.reason,
                "elapsed_ms": result.elapsed_ms,
            }
        return report

    def diagnostics(self) -> dict[str, Any]:
        today = local_now().date()
        dates = [(today + dt.timedelta(days=offset)).isoformat() for offset in (-1, 0, 1)]
        budgets = {
            adapter.name: adapter.budget.status()
            for adapter in self.orchestrator.adapters
            if hasattr(adapter, "budget")
        }
        return {
            "fallback_mode": self.orchestrator.fallback_mode,
            "enabled_sports": sorted(self.filters.sports),
            "strict_merge_key": self.strict_merge_key,
            "adapters": [adapter.name for adapter in self.orchestrator.adapters],
            "disk_cache_enabled": self.cache.store.enabled,
            "disk_cache_error": self.cache.store.last_error,
            "cached_dates": self.cache.cached_dates(),
            "date_states": {date: self.state(date).value for date in dates},
            "logo_cache_entries": len(self.enricher.cache),
            "builds": self.build_count,
            "periodic_refresh": self._refresh_thread is not None,
            "api_budgets": budgets,
        }

    def _refresh_loop(self, interval_seconds: float) -> None:
        while not self._refresh_stop.wait(interval_seconds):
            today = local_now().date()
            for day in (today, today + dt.timedelta(days=1)):
                try:
                    self.get(day.isoformat(), force=True)
                except Exception:
                    logger.exception(f"Periodic rebuild failed for {day.isoformat()}")

    def start_periodic_refresh(self, interval_minutes: float) -> None:
        if interval_minutes <= 0 or self._refresh_thread is not None:
            return
        self._refresh_stop.clear()
        self._refresh_thread = threading.Thread(
            target=self._refresh_loop,
            args=(interval_minutes * 60.0,),
            name="fixture-refresh",
            daemon=True,
        )
        self._refresh_thread.start()
        logger.info(f"Periodic rebuild every {interval_minutes} minute(s) started.")

    def stop_periodic_refresh(self) -> None:
        self._refresh_stop.set()
        if self._refresh_thread is not None:
            self._refresh_thread.join(timeout=5)
            self._refresh_thread = None

    def close(self) -> None:
        self.stop_periodic_refresh()
        if self.http is not None:
            self.http.close()


def build_fixture_service(config: Config) -> FixtureService:
    http = JsonHttpClient(
        timeout_seconds=config.request_timeout_seconds,
        retries=config.request_retries,
        backoff_seconds=config.request_backoff_seconds,
    )
    store = PersistentStore(config.cache_dir)

    secondary = [
        ApiFootballAdapter(http, config.api_sports_key, max_daily_calls=config.max_daily_api_calls),
        *build_sportsdb_adapters(http, config.sportsdb_key),
    ]
    orchestrator = FetchOrchestrator(
        primary=list(build_espn_adapters(http)),
        secondary=secondary,
        fallback_mode=config.fallback_mode,
    )
    enricher = LogoEnricher(
        lookup=SportsDBTeamLogoAdapter(http, config.sportsdb_key),
        cache=LogoCache(
            store=store,
            ttl_hours=config.logo_ttl_hours,
            negative_ttl_hours=config.logo_negative_ttl_hours,
        ),
        batch_size=config.logo_batch_size,
    )
    cache = FixtureCache(
        store=store,
        memory_ttl_seconds=config.memory_ttl_seconds,
        today_ttl_seconds=config.today_ttl_seconds,
        settled_ttl_seconds=config.settled_ttl_seconds,
    )
    return FixtureService(
        orchestrator=orchestrator,
        enricher=enricher,
        cache=cache,
        filters=FetchFilters(sports=frozenset(config.enabled_sports)),
        strict_merge_key=config.strict_merge_key,
        http=http,
    )
