from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from fixturehub.services.http_client import JsonHttpClient
from fixturehub.services.models import Fixture

PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError)


@dataclass(frozen=True)
class FetchFilters:
    sports: frozenset[str] = frozenset({"Soccer", "NBA", "NFL", "NHL"})

    def allows(self, sport: str) -> bool:
        return sport in self.sports


@dataclass
class AdapterResult:
    source: str
    fixtures: list[Fixture] = field(default_factory=list)
    reason: str | None = None
    skipped: int = 0
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.reason is None


class ProviderAdapter:
    """One upstream source. Subclasses implement ``_fetch`` and ``normalize``.

    ``fetch`` is the only public entry point and never raises: transport
    failures and malformed envelopes come back as an empty result carrying a
    diagnostic reason.
    """

    name = "provider"
    sport = "Soccer"

    def __init__(self, http: JsonHttpClient) -> None:
        self.http = http

    def enabled_for(self, filters: FetchFilters) -> bool:
        return filters.allows(self.sport)

    def fetch(self, date: str, filters: FetchFilters | None = None) -> AdapterResult:
        filters = filters or FetchFilters()
        started = time.perf_counter()
        if not self.enabled_for(filters):
            return AdapterResult(source=self.name, reason="disabled by sport filter")

        try:
            result = self._fetch(date, filters)
        except PAYLOAD_ERRORS as exc:
            result = AdapterResult(
                source=self.name,
                reason=f"malformed payload: {exc.__class__.__name__}: {exc}",
            )

        result.elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        if result.reason:
            logger.bind(provider=self.name, date=date).warning(
                f"Provider {self.name} returned no usable data: {result.reason}"
            )
        elif result.skipped:
            logger.bind(provider=self.name, date=date).info(
                f"Provider {self.name} skipped {result.skipped} malformed event(s)."
            )
        return result

    def _fetch(self, date: str, filters: FetchFilters) -> AdapterResult:
        raise NotImplementedError

    def normalize(self, raw: dict[str, Any], date: str) -> Fixture | None:
        raise NotImplementedError

    def _normalize_all(self, rows: Any, date: str) -> AdapterResult:
        if not isinstance(rows, list):
            return AdapterResult(source=self.name, reason="malformed payload: event list missing")

        fixtures: list[Fixture] = []
        skipped = 0
        for raw in rows:
            if not isinstance(raw, dict):
                skipped += 1
                continue
            try:
                fixture = self.normalize(raw, date)
            except PAYLOAD_ERRORS:
                fixture = None
            if fixture is None:
                skipped += 1
                continue
            fixtures.append(fixture)
        return AdapterResult(source=self.name, fixtures=fixtures, skipped=skipped)
