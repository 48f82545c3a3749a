from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from loguru import logger

from fixturehub.services.models import Fixture
from fixturehub.services.provider_base import AdapterResult, FetchFilters, ProviderAdapter


@dataclass
class FetchOutcome:
    results: list[AdapterResult] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)

    @property
    def fixtures(self) -> list[Fixture]:
        return [fixture for result in self.results for fixture in result.fixtures]

    @property
    def source_counts(self) -> dict[str, int]:
        return {result.source: len(result.fixtures) for result in self.results}


class FetchOrchestrator:
    """Fan out one date to every adapter and join without short-circuiting.

    Results are reported in adapter registration order, not completion order,
    so the merge sees a reproducible provider priority.
    """

    def __init__(
        self,
        primary: list[ProviderAdapter],
        secondary: list[ProviderAdapter],
        fallback_mode: str = "on_empty",
        max_workers: int = 16,
    ) -> None:
        self.primary = list(primary)
        self.secondary = list(secondary)
        self.fallback_mode = fallback_mode
        self.max_workers = max(1, int(max_workers))

    @property
    def adapters(self) -> list[ProviderAdapter]:
        return self.primary + self.secondary

    def run_adapters(self, adapters: list[ProviderAdapter], date: str, filters: FetchFilters) -> list[AdapterResult]:
        active = [adapter for adapter in adapters if adapter.enabled_for(filters)]
        if not active:
            return []
        with ThreadPoolExecutor(max_workers=min(len(active), self.max_workers)) as executor:
            futures = [executor.submit(adapter.fetch, date, filters) for adapter in active]
            return [future.result() for future in futures]

    def run(self, date: str, filters: FetchFilters | None = None) -> FetchOutcome:
        filters = filters or FetchFilters()
        outcome = FetchOutcome()

        if self.fallback_mode == "always":
            outcome.results = self.run_adapters(self.primary + self.secondary, date, filters)
        else:
            outcome.results = self.run_adapters(self.primary, date, filters)
            primary_total = sum(len(result.fixtures) for result in outcome.results)
            if self.fallback_mode == "on_empty" and primary_total == 0:
                outcome.notices.append("Primary sources returned no fixtures; fallback sources queried.")
                outcome.results.extend(self.run_adapters(self.secondary, date, filters))
            elif self.secondary:
                outcome.notices.append("Fallback sources skipped.")

        for result in outcome.results:
            if result.reason:
                outcome.notices.append(f"{result.source}: {result.reason}")

        logger.bind(date=date).info(
            f"Fetched {len(outcome.fixtures)} raw fixtures from {len(outcome.results)} source call(s)."
        )
        return outcome
