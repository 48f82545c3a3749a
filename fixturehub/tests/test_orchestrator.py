from __future__ import annotations

from fixturehub.services.orchestrator import FetchOrchestrator
from fixturehub.services.provider_base import FetchFilters
from fixturehub.tests.fakes import ScriptedAdapter

DATE = "2024-05-01"


def test_on_empty_skips_fallback_when_primary_has_fixtures() -> None:
    primary = ScriptedAdapter("espn:eng.1", [[("Arsenal", "Chelsea")]])
    secondary = ScriptedAdapter("sportsdb:soccer", [[("Liverpool", "Everton")]])
    orchestrator = FetchOrchestrator([primary], [secondary], fallback_mode="on_empty")

    outcome = orchestrator.run(DATE, FetchFilters())

    assert secondary.calls == 0
    assert outcome.source_counts == {"espn:eng.1": 1}
    assert outcome.notices == ["Fallback sources skipped."]


def test_always_queries_both_tiers_in_one_join() -> None:
    secondary = ScriptedAdapter("sportsdb:soccer", [[("Liverpool", "Everton")]])
    # The primary only proceeds once the secondary has started, so a serial run would stall.
    primary = ScriptedAdapter("espn:eng.1", [[("Arsenal", "Chelsea")]], gate=secondary.started)
    orchestrator = FetchOrchestrator([primary], [secondary], fallback_mode="always")

    outcome = orchestrator.run(DATE, FetchFilters())

    assert primary.gate_opened is True
    assert primary.calls == 1
    assert secondary.calls == 1
    assert list(outcome.source_counts) == ["espn:eng.1", "sportsdb:soccer"]
    assert "Fallback sources skipped." not in outcome.notices


def test_never_leaves_fallback_idle_even_when_primary_is_empty() -> None:
    primary = ScriptedAdapter("espn:eng.1", [None])
    secondary = ScriptedAdapter("sportsdb:soccer", [[("Liverpool", "Everton")]])
    orchestrator = FetchOrchestrator([primary], [secondary], fallback_mode="never")

    outcome = orchestrator.run(DATE, FetchFilters())

    assert secondary.calls == 0
    assert outcome.fixtures == []
    assert "Fallback sources skipped." in outcome.notices
    assert "espn:eng.1: network:Timeout after 3 attempt(s)" in outcome.notices


def test_results_follow_registration_order() -> None:
    slow = ScriptedAdapter("espn:eng.1", [[("Arsenal", "Chelsea")]])
    fast = ScriptedAdapter("espn:esp.1", [[("Sevilla", "Betis")]])
    slow.gate = fast.started
    orchestrator = FetchOrchestrator([slow, fast], [])

    outcome = orchestrator.run(DATE)

    assert [result.source for result in outcome.results] == ["espn:eng.1", "espn:esp.1"]
