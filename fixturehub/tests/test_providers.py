from __future__ import annotations

import datetime as dt

from fixturehub.services.api_football import ApiFootballAdapter
from fixturehub.services.espn_scoreboard import ALL_EVENTS_BOARD, LEAGUE_SEGMENTS, ESPNScoreboardAdapter
from fixturehub.services.http_client import JsonHttpClient
from fixturehub.services.models import FixtureStatus
from fixturehub.services.provider_base import FetchFilters
from fixturehub.services.sportsdb import (
    SPORTSDB_SPORTS,
    SportsDBEventsAdapter,
    SportsDBTeamLogoAdapter,
    pick_team_candidate,
)


class FakeHttp(JsonHttpClient):
    """Serves canned (payload, error) pairs keyed by a URL substring."""

    def __init__(self, routes: dict[str, tuple]) -> None:
        super().__init__(retries=1, backoff_seconds=0)
        self.routes = routes
        self.calls: list[tuple[str, dict | None, dict | None]] = []

    def get_json(self, url, params=None, headers=None, retries=None):  # noqa: ANN001
        self.calls.append((url, params, headers))
        for fragment, answer in self.routes.items():
            if fragment in url:
                return answer(params) if callable(answer) else answer
        return None, "HTTP 404"


def _segment(league: str):
    return next(segment for segment in LEAGUE_SEGMENTS if segment.espn_league == league)


def _espn_event(event_id: str = "401", status: str = "STATUS_HALFTIME") -> dict:
    return {
        "id": event_id,
        "date": "2024-05-01T14:00Z",
        "name": "Chelsea at Arsenal",
        "status": {"type": {"name": status, "state": "in"}},
        "competitions": [
            {
                "competitors": [
                    {"homeAway": "home", "team": {"displayName": "Arsenal", "logo": "http://a.png"}},
                    {"homeAway": "away", "team": {"displayName": "Chelsea", "logos": [{"href": "//c.png"}]}},
                ]
            }
        ],
    }


def test_espn_adapter_normalizes_scoreboard() -> None:
    http = FakeHttp({"soccer/eng.1/scoreboard": ({"events": [_espn_event()]}, None)})
    adapter = ESPNScoreboardAdapter(http, _segment("eng.1"))

    result = adapter.fetch("2024-05-01")

    assert result.ok
    assert http.calls[0][1] == {"dates": "20240501"}
    fixture = result.fixtures[0]
    assert fixture.id == "espn:401"
    assert fixture.source == "espn:eng.1"
    assert fixture.league.name == "Premier League"
    assert fixture.tier == 1
    assert fixture.status == FixtureStatus.HALF
    assert fixture.start_utc == dt.datetime(2024, 5, 1, 14, 0, tzinfo=dt.UTC)
    assert fixture.home.name == "Arsenal"
    assert fixture.home.logo == "https://a.png"
    assert fixture.away.logo == "https://c.png"


def test_espn_adapter_falls_back_to_event_name() -> None:
    event = _espn_event()
    event["competitions"] = [{}]
    http = FakeHttp({"soccer/scoreboard": ({"events": [event]}, None)})
    adapter = ESPNScoreboardAdapter(http, ALL_EVENTS_BOARD)

    result = adapter.fetch("2024-05-01")

    assert http.calls[0][0].endswith("/soccer/scoreboard")
    fixture = result.fixtures[0]
    assert (fixture.home.name, fixture.away.name) == ("Arsenal", "Chelsea")
    assert fixture.league.name == ""
    assert fixture.tier is None


def test_espn_adapter_skips_bad_events_but_keeps_the_rest() -> None:
    broken = {"id": "402", "date": "garbage"}
    http = FakeHttp({"scoreboard": ({"events": [broken, _espn_event(), "junk"]}, None)})
    result = ESPNScoreboardAdapter(http, _segment("eng.1")).fetch("2024-05-01")

    assert len(result.fixtures) == 1
    assert result.skipped == 2
    assert result.ok


def test_malformed_envelope_yields_reason() -> None:
    http = FakeHttp({"scoreboard": ({"events": {"not": "a list"}}, None)})
    result = ESPNScoreboardAdapter(http, _segment("eng.1")).fetch("2024-05-01")

    assert result.fixtures == []
    assert "malformed payload" in result.reason


def test_transport_error_yields_reason() -> None:
    http = FakeHttp({"scoreboard": (None, "network:Timeout after 3 attempt(s)")})
    result = ESPNScoreboardAdapter(http, _segment("nba")).fetch("2024-05-01")

    assert result.fixtures == []
    assert result.reason == "network:Timeout after 3 attempt(s)"


def test_sport_filter_disables_adapter() -> None:
    http = FakeHttp({})
    adapter = ESPNScoreboardAdapter(http, _segment("nba"))

    result = adapter.fetch("2024-05-01", FetchFilters(sports=frozenset({"Soccer"})))

    assert result.reason == "disabled by sport filter"
    assert http.calls == []


def test_api_football_without_key_is_disabled() -> None:
    http = FakeHttp({})
    result = ApiFootballAdapter(http, api_key="").fetch("2024-05-01")

    assert result.reason == "API_SPORTS_KEY is not configured"
    assert http.calls == []


def test_api_football_pages_and_normalizes() -> None:
    def page(params):  # noqa: ANN001
        number = params["page"]
        row = {
            "fixture": {"id": 1000 + number, "date": "2024-05-01T14:00:00+00:00", "status": {"short": "FT"}},
            "league": {"id": 39, "name": "Premier League"},
            "teams": {"home": {"name": f"Home {number}"}, "away": {"name": f"Away {number}"}},
        }
        return {"response": [row], "paging": {"current": number, "total": 2}, "errors": []}, None

    http = FakeHttp({"/fixtures": page})
    result = ApiFootballAdapter(http, api_key="demo").fetch("2024-05-01")

    assert [fixture.id for fixture in result.fixtures] == ["af:1001", "af:1002"]
    assert result.fixtures[0].status == FixtureStatus.FINISHED
    assert result.fixtures[0].league.code == "39"
    assert http.calls[0][2] == {"x-apisports-key": "demo"}


def test_api_football_upstream_errors_are_failures() -> None:
    http = FakeHttp({"/fixtures": ({"errors": {"token": "Error/Missing application key."}, "response": []}, None)})
    result = ApiFootballAdapter(http, api_key="demo").fetch("2024-05-01")

    assert result.fixtures == []
    assert "Missing application key" in result.reason


def test_api_football_respects_daily_budget() -> None:
    http = FakeHttp({"/fixtures": ({"response": [], "paging": {"total": 1}}, None)})
    adapter = ApiFootballAdapter(http, api_key="demo", max_daily_calls=1)

    assert adapter.fetch("2024-05-01").ok
    second = adapter.fetch("2024-05-02")

    assert "budget" in second.reason
    assert len(http.calls) == 1


def test_sportsdb_null_events_is_an_empty_day() -> None:
    http = FakeHttp({"eventsday.php": ({"events": None}, None)})
    result = SportsDBEventsAdapter(http, "3", SPORTSDB_SPORTS[0]).fetch("2024-05-01")

    assert result.ok
    assert result.fixtures == []


def test_sportsdb_date_only_events_are_flagged_approximate() -> None:
    events = [
        {
            "idEvent": "55",
            "strHomeTeam": "Boston Celtics",
            "strAwayTeam": "Miami Heat",
            "strLeague": "NBA",
            "dateEvent": "2024-05-01",
            "strTime": "",
        },
        {"idEvent": "56", "strHomeTeam": "A", "strAwayTeam": "B", "strLeague": "EuroLeague"},
    ]
    http = FakeHttp({"eventsday.php": ({"events": events}, None)})
    nba = next(sport for sport in SPORTSDB_SPORTS if sport.sport == "NBA")

    result = SportsDBEventsAdapter(http, "3", nba).fetch("2024-05-01")

    assert http.calls[0][1] == {"d": "2024-05-01", "s": "Basketball"}
    assert len(result.fixtures) == 1
    fixture = result.fixtures[0]
    assert fixture.id == "sdb:55"
    assert fixture.sport == "NBA"
    assert fixture.approximate_start is True
    assert fixture.start_utc == dt.datetime(2024, 5, 1, 0, 0, tzinfo=dt.UTC)


def test_sportsdb_uses_timestamp_when_present() -> None:
    event = {
        "idEvent": "57",
        "strHomeTeam": "Arsenal",
        "strAwayTeam": "Chelsea",
        "strLeague": "English Premier League",
        "strTimestamp": "2024-05-01T14:00:00",
        "strHomeTeamBadge": "http://badge/a.png",
    }
    http = FakeHttp({"eventsday.php": ({"events": [event]}, None)})
    fixture = SportsDBEventsAdapter(http, "3", SPORTSDB_SPORTS[0]).fetch("2024-05-01").fixtures[0]

    assert fixture.approximate_start is False
    assert fixture.start_utc.hour == 14
    assert fixture.tier == 1
    assert fixture.home.logo == "https://badge/a.png"


def test_pick_team_candidate_prefers_exact_then_alias_then_substring() -> None:
    candidates = [
        {"strTeam": "Arsenal Tula", "strSport": "Soccer"},
        {"strTeam": "Gunners Select", "strAlternate": "Arsenal FC, The Gunners", "strSport": "Soccer"},
        {"strTeam": "Arsenal", "strSport": "Soccer"},
        {"strTeam": "Arsenal", "strSport": "Basketball"},
    ]
    assert pick_team_candidate(candidates, "Arsenal FC", "Soccer") is candidates[2]
    assert pick_team_candidate(candidates[:2], "The Gunners", "Soccer") is candidates[1]
    assert pick_team_candidate(candidates[:1], "Arsenal", "Soccer") is candidates[0]
    assert pick_team_candidate(candidates[3:], "Arsenal", "Soccer") is None


def test_logo_lookup_distinguishes_miss_from_failure() -> None:
    found = FakeHttp({"searchteams.php": ({"teams": [{"strTeam": "Arsenal", "strBadge": "http://b/a.png"}]}, None)})
    assert SportsDBTeamLogoAdapter(found, "3").lookup("Arsenal") == ("https://b/a.png", None)

    missing = FakeHttp({"searchteams.php": ({"teams": None}, None)})
    assert SportsDBTeamLogoAdapter(missing, "3").lookup("Nobody") == (None, None)

    failing = FakeHttp({"searchteams.php": (None, "HTTP 500 after 2 attempt(s)")})
    assert SportsDBTeamLogoAdapter(failing, "3").lookup("Arsenal") == (None, "HTTP 500 after 2 attempt(s)")
