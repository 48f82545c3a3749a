"""ESPN scoreboard adapter.

The primary source. Each major competition lives behind its own scoreboard
endpoint, so the adapter is instantiated once per league segment, plus once
for the soccer "all events" board which does not reliably list every
competition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fixturehub.services.http_client import JsonHttpClient
from fixturehub.services.models import Fixture, League, TeamSide
from fixturehub.services.normalize import (
    compact_date,
    map_status,
    parse_start_utc,
    secure_logo,
    slugify,
    split_event_name,
    tier_for_league,
)
from fixturehub.services.provider_base import AdapterResult, FetchFilters, ProviderAdapter

ESPN_BASE_URL = "https://site.api.espn.com/apis/site/v2/sports"
ESPN_HEADERS = {"Referer": "https://www.espn.com/"}


@dataclass(frozen=True)
class LeagueSegment:
    sport: str
    espn_sport: str
    espn_league: str
    name: str
    tier: int | None

    @property
    def is_all_board(self) -> bool:
        return self.espn_league == "all"

    @property
    def scoreboard_path(self) -> str:
        if self.is_all_board:
            return f"{self.espn_sport}/scoreboard"
        return f"{self.espn_sport}/{self.espn_league}/scoreboard"


LEAGUE_SEGMENTS = (
    LeagueSegment("Soccer", "soccer", "eng.1", "Premier League", 1),
    LeagueSegment("Soccer", "soccer", "esp.1", "LaLiga", 1),
    LeagueSegment("Soccer", "soccer", "ger.1", "Bundesliga", 1),
    LeagueSegment("Soccer", "soccer", "ita.1", "Serie A", 1),
    LeagueSegment("Soccer", "soccer", "fra.1", "Ligue 1", 1),
    LeagueSegment("Soccer", "soccer", "uefa.champions", "UEFA Champions League", 1),
    LeagueSegment("Soccer", "soccer", "uefa.europa", "UEFA Europa League", 1),
    LeagueSegment("Soccer", "soccer", "uefa.europa.conf", "UEFA Europa Conference League", 1),
    LeagueSegment("Soccer", "soccer", "eng.2", "EFL Championship", 2),
    LeagueSegment("NBA", "basketball", "nba", "NBA", 1),
    LeagueSegment("NFL", "football", "nfl", "NFL", 1),
    LeagueSegment("NHL", "hockey", "nhl", "NHL", 1),
)
ALL_EVENTS_BOARD = LeagueSegment("Soccer", "soccer", "all", "", None)


def _first(items: Any) -> dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _team_name(competitor: dict[str, Any]) -> str:
    team = competitor.get("team") or {}
    for key in ("displayName", "name", "shortDisplayName"):
        value = str(team.get(key) or "").strip()
        if value:
            return value
    return str(competitor.get("displayName") or "").strip()


def _team_logo(competitor: dict[str, Any]) -> str | None:
    team = competitor.get("team") or {}
    logo = team.get("logo") or _first(team.get("logos")).get("href")
    return secure_logo(logo)


class ESPNScoreboardAdapter(ProviderAdapter):
    def __init__(self, http: JsonHttpClient, segment: LeagueSegment) -> None:
        super().__init__(http)
        self.segment = segment
        self.sport = segment.sport
        self.name = f"espn:{segment.espn_league}"

    def _fetch(self, date: str, filters: FetchFilters) -> AdapterResult:
        url = f"{ESPN_BASE_URL}/{self.segment.scoreboard_path}"
        payload, error = self.http.get_json(
            url,
            params={"dates": compact_date(date)},
            headers=ESPN_HEADERS,
        )
        if payload is None:
            return AdapterResult(source=self.name, reason=error)
        if not isinstance(payload, dict):
            return AdapterResult(source=self.name, reason="malformed payload: not an object")

        return self._normalize_all(payload.get("events", []), date)

    def _league_for(self, event: dict[str, Any]) -> League:
        if not self.segment.is_all_board:
            return League(name=self.segment.name, code=self.segment.espn_league)

        league = _first(event.get("leagues"))
        if not league and isinstance(event.get("league"), dict):
            league = event["league"]
        name = str(league.get("name") or "").strip()
        code = str(league.get("slug") or league.get("abbreviation") or "").strip() or None
        return League(name=name, code=code)

    def normalize(self, raw: dict[str, Any], date: str) -> Fixture | None:
        competition = _first(raw.get("competitions"))
        start = parse_start_utc(raw.get("date") or competition.get("date"))
        if start is None:
            return None

        competitors = [c for c in competition.get("competitors", []) if isinstance(c, dict)]
        home = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if c.get("homeAway") == "away"), None)

        if home is not None and away is not None:
            home_side = TeamSide(name=_team_name(home), logo=_team_logo(home))
            away_side = TeamSide(name=_team_name(away), logo=_team_logo(away))
        else:
            parsed = split_event_name(raw.get("name") or raw.get("shortName"))
            if parsed is None:
                return None
            home_side, away_side = TeamSide(name=parsed[0]), TeamSide(name=parsed[1])

        if not home_side.name or not away_side.name:
            return None

        status_type = (raw.get("status") or competition.get("status") or {}).get("type") or {}
        league = self._league_for(raw)
        tier = self.segment.tier if not self.segment.is_all_board else tier_for_league(league.name)
        event_id = raw.get("id") or f"{slugify(home_side.name)}-vs-{slugify(away_side.name)}@{start:%Y%m%d%H%M}"

        return Fixture(
            id=f"espn:{event_id}",
            sport=self.segment.sport,
            league=league,
            start_utc=start,
            status=map_status(status_type.get("name") or status_type.get("state")),
            home=home_side,
            away=away_side,
            tier=tier,
            source=self.name,
        )


def build_espn_adapters(http: JsonHttpClient) -> list[ESPNScoreboardAdapter]:
    adapters = [ESPNScoreboardAdapter(http, segment) for segment in LEAGUE_SEGMENTS]
    adapters.append(ESPNScoreboardAdapter(http, ALL_EVENTS_BOARD))
    return adapters
