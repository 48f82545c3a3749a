from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from fixturehub.services.http_client import JsonHttpClient
from fixturehub.services.models import Fixture, League, TeamSide
from fixturehub.services.normalize import (
    date_midnight_utc,
    map_status,
    norm_text,
    normalize_team_name,
    parse_start_utc,
    secure_logo,
    slugify,
    split_event_name,
    tier_for_league,
)
from fixturehub.services.provider_base import AdapterResult, FetchFilters, ProviderAdapter

SPORTSDB_BASE_URL = "https://www.thesportsdb.com/api/v1/json"


@dataclass(frozen=True)
class SportsDBSport:
    sport: str
    label: str
    league_filter: re.Pattern[str] | None


SPORTSDB_SPORTS = (
    SportsDBSport("Soccer", "Soccer", None),
    SportsDBSport("NBA", "Basketball", re.compile(r"\bNBA\b", re.IGNORECASE)),
    SportsDBSport("NFL", "American Football", re.compile(r"\bNFL\b", re.IGNORECASE)),
    SportsDBSport("NHL", "Ice Hockey", re.compile(r"\bNHL\b", re.IGNORECASE)),
)
SPORT_LABELS = {item.sport: item.label for item in SPORTSDB_SPORTS}


def _start_for_event(event: dict[str, Any], date: str) -> tuple[Any, bool]:
    """Return (start, approximate). Date-only events land on midnight UTC, flagged."""
    start = parse_start_utc(event.get("strTimestamp"))
    if start is not None:
        return start, False

    date_event = str(event.get("dateEvent") or "").strip()
    time_text = str(event.get("strTime") or "").strip()
    if date_event and time_text:
        start = parse_start_utc(f"{date_event}T{time_text[:8]}")
        if start is not None:
            return start, False

    midnight = date_midnight_utc(date_event or date)
    return midnight, midnight is not None


class SportsDBEventsAdapter(ProviderAdapter):
    def __init__(self, http: JsonHttpClient, api_key: str, sport: SportsDBSport) -> None:
        super().__init__(http)
        self.api_key = api_key or "3"
        self.sport_info = sport
        self.sport = sport.sport
        self.name = f"sportsdb:{sport.sport.lower()}"

    def _fetch(self, date: str, filters: FetchFilters) -> AdapterResult:
        payload, error = self.http.get_json(
            f"{SPORTSDB_BASE_URL}/{self.api_key}/eventsday.php",
            params={"d": date, "s": self.sport_info.label},
            retries=2,
        )
        if payload is None:
            return AdapterResult(source=self.name, reason=error)
        if not isinstance(payload, dict):
            return AdapterResult(source=self.name, reason="malformed payload: not an object")

        # TheSportsDB answers {"events": null} for an empty day.
        events = payload.get("events") or []
        if self.sport_info.league_filter is not None and isinstance(events, list):
            events = [
                event
                for event in events
                if isinstance(event, dict)
                and self.sport_info.league_filter.search(str(event.get("strLeague") or ""))
            ]
        return self._normalize_all(events, date)

    def normalize(self, raw: dict[str, Any], date: str) -> Fixture | None:
        home_name = str(raw.get("strHomeTeam") or "").strip()
        away_name = str(raw.get("strAwayTeam") or "").strip()
        if not home_name or not away_name:
            parsed = split_event_name(raw.get("strEvent"))
            if parsed is None:
                return None
            home_name, away_name = parsed

        start, approximate = _start_for_event(raw, date)
        if start is None:
            return None

        league_name = str(raw.get("strLeague") or "").strip()
        if self.sport_info.league_filter is not None:
            league_name = self.sport_info.sport
        event_id = raw.get("idEvent") or f"{slugify(home_name)}-vs-{slugify(away_name)}@{start:%Y%m%d%H%M}"

        return Fixture(
            id=f"sdb:{event_id}",
            sport=self.sport_info.sport,
            league=League(name=league_name, code=str(raw.get("idLeague") or "") or None),
            start_utc=start,
            status=map_status(raw.get("strStatus") or raw.get("strProgress")),
            home=TeamSide(name=home_name, logo=secure_logo(raw.get("strHomeTeamBadge"))),
            away=TeamSide(name=away_name, logo=secure_logo(raw.get("strAwayTeamBadge"))),
            tier=tier_for_league(league_name),
            approximate_start=approximate,
            source=self.name,
        )


def _badge(team: dict[str, Any]) -> str | None:
    for key in ("strBadge", "strTeamBadge", "strTeamLogo", "strLogo"):
        logo = secure_logo(team.get(key))
        if logo:
            return logo
    return None


def pick_team_candidate(candidates: list[dict[str, Any]], team_name: str, sport: str) -> dict[str, Any] | None:
    """Exact name first, then alias-list membership, then substring containment."""
    want = normalize_team_name(team_name)
    if not want:
        return None

    label = SPORT_LABELS.get(sport, sport).lower()
    in_sport = [
        team
        for team in candidates
        if isinstance(team, dict) and str(team.get("strSport") or "").strip().lower() in {"", label}
    ]

    for team in in_sport:
        if normalize_team_name(team.get("strTeam")) == want:
            return team

    for team in in_sport:
        aliases = [
            normalize_team_name(alias)
            for alias in str(team.get("strAlternate") or "").split(",")
            if norm_text(alias)
        ]
        if want in aliases:
            return team

    for team in in_sport:
        candidate = normalize_team_name(team.get("strTeam"))
        if candidate and (want in candidate or candidate in want):
            return team
    return None


class SportsDBTeamLogoAdapter:
    name = "sportsdb:teams"

    def __init__(self, http: JsonHttpClient, api_key: str) -> None:
        self.http = http
        self.api_key = api_key or "3"

    def lookup(self, team_name: str, sport: str = "Soccer") -> tuple[str | None, str | None]:
        """Return (logo_url, failure_reason); a clean miss is (None, None)."""
        if not str(team_name or "").strip():
            return None, None

        payload, error = self.http.get_json(
            f"{SPORTSDB_BASE_URL}/{self.api_key}/searchteams.php",
            params={"t": team_name},
            retries=2,
        )
        if payload is None:
            return None, error
        if not isinstance(payload, dict):
            return None, "malformed payload: not an object"

        teams = payload.get("teams") or []
        if not isinstance(teams, list):
            return None, "malformed payload: teams is not a list"

        team = pick_team_candidate(teams, team_name, sport)
        if team is None:
            return None, None
        return _badge(team), None


def build_sportsdb_adapters(http: JsonHttpClient, api_key: str) -> list[SportsDBEventsAdapter]:
    return [SportsDBEventsAdapter(http, api_key, sport) for sport in SPORTSDB_SPORTS]
