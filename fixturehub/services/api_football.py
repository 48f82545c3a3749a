from __future__ import annotations

import threading
from typing import Any

from loguru import logger

from fixturehub.services.http_client import JsonHttpClient
from fixturehub.services.models import Fixture, League, TeamSide
from fixturehub.services.normalize import (
    local_today_iso,
    map_status,
    parse_start_utc,
    secure_logo,
    slugify,
    tier_for_league,
)
from fixturehub.services.provider_base import AdapterResult, FetchFilters, ProviderAdapter

API_FOOTBALL_BASE_URL = "https://v3.football.api-sports.io"
MAX_PAGES = 6


def _is_daily_limit_error_text(raw_error: str) -> bool:
    text = str(raw_error or "").strip().lower()
    if not text:
        return False
    return (
        "request limit" in text
        or "daily api call budget reached" in text
        or "429" in text
        or "too many requests" in text
    )


def _has_upstream_errors(upstream_errors: Any) -> bool:
    if isinstance(upstream_errors, dict):
        return any(bool(value) for value in upstream_errors.values())
    return bool(upstream_errors)


def _format_upstream_errors(upstream_errors: Any) -> str:
    if isinstance(upstream_errors, dict):
        non_empty = {key: value for key, value in upstream_errors.items() if value}
        return str(non_empty)
    return str(upstream_errors)


class ApiCallBudget:
    """Per-local-day request allowance, locked for the rest of the day on a quota error."""

    def __init__(self, max_daily_calls: int) -> None:
        self.max_daily_calls = max(1, int(max_daily_calls))
        self.date = local_today_iso()
        self.count = 0
        self._lock = threading.Lock()

    def _roll_over(self) -> None:
        today = local_today_iso()
        if self.date != today:
            self.date = today
            self.count = 0

    def consume(self) -> bool:
        with self._lock:
            self._roll_over()
            if self.count >= self.max_daily_calls:
                return False
            self.count += 1
            return True

    def lock_for_today(self) -> None:
        with self._lock:
            self._roll_over()
            self.count = self.max_daily_calls

    def status(self) -> dict[str, Any]:
        with self._lock:
            self._roll_over()
            return {
                "date": self.date,
                "used": self.count,
                "limit": self.max_daily_calls,
                "remaining": max(0, self.max_daily_calls - self.count),
            }


class ApiFootballAdapter(ProviderAdapter):
    name = "api_football"
    sport = "Soccer"

    def __init__(self, http: JsonHttpClient, api_key: str, max_daily_calls: int = 100) -> None:
        super().__init__(http)
        self.api_key = api_key.strip()
        self.budget = ApiCallBudget(max_daily_calls)

    def _request_page(self, date: str, page: int) -> tuple[dict[str, Any] | None, str | None]:
        if not self.budget.consume():
            status = self.budget.status()
            return None, f"Daily API call budget reached ({status['used']}/{status['limit']})"

        payload, error = self.http.get_json(
            f"{API_FOOTBALL_BASE_URL}/fixtures",
            params={"date": date, "timezone": "UTC", "page": page},
            headers={"x-apisports-key": self.api_key},
        )
        if payload is None:
            if _is_daily_limit_error_text(error or ""):
                self.budget.lock_for_today()
            return None, error
        if not isinstance(payload, dict):
            return None, "malformed payload: not an object"

        upstream_errors = payload.get("errors")
        if _has_upstream_errors(upstream_errors):
            formatted_error = _format_upstream_errors(upstream_errors)
            if _is_daily_limit_error_text(formatted_error):
                self.budget.lock_for_today()
            return None, formatted_error
        return payload, None

    def _fetch(self, date: str, filters: FetchFilters) -> AdapterResult:
        if not self.api_key:
            return AdapterResult(source=self.name, reason="API_SPORTS_KEY is not configured")

        rows: list[Any] = []
        page, total = 1, 1
        while page <= min(total, MAX_PAGES):
            payload, error = self._request_page(date, page)
            if payload is None:
                if not rows:
                    return AdapterResult(source=self.name, reason=error)
                logger.warning(f"api_football page {page} failed for {date}: {error}")
                break

            response_rows = payload.get("response", [])
            if not isinstance(response_rows, list):
                return AdapterResult(source=self.name, reason="malformed fixtures response payload")
            rows.extend(response_rows)

            paging = payload.get("paging") or {}
            total = int(paging.get("total") or 1)
            page += 1

        return self._normalize_all(rows, date)

    def normalize(self, raw: dict[str, Any], date: str) -> Fixture | None:
        fixture = raw.get("fixture") or {}
        start = parse_start_utc(fixture.get("date"))
        if start is None:
            return None

        teams = raw.get("teams") or {}
        home = teams.get("home") or {}
        away = teams.get("away") or {}
        home_name = str(home.get("name") or "").strip()
        away_name = str(away.get("name") or "").strip()
        if not home_name or not away_name:
            return None

        league = raw.get("league") or {}
        league_name = str(league.get("name") or "").strip()
        status = fixture.get("status") or {}
        league_id = league.get("id")
        fixture_id = fixture.get("id")
        if fixture_id is None:
            fixture_id = f"{slugify(home_name)}-vs-{slugify(away_name)}@{start:%Y%m%d%H%M}"

        return Fixture(
            id=f"af:{fixture_id}",
            sport="Soccer",
            league=League(name=league_name, code=str(league_id) if league_id is not None else None),
            start_utc=start,
            status=map_status(status.get("short") or status.get("long")),
            home=TeamSide(name=home_name, logo=secure_logo(home.get("logo"))),
            away=TeamSide(name=away_name, logo=secure_logo(away.get("logo"))),
            tier=tier_for_league(league_name),
            source=self.name,
        )
