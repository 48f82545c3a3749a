from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Callable

from fixturehub.services.normalize import local_now, parse_start_utc, slugify

MAX_HINT_DISTANCE = dt.timedelta(hours=6)


@dataclass
class LookupResult:
    fixture: dict[str, Any]
    date: str | None = None


def _team_aliases(name: Any) -> tuple[str, str, str]:
    full = slugify(name)
    parts = [part for part in full.split("-") if part]
    first = parts[0] if parts else full
    last = parts[-1] if parts else full
    return full, first, last


def _team_hit(name: Any, token: str) -> bool:
    full, first, last = _team_aliases(name)
    return bool(token) and (token in full or token in (first, last))


def matches_slug(fixture: dict[str, Any], slug: str) -> bool:
    """True when ``slug`` names this pairing, in either order or by nickname."""
    home = (fixture.get("home") or {}).get("name", "")
    away = (fixture.get("away") or {}).get("name", "")
    home_full = slugify(home)
    away_full = slugify(away)
    if slug in (f"{home_full}-vs-{away_full}", f"{away_full}-vs-{home_full}"):
        return True

    tokens = slug.split("-vs-")
    if len(tokens) == 2:
        first, second = tokens
        return (_team_hit(home, first) and _team_hit(away, second)) or (
            _team_hit(home, second) and _team_hit(away, first)
        )
    return bool(slug) and (slug in home_full or slug in away_full)


def _start_of(fixture: dict[str, Any]) -> dt.datetime | None:
    return parse_start_utc(fixture.get("start_utc"))


class FixtureLocator:
    """Resolve a fixture id or ``home-vs-away@iso`` link against served days.

    ``fetch_day`` returns the served fixture dicts for one date and is
    expected to go through the normal cache path.
    """

    def __init__(
        self,
        fetch_day: Callable[[str], list[dict[str, Any]]],
        today: Callable[[], dt.date] = lambda: local_now().date(),
    ) -> None:
        self.fetch_day = fetch_day
        self._today = today

    @staticmethod
    def _parse_hint(raw: str) -> tuple[str, dt.datetime | None]:
        slug_part, _, iso_part = raw.partition("@")
        hint = parse_start_utc(iso_part) if iso_part else None
        return slugify(slug_part), hint

    def locate(self, raw_id: str) -> LookupResult | None:
        raw_id = str(raw_id or "").strip()
        if not raw_id:
            return None

        slug, hint = self._parse_hint(raw_id)
        anchor = hint.date() if hint is not None else self._today()
        days: dict[str, list[dict[str, Any]]] = {}

        def fixtures_on(day: dt.date) -> list[dict[str, Any]]:
            key = day.isoformat()
            if key not in days:
                days[key] = self.fetch_day(key)
            return days[key]

        for offset in (0, -1, 1):
            day = anchor + dt.timedelta(days=offset)
            for fixture in fixtures_on(day):
                if str(fixture.get("id")) == raw_id:
                    return LookupResult(fixture=fixture, date=day.isoformat())

        # Wider window absorbs timezone offsets between the link and the served day.
        offsets = (-1, 0, 1, 2) if hint is not None else (-2, -1, 0, 1, 2)
        candidates: list[tuple[dict[str, Any], str]] = []
        for offset in offsets:
            day = anchor + dt.timedelta(days=offset)
            candidates.extend(
                (fixture, day.isoformat()) for fixture in fixtures_on(day) if matches_slug(fixture, slug)
            )
        candidates = [item for item in candidates if _start_of(item[0]) is not None]
        if not candidates:
            return None

        if hint is not None:
            best = min(candidates, key=lambda item: abs(_start_of(item[0]) - hint))
            if abs(_start_of(best[0]) - hint) <= MAX_HINT_DISTANCE:
                return LookupResult(fixture=best[0], date=best[1])

        earliest = min(candidates, key=lambda item: _start_of(item[0]))
        return LookupResult(fixture=earliest[0], date=earliest[1])
