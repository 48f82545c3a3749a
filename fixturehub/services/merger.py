from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from fixturehub.services.models import Fixture, FixtureStatus
from fixturehub.services.normalize import norm_text, normalize_team_name


def merge_key(fixture: Fixture, strict: bool = False) -> str:
    """Identity of a real-world event across providers.

    Start times are truncated to the containing UTC hour so that a few minutes
    of provider disagreement still collapse. The strict variant also keys on
    the league tier so two competitions between the same clubs never merge.
    """
    hour_bucket = fixture.start_utc.replace(minute=0, second=0, microsecond=0)
    parts = [
        norm_text(fixture.sport),
        normalize_team_name(fixture.home.name),
        normalize_team_name(fixture.away.name),
        hour_bucket.strftime("%Y-%m-%dT%H"),
    ]
    if strict:
        parts.insert(1, str(fixture.tier or ""))
    return "|".join(parts)


def _preference(fixture: Fixture) -> tuple[int, int, int]:
    has_league = bool(fixture.league.name.strip() or (fixture.league.code or "").strip())
    has_logo = bool(fixture.home.logo or fixture.away.logo)
    progressed = fixture.status != FixtureStatus.SCHEDULED
    return int(has_league), int(has_logo), int(progressed)


def _pick_winner(group: list[Fixture]) -> Fixture:
    winner = group[0]
    best = _preference(winner)
    for candidate in group[1:]:
        score = _preference(candidate)
        # Strictly better only: ties keep the first-seen record.
        if score > best:
            winner, best = candidate, score
    return winner


def _backfill(winner: Fixture, group: list[Fixture]) -> Fixture:
    home_logo = winner.home.logo
    away_logo = winner.away.logo
    tier = winner.tier
    timed = winner if not winner.approximate_start else next(
        (other for other in group if not other.approximate_start), winner
    )
    for other in group:
        if other is winner:
            continue
        home_logo = home_logo or other.home.logo
        away_logo = away_logo or other.away.logo
        tier = tier if tier is not None else other.tier

    if (home_logo, away_logo, tier) == (winner.home.logo, winner.away.logo, winner.tier) and timed is winner:
        return winner
    return winner.model_copy(
        update={
            "start_utc": timed.start_utc,
            "approximate_start": timed.approximate_start,
            "home": winner.home.model_copy(update={"logo": home_logo}),
            "away": winner.away.model_copy(update={"logo": away_logo}),
            "tier": tier,
        }
    )


def _day_key(fixture: Fixture, strict: bool = False) -> str:
    parts = [
        norm_text(fixture.sport),
        normalize_team_name(fixture.home.name),
        normalize_team_name(fixture.away.name),
        fixture.start_utc.date().isoformat(),
    ]
    if strict:
        parts.insert(1, str(fixture.tier or ""))
    return "|".join(parts)


def _fold_approximate(groups: dict[str, list[Fixture]], strict: bool = False) -> dict[str, list[Fixture]]:
    """Attach date-only groups to a timed group of the same pairing on the same UTC day.

    A date-only record is pinned to midnight, so its hour bucket never matches
    the timed record of the same match.
    """
    timed_by_day: dict[str, list[Fixture]] = {}
    for group in groups.values():
        timed = next((fixture for fixture in group if not fixture.approximate_start), None)
        if timed is not None:
            timed_by_day.setdefault(_day_key(timed, strict=strict), group)

    folded: dict[str, list[Fixture]] = {}
    for key, group in groups.items():
        if all(fixture.approximate_start for fixture in group):
            target = timed_by_day.get(_day_key(group[0], strict=strict))
            if target is not None:
                target.extend(group)
                continue
        folded[key] = group
    return folded


def merge_fixtures(fixtures: Iterable[Fixture], strict: bool = False) -> list[Fixture]:
    """Collapse duplicates and order by kick-off.

    Input order is provider priority order; it decides ties both in the
    preference policy and in the final stable sort.
    """
    groups: dict[str, list[Fixture]] = {}
    raw_count = 0
    for fixture in fixtures:
        raw_count += 1
        groups.setdefault(merge_key(fixture, strict=strict), []).append(fixture)
    groups = _fold_approximate(groups, strict=strict)

    merged = [_backfill(_pick_winner(group), group) for group in groups.values()]
    merged.sort(key=lambda fixture: fixture.start_utc)

    if raw_count != len(merged):
        logger.debug(f"Merged {raw_count} raw fixtures into {len(merged)}.")
    return merged
