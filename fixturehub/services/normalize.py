from __future__ import annotations

import datetime as dt
import re
import unicodedata
from typing import Any

from fixturehub.services.models import FixtureStatus

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_VS_SEPARATOR = re.compile(r"\s+vs\.?\s+", re.IGNORECASE)
_AT_SEPARATOR = re.compile(r"\s+(?:at|@)\s+", re.IGNORECASE)
_STATUS_WORD_SPLIT = re.compile(r"[^A-Z0-9]+")

# Club-form tokens that providers attach or drop inconsistently ("Arsenal" vs "Arsenal FC").
_CLUB_TOKENS = {"fc", "cf", "afc", "sc", "ac", "ssc", "cd", "ud", "fk", "sk", "bk", "club", "the"}

MAJOR_LEAGUES = {
    "premier league",
    "english premier league",
    "laliga",
    "la liga",
    "spanish laliga",
    "bundesliga",
    "german bundesliga",
    "serie a",
    "italian serie a",
    "ligue 1",
    "french ligue 1",
    "uefa champions league",
    "uefa europa league",
    "uefa europa conference league",
    "uefa conference league",
    "nba",
    "nfl",
    "nhl",
}

_FINISHED_TOKENS = {"FT", "AET", "AOT", "PEN", "POST", "AWD", "WO", "FT_PEN", "FINAL"}
_FINISHED_MARKERS = ("FINAL", "FINISHED", "FULL_TIME", "FULL TIME", "FULL-TIME", "COMPLETED")
_FINISHED_WORDS = {"ENDED"}
# Halted or rescheduled events have not been played; they never count as progressed.
_HALTED_TOKENS = {"SUSP", "PST", "CANC", "TBD", "DELAYED"}
_HALTED_MARKERS = ("SUSPEND", "POSTPON", "CANCEL", "DELAY", "RESCHEDUL")
_HALF_TOKENS = {"HT", "HALF"}
_HALF_MARKERS = ("HALFTIME", "HALF_TIME", "HALF TIME", "HALF-TIME")
_LIVE_TOKENS = {"IN", "LIVE", "1H", "2H", "ET", "BT", "P", "INT", "OT", "Q1", "Q2", "Q3", "Q4", "P1", "P2", "P3"}
_LIVE_MARKERS = (
    "IN_PROGRESS",
    "IN PROGRESS",
    "LIVE",
    "FIRST_HALF",
    "SECOND_HALF",
    "FIRST HALF",
    "SECOND HALF",
    "OVERTIME",
    "EXTRA_TIME",
    "EXTRA TIME",
    "END_PERIOD",
    "PERIOD",
    "QUARTER",
    "SHOOTOUT",
    "PLAYING",
)


def norm_text(value: Any) -> str:
    text = unicodedata.normalize("NFKD", str(value or ""))
    text = text.encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub(" ", text.lower()).strip()


def normalize_team_name(value: Any) -> str:
    """Lossy team identity used for merge keys and logo cache keys."""
    base = norm_text(value)
    tokens = [token for token in base.split() if token not in _CLUB_TOKENS]
    return " ".join(tokens) or base


def slugify(value: Any) -> str:
    return norm_text(value).replace(" ", "-")


def secure_logo(value: Any) -> str | None:
    text = str(value or "").strip()
    if not text:
        return None
    if text.startswith("//"):
        return "https:" + text
    if text.lower().startswith("http://"):
        return "https://" + text[len("http://") :]
    if text.lower().startswith("https://"):
        return text
    return None


def map_status(raw: Any) -> FixtureStatus:
    text = str(raw or "").strip().upper()
    if not text:
        return FixtureStatus.SCHEDULED
    bare = text.removeprefix("STATUS_")
    words = set(_STATUS_WORD_SPLIT.split(text))

    if bare in _HALTED_TOKENS or any(marker in text for marker in _HALTED_MARKERS):
        return FixtureStatus.SCHEDULED
    if (
        bare in _FINISHED_TOKENS
        or words & _FINISHED_WORDS
        or any(marker in text for marker in _FINISHED_MARKERS)
    ):
        return FixtureStatus.FINISHED
    if bare in _HALF_TOKENS or any(marker in text for marker in _HALF_MARKERS):
        return FixtureStatus.HALF
    if bare in _LIVE_TOKENS or any(marker in text for marker in _LIVE_MARKERS):
        return FixtureStatus.LIVE
    return FixtureStatus.SCHEDULED


def parse_start_utc(value: Any) -> dt.datetime | None:
    text = str(value or "").strip()
    if not text or _DATE_ONLY.match(text):
        return None

    iso_text = text.replace("Z", "+00:00").replace(" ", "T", 1)
    try:
        parsed = dt.datetime.fromisoformat(iso_text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def date_midnight_utc(date_text: str) -> dt.datetime | None:
    try:
        day = dt.date.fromisoformat(str(date_text or "").strip())
    except ValueError:
        return None
    return dt.datetime.combine(day, dt.time(0, 0), tzinfo=dt.UTC)


def split_event_name(name: Any) -> tuple[str, str] | None:
    """Parse "Home vs Away" or "Away at Home" into (home, away)."""
    text = " ".join(str(name or "").split())

    parts = _VS_SEPARATOR.split(text, maxsplit=1)
    if len(parts) == 2 and parts[0].strip() and parts[1].strip():
        return parts[0].strip(), parts[1].strip()

    parts = _AT_SEPARATOR.split(text, maxsplit=1)
    if len(parts) == 2 and parts[0].strip() and parts[1].strip():
        return parts[1].strip(), parts[0].strip()
    return None


def tier_for_league(league_name: Any) -> int | None:
    key = str(league_name or "").strip().lower()
    if not key:
        return None
    return 1 if key in MAJOR_LEAGUES else 2


def compact_date(date_text: str) -> str:
    return date_text.replace("-", "")


def local_now() -> dt.datetime:
    return dt.datetime.now().astimezone()


def local_today_iso() -> str:
    return local_now().date().isoformat()


def parse_request_date(value: str | None) -> str:
    """Validate a YYYY-MM-DD query value; today/tomorrow shortcuts are accepted."""
    text = str(value or "").strip().lower()
    today = local_now().date()
    if not text or text == "today":
        return today.isoformat()
    if text == "tomorrow":
        return (today + dt.timedelta(days=1)).isoformat()
    if not _DATE_ONLY.match(text):
        raise ValueError("date must be in YYYY-MM-DD format")
    return dt.date.fromisoformat(text).isoformat()
