from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class FixtureStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    HALF = "HALF"
    FINISHED = "FINISHED"


class League(BaseModel):
    name: str = ""
    code: str | None = None


class TeamSide(BaseModel):
    name: str
    logo: str | None = None


class Fixture(BaseModel):
    """One sports event, already normalized away from any provider schema."""

    id: str
    sport: str
    league: League = Field(default_factory=League)
    start_utc: dt.datetime
    status: FixtureStatus = FixtureStatus.SCHEDULED
    home: TeamSide
    away: TeamSide
    tier: int | None = None
    approximate_start: bool = False
    source: str = ""

    @field_validator("start_utc")
    @classmethod
    def _force_utc(cls, value: dt.datetime) -> dt.datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)

    @field_serializer("start_utc")
    def _serialize_start(self, value: dt.datetime) -> str:
        return value.isoformat().replace("+00:00", "Z")


class CacheMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_counts: dict[str, int] = Field(default_factory=dict, alias="sourceCounts")
    notices: list[str] = Field(default_factory=list)


class CacheEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str
    fixtures: list[Fixture] = Field(default_factory=list)
    meta: CacheMeta = Field(default_factory=CacheMeta)
    written_at_unix_millis: int = Field(default=0, alias="writtenAtUnixMillis")

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class LogoCacheEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sport: str
    name: str
    url: str | None = None
    written_at_unix_millis: int = Field(default=0, alias="writtenAtUnixMillis")
