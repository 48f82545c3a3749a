from __future__ import annotations

import datetime as dt
import secrets
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlencode

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from fixturehub.config import Config, configure_logging
from fixturehub.services.fixture_lookup import FixtureLocator
from fixturehub.services.fixture_service import build_fixture_service
from fixturehub.services.models import Fixture
from fixturehub.services.normalize import local_now, parse_request_date

config = Config.from_env()
configure_logging(config.log_level)
service = build_fixture_service(config)


class FixturesMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_counts: dict[str, int] = Field(default_factory=dict, alias="sourceCounts")
    notices: list[str] = Field(default_factory=list)
    cache: str = "live"
    built_at: str | None = Field(default=None, alias="builtAt")


class FixturesResponse(BaseModel):
    date: str
    fixtures: list[Fixture]
    meta: FixturesMeta


class PrecacheResponse(BaseModel):
    ok: bool = True
    date: str
    counts: dict[str, int] = Field(default_factory=dict)
    size: int


class FlushResponse(BaseModel):
    ok: bool = True
    cleared: str
    dates: int | None = None
    logos: int | None = None


@asynccontextmanager
async def lifespan(_app: FastAPI):
    service.start_periodic_refresh(config.refresh_interval_minutes)
    try:
        yield
    finally:
        service.close()


app = FastAPI(
    title="Fixture Hub API",
    version="1.0.0",
    description="Multi-provider sports fixtures, merged and cached per day.",
    lifespan=lifespan,
)

allow_credentials = "*" not in config.allow_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal error while assembling fixtures."})


def _request_date(raw: str | None) -> str:
    try:
        return parse_request_date(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="date must be in YYYY-MM-DD format") from exc


def _require_admin(token: str | None, header_token: str | None) -> None:
    supplied = (token or header_token or "").strip()
    expected = config.admin_token
    if not expected or not supplied or not secrets.compare_digest(supplied, expected):
        raise HTTPException(status_code=401, detail="invalid admin token")


def _relative_day(offset: int) -> str:
    return (local_now().date() + dt.timedelta(days=offset)).isoformat()


def _probe_url(date: str, token: str | None) -> str:
    query = {"date": date}
    if token:
        query["token"] = token
    return f"/__/probe?{urlencode(query)}"


def _filter_fixtures(
    fixtures: list[dict[str, Any]], sport: str | None, tier: int | None
) -> list[dict[str, Any]]:
    if sport:
        wanted = sport.strip().lower()
        fixtures = [fixture for fixture in fixtures if str(fixture.get("sport", "")).lower() == wanted]
    if tier is not None:
        fixtures = [
            fixture for fixture in fixtures if fixture.get("tier") is not None and fixture["tier"] <= tier
        ]
    return fixtures


@app.get("/health", response_class=PlainTextResponse)
def health() -> str:
    return "ok"


@app.get("/readyz")
def readyz() -> dict[str, Any]:
    return {
        "status": "ready",
        "api_sports_key_configured": bool(config.api_sports_key),
        "admin_token_configured": bool(config.admin_token),
        "cache_dir": config.cache_dir,
        "refresh_interval_minutes": config.refresh_interval_minutes,
        **service.diagnostics(),
    }


@app.get("/api/fixtures", response_model=FixturesResponse)
def get_fixtures(
    date: str | None = Query(default=None, description="Fixture date in ISO format YYYY-MM-DD"),
    force: bool = Query(default=False, description="Rebuild even when a fresh cache entry exists"),
    sport: str | None = Query(default=None, max_length=32),
    tier: int | None = Query(default=None, ge=1, le=3, description="Highest tier to include"),
) -> FixturesResponse:
    date_text = _request_date(date)
    payload = service.get(date_text, force=force)
    if sport or tier is not None:
        payload = {**payload, "fixtures": _filter_fixtures(payload["fixtures"], sport, tier)}
    return FixturesResponse.model_validate(payload)


@app.get("/api/fixtures/today")
def fixtures_today() -> RedirectResponse:
    return RedirectResponse(url=f"/api/fixtures?{urlencode({'date': _relative_day(0)})}", status_code=302)


@app.get("/api/fixtures/tomorrow")
def fixtures_tomorrow() -> RedirectResponse:
    return RedirectResponse(url=f"/api/fixtures?{urlencode({'date': _relative_day(1)})}", status_code=302)


@app.get("/api/fixture/{fixture_id:path}")
def get_fixture(fixture_id: str):
    locator = FixtureLocator(lambda day: service.get(day)["fixtures"])
    found = locator.locate(fixture_id)
    if found is None:
        return JSONResponse(
            status_code=404, content={"ok": False, "error": "fixture not found", "fixture": None}
        )
    return {"ok": True, "fixture": found.fixture, "date": found.date}


@app.get("/__/probe")
def probe(
    date: str | None = None,
    token: str | None = None,
    x_admin_token: str | None = Header(default=None),
) -> dict[str, Any]:
    _require_admin(token, x_admin_token)
    return service.probe(_request_date(date))


@app.get("/__/probe/today")
def probe_today(token: str | None = None) -> RedirectResponse:
    return RedirectResponse(url=_probe_url(_relative_day(0), token), status_code=302)


@app.get("/__/probe/tomorrow")
def probe_tomorrow(token: str | None = None) -> RedirectResponse:
    return RedirectResponse(url=_probe_url(_relative_day(1), token), status_code=302)


@app.api_route("/admin/precache", methods=["GET", "POST"], response_model=PrecacheResponse)
def admin_precache(
    date: str | None = None,
    token: str | None = None,
    x_admin_token: str | None = Header(default=None),
) -> PrecacheResponse:
    _require_admin(token, x_admin_token)
    return PrecacheResponse.model_validate(service.precache(_request_date(date)))


@app.api_route("/admin/precache/today", methods=["GET", "POST"], response_model=PrecacheResponse)
def admin_precache_today(
    token: str | None = None,
    x_admin_token: str | None = Header(default=None),
) -> PrecacheResponse:
    _require_admin(token, x_admin_token)
    return PrecacheResponse.model_validate(service.precache(_relative_day(0)))


@app.api_route("/admin/precache/tomorrow", methods=["GET", "POST"], response_model=PrecacheResponse)
def admin_precache_tomorrow(
    token: str | None = None,
    x_admin_token: str | None = Header(default=None),
) -> PrecacheResponse:
    _require_admin(token, x_admin_token)
    return PrecacheResponse.model_validate(service.precache(_relative_day(1)))


@app.post("/admin/flush-cache", response_model=FlushResponse, response_model_exclude_none=True)
def admin_flush_cache(
    date: str | None = None,
    flush_all: bool = Query(default=False, alias="all"),
    token: str | None = None,
    x_admin_token: str | None = Header(default=None),
) -> FlushResponse:
    _require_admin(token, x_admin_token)
    if flush_all:
        return FlushResponse.model_validate(service.flush())
    return FlushResponse.model_validate(service.flush(_request_date(date)))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("fixturehub.main:app", host="0.0.0.0", port=8000, reload=True)
