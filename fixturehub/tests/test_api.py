from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fixturehub import main
from fixturehub.config import Config
from fixturehub.tests.fakes import ScriptedAdapter, build_service


@pytest.fixture
def client(monkeypatch, tmp_path: Path) -> TestClient:
    primary = ScriptedAdapter("espn:eng.1", [[("Arsenal", "Chelsea"), ("Liverpool", "Everton")]])
    monkeypatch.setattr(main, "service", build_service(tmp_path, [primary]))
    monkeypatch.setattr(main, "config", Config(admin_token="secret", cache_dir=str(tmp_path)))
    return TestClient(main.app, raise_server_exceptions=False)


def test_health_is_plain_text(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


def test_impossible_date_is_rejected(client: TestClient) -> None:
    response = client.get("/api/fixtures", params={"date": "2024-02-30"})
    assert response.status_code == 400
    assert "YYYY-MM-DD" in response.json()["detail"]


def test_fixtures_payload_shape(client: TestClient) -> None:
    response = client.get("/api/fixtures", params={"date": "2024-05-01"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["date"] == "2024-05-01"
    assert len(payload["fixtures"]) == 2
    assert payload["fixtures"][0]["start_utc"] == "2024-05-01T14:00:00Z"
    assert payload["meta"]["sourceCounts"] == {"espn:eng.1": 2}
    assert payload["meta"]["cache"] == "live"


def test_sport_and_tier_filters_do_not_change_the_cache(client: TestClient) -> None:
    filtered = client.get("/api/fixtures", params={"date": "2024-05-01", "sport": "nba"}).json()
    assert filtered["fixtures"] == []

    full = client.get("/api/fixtures", params={"date": "2024-05-01", "tier": 1}).json()
    assert len(full["fixtures"]) == 2
    assert full["meta"]["cache"] == "memory"


def test_total_outage_returns_empty_day(monkeypatch, tmp_path: Path, client: TestClient) -> None:
    primary = ScriptedAdapter("espn:eng.1", [None])
    secondary = ScriptedAdapter("sportsdb:soccer", [None])
    monkeypatch.setattr(main, "service", build_service(tmp_path / "outage", [primary], [secondary]))

    response = client.get("/api/fixtures", params={"date": "2024-05-01"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["fixtures"] == []
    assert payload["meta"]["sourceCounts"] == {"espn:eng.1": 0, "sportsdb:soccer": 0}


def test_unexpected_errors_become_json_500(monkeypatch, client: TestClient) -> None:
    def explode(date: str, force: bool = False):
        raise RuntimeError("boom")

    monkeypatch.setattr(main.service, "get", explode)
    response = client.get("/api/fixtures", params={"date": "2024-05-01"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal error while assembling fixtures."}


def test_today_redirects_to_dated_query(client: TestClient) -> None:
    response = client.get("/api/fixtures/today", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"].startswith("/api/fixtures?date=")


def test_diagnostic_shortcuts_redirect_to_dated_query(monkeypatch, client: TestClient) -> None:
    monkeypatch.setattr(main, "local_now", lambda: dt.datetime(2024, 5, 1, 10, 0, tzinfo=dt.UTC))

    today = client.get("/__/probe/today", params={"token": "secret"}, follow_redirects=False)
    assert today.status_code == 302
    assert today.headers["location"] == "/__/probe?date=2024-05-01&token=secret"

    tomorrow = client.get("/__/probe/tomorrow", follow_redirects=False)
    assert tomorrow.headers["location"] == "/__/probe?date=2024-05-02"

    followed = client.get("/__/probe/today", params={"token": "secret"})
    assert followed.status_code == 200
    assert followed.json()["date"] == "2024-05-01"


def test_admin_routes_require_token(client: TestClient) -> None:
    assert client.post("/admin/precache", params={"date": "2024-05-01"}).status_code == 401
    assert client.post("/admin/precache", params={"date": "2024-05-01", "token": "nope"}).status_code == 401
    assert client.post("/admin/flush-cache", params={"all": "true"}).status_code == 401
    assert client.get("/__/probe", params={"date": "2024-05-01"}).status_code == 401


def test_empty_admin_token_denies_everything(monkeypatch, client: TestClient) -> None:
    monkeypatch.setattr(main, "config", Config(admin_token=""))
    assert client.get("/admin/precache", params={"date": "2024-05-01", "token": ""}).status_code == 401


def test_precache_and_flush(client: TestClient) -> None:
    response = client.post("/admin/precache", params={"date": "2024-05-01", "token": "secret"})
    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "date": "2024-05-01",
        "counts": {"espn:eng.1": 2},
        "size": 2,
    }

    flushed = client.post(
        "/admin/flush-cache",
        params={"date": "2024-05-01"},
        headers={"X-Admin-Token": "secret"},
    )
    assert flushed.json() == {"ok": True, "cleared": "2024-05-01"}

    client.get("/api/fixtures", params={"date": "2024-05-01"})
    flushed_all = client.post("/admin/flush-cache", params={"all": "true", "token": "secret"})
    assert flushed_all.json()["cleared"] == "all"
    assert flushed_all.json()["dates"] == 1
    assert flushed_all.json()["logos"] == 0


def test_adapter_report_covers_each_adapter(client: TestClient) -> None:
    response = client.get("/__/probe", params={"date": "2024-05-01", "token": "secret"})
    assert response.status_code == 200
    report = response.json()
    assert report["espn:eng.1"]["count"] == 2
    assert report["espn:eng.1"]["ok"] is True


def test_fixture_lookup_by_id_and_slug(client: TestClient) -> None:
    payload = client.get("/api/fixtures", params={"date": "2024-05-01"}).json()
    fixture_id = payload["fixtures"][0]["id"]

    by_slug = client.get("/api/fixture/arsenal-vs-chelsea@2024-05-01T14:00:00Z")
    assert by_slug.status_code == 200
    assert by_slug.json()["fixture"]["id"] == fixture_id

    missing = client.get("/api/fixture/real-madrid-vs-barcelona@2024-05-01T14:00:00Z")
    assert missing.status_code == 404
    assert missing.json()["ok"] is False


def test_readyz_reports_date_states(client: TestClient) -> None:
    response = client.get("/readyz")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    assert body["admin_token_configured"] is True
    assert set(body["date_states"].values()) <= {"COLD", "BUILDING", "WARM", "STALE"}
