from __future__ import annotations

import requests

from fixturehub.services.http_client import JsonHttpClient


class FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def _client(monkeypatch, responses: list, sleeps: list | None = None) -> tuple[JsonHttpClient, list[dict]]:
    recorded = sleeps if sleeps is not None else []
    client = JsonHttpClient(timeout_seconds=1, retries=3, backoff_seconds=0.5, sleep=recorded.append)
    calls: list[dict] = []

    def fake_get(url, params=None, headers=None, timeout=None):  # noqa: ANN001
        calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(client.session, "get", fake_get)
    return client, calls


def test_retries_server_errors_then_succeeds(monkeypatch) -> None:
    sleeps: list[float] = []
    client, calls = _client(
        monkeypatch,
        [FakeResponse({}, 503), FakeResponse({}, 429), FakeResponse({"ok": True})],
        sleeps,
    )

    payload, error = client.get_json("https://example.test/x", params={"a": 1})

    assert payload == {"ok": True}
    assert error is None
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]
    assert calls[0]["params"] == {"a": 1}
    assert calls[0]["timeout"] == 1


def test_client_errors_are_not_retried(monkeypatch) -> None:
    client, calls = _client(monkeypatch, [FakeResponse({}, 404)])

    payload, error = client.get_json("https://example.test/x")

    assert payload is None
    assert error == "HTTP 404"
    assert len(calls) == 1


def test_timeouts_exhaust_retries(monkeypatch) -> None:
    client, calls = _client(monkeypatch, [requests.Timeout(), requests.Timeout(), requests.Timeout()])

    payload, error = client.get_json("https://example.test/x")

    assert payload is None
    assert error == "network:Timeout after 3 attempt(s)"
    assert len(calls) == 3
    assert client.request_count == 3


def test_invalid_json_is_reported(monkeypatch) -> None:
    client, _ = _client(monkeypatch, [FakeResponse(ValueError("no json"))])

    payload, error = client.get_json("https://example.test/x")

    assert payload is None
    assert error.startswith("invalid json")


def test_per_call_retry_override(monkeypatch) -> None:
    client, calls = _client(monkeypatch, [requests.ConnectionError(), requests.ConnectionError()])

    payload, error = client.get_json("https://example.test/x", retries=2)

    assert payload is None
    assert "after 2 attempt(s)" in error
    assert len(calls) == 2
