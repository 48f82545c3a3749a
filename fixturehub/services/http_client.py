from __future__ import annotations

import threading
import time
from typing import Any, Callable

import requests
from loguru import logger

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
}

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class JsonHttpClient:
    """GET-and-decode JSON with bounded retries.

    Never raises for transport, HTTP or decoding failures: every call returns
    ``(payload, None)`` on success or ``(None, reason)`` once retries are spent.
    """

    def __init__(
        self,
        timeout_seconds: float = 12.0,
        retries: int = 3,
        backoff_seconds: float = 0.4,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.retries = max(1, int(retries))
        self.backoff_seconds = max(0.0, float(backoff_seconds))
        self._sleep = sleep
        self.session = requests.Session()
        self.session.headers.update(BROWSER_HEADERS)
        self._lock = threading.Lock()
        self.request_count = 0

    def _backoff(self, attempt: int) -> float:
        # attempt starts at 1
        return self.backoff_seconds * attempt

    def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retries: int | None = None,
    ) -> tuple[Any | None, str | None]:
        attempts = max(1, int(retries or self.retries))
        last_error = "no attempt made"

        for attempt in range(1, attempts + 1):
            with self._lock:
                self.request_count += 1
            try:
                response = self.session.get(
                    url,
                    params=params,
                    headers=headers,
                    timeout=self.timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = f"network:{exc.__class__.__name__}"
            except requests.RequestException as exc:
                return None, f"request:{exc.__class__.__name__}: {exc}"
            else:
                status = response.status_code
                if 200 <= status < 300:
                    try:
                        return response.json(), None
                    except ValueError:
                        return None, f"invalid json (status={status})"
                if status not in RETRYABLE_STATUS:
                    return None, f"HTTP {status}"
                last_error = f"HTTP {status}"

            if attempt < attempts:
                wait = self._backoff(attempt)
                logger.warning(f"retry url={url} attempt={attempt} wait={wait:.2f}s reason={last_error}")
                self._sleep(wait)

        return None, f"{last_error} after {attempts} attempt(s)"

    def close(self) -> None:
        self.session.close()
