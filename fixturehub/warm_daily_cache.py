from __future__ import annotations

import datetime as dt
import json

from fixturehub.config import Config, configure_logging
from fixturehub.services.fixture_service import build_fixture_service
from fixturehub.services.normalize import local_now


def main() -> None:
    config = Config.from_env()
    configure_logging(config.log_level)
    service = build_fixture_service(config)

    today = local_now().date()
    requested_dates = [today.isoformat(), (today + dt.timedelta(days=1)).isoformat()]

    fixtures_by_date: dict[str, int] = {}
    source_counts: dict[str, dict[str, int]] = {}
    notices: dict[str, list[str]] = {}
    cache_by_date: dict[str, str] = {}

    for date_text in requested_dates:
        payload = service.get(date_text, force=True)
        meta = payload.get("meta", {})
        fixtures_by_date[date_text] = len(payload.get("fixtures", []))
        source_counts[date_text] = meta.get("sourceCounts", {})
        notices[date_text] = meta.get("notices", [])
        cache_by_date[date_text] = str(meta.get("cache", "live"))

    print(
        json.dumps(
            {
                "requested_dates": requested_dates,
                "fixtures_loaded": fixtures_by_date,
                "cache_by_date": cache_by_date,
                "source_counts": source_counts,
                "notices": notices,
                "disk_cache_enabled": service.cache.store.enabled,
            },
            indent=2,
        )
    )
    service.close()


if __name__ == "__main__":
    main()
