import json
import os

import requests

base_url = os.getenv("FIXTURE_API_BASE_URL", "http://127.0.0.1:8000")

try:
    response = requests.get(f"{base_url}/api/fixtures", params={"date": "today"}, timeout=30)
    response.raise_for_status()
    payload = response.json()
    print(json.dumps({"date": payload.get("date"), "fixtures": len(payload.get("fixtures", [])), "meta": payload.get("meta")}, indent=2))
except requests.exceptions.RequestException as exc:
    print(f"Error: {exc}")
