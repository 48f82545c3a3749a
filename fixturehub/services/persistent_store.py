from __future__ import annotations

import json
import os
import re
import tempfile
from typing import Any

from loguru import logger

DATE_FILE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}\.json$")


class PersistentStore:
    """One JSON document per namespace under ``cache_dir``.

    Writes replace the whole file atomically, so readers never observe a
    partial document. The first failed write switches the store off for the
    rest of the process; callers keep working from memory.
    """

    def __init__(self, cache_dir: str) -> None:
        self.cache_dir = cache_dir
        self.enabled = bool(cache_dir)
        self.last_error: str | None = None

    def path_for(self, namespace: str) -> str:
        return os.path.join(self.cache_dir, f"{namespace}.json")

    @staticmethod
    def _read_json_file(path: str) -> dict[str, Any] | None:
        if not path or not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable cache file {path}: {exc}")
            return None
        if not isinstance(payload, dict):
            return None
        return payload

    @staticmethod
    def _write_json_file(path: str, payload: dict[str, Any]) -> None:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=parent or None)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def load_map(self, namespace: str) -> dict[str, Any]:
        if not self.enabled:
            return {}
        return self._read_json_file(self.path_for(namespace)) or {}

    def save_map(self, namespace: str, payload: dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        try:
            self._write_json_file(self.path_for(namespace), payload)
        except (OSError, TypeError, ValueError) as exc:
            self.enabled = False
            self.last_error = str(exc)
            logger.error(
                f"Disk cache write failed for {namespace}: {exc}. Continuing with memory-only caching."
            )
            return False
        return True

    def delete(self, namespace: str) -> bool:
        path = self.path_for(namespace)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning(f"Failed to delete cache file {path}: {exc}")
            return False
        return True

    def list_dates(self) -> list[str]:
        try:
            names = os.listdir(self.cache_dir)
        except OSError:
            return []
        return sorted(name[: -len(".json")] for name in names if DATE_FILE_PATTERN.match(name))
