import hashlib
import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)

_RUN_ID_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def input_run_id(prefix: str, items) -> str:
    """
    Run id bound to one input: the same records resume the same progress
    file, different records never see it.
    """
    raw = json.dumps(items, sort_keys=True, default=str)
    return f"{prefix}_{hashlib.md5(raw.encode()).hexdigest()[:12]}"


class CheckpointStore(Protocol):
    def get(self, run_id: str) -> dict | None: ...

    def set(self, run_id: str, data: dict) -> None: ...

    def delete(self, run_id: str) -> None: ...


class JsonFileCheckpointStore:
    """
    One JSON file per run id under `directory`. Every `set` overwrites the
    previous file; there is no locking, so two concurrent runs with the
    same id end up with whichever wrote last.
    """

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, run_id: str) -> str:
        name = _RUN_ID_RE.sub("_", run_id).strip("_") or "checkpoint"
        return os.path.join(self.directory, f"{name}.json")

    def get(self, run_id: str) -> dict | None:
        path = self._path(run_id)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def set(self, run_id: str, data: dict) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(run_id)
        tmp = path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, path)

    def delete(self, run_id: str) -> None:
        path = self._path(run_id)
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Removed checkpoint {path}")


class SkuProgress:
    """Per-SKU success map (`{sku: bool}`) persisted between runs."""

    def __init__(self, store: CheckpointStore, run_id: str):
        self.store = store
        self.run_id = run_id
        self.done: dict[str, bool] = {}

    def load(self) -> dict[str, bool]:
        data = self.store.get(self.run_id) or {}
        self.done = {str(k): bool(v) for k, v in data.items()}
        if self.done:
            succeeded = sum(1 for v in self.done.values() if v)
            logger.info(f"Resuming {self.run_id}: {succeeded}/{len(self.done)} SKUs already done")
        return self.done

    def is_done(self, sku: str) -> bool:
        return self.done.get(sku) is True

    def mark(self, sku: str, ok: bool) -> None:
        self.done[sku] = bool(ok)

    def has_failures(self) -> bool:
        return any(v is False for v in self.done.values())

    def save(self) -> None:
        self.store.set(self.run_id, dict(self.done))

    def clear(self) -> None:
        self.done = {}
        self.store.delete(self.run_id)


class CursorCheckpoint:
    """Resume marker for paginated jobs: last cursor, running total, timestamp."""

    def __init__(self, store: CheckpointStore, run_id: str):
        self.store = store
        self.run_id = run_id
        self.last_page_info: str | None = None
        self.total_fetched = 0
        self.last_update_time: str | None = None

    def load(self) -> str | None:
        data = self.store.get(self.run_id) or {}
        self.last_page_info = data.get("lastPageInfo")
        self.total_fetched = int(data.get("totalFetched") or 0)
        self.last_update_time = data.get("lastUpdateTime")
        if self.last_page_info:
            logger.info(f"Resuming {self.run_id} after {self.total_fetched} records")
        return self.last_page_info

    def advance(self, page_info: str | None, fetched: int) -> None:
        self.last_page_info = page_info
        self.total_fetched += fetched
        self.last_update_time = datetime.now(timezone.utc).isoformat()
        self.store.set(self.run_id, {
            "lastPageInfo": self.last_page_info,
            "totalFetched": self.total_fetched,
            "lastUpdateTime": self.last_update_time,
        })

    def clear(self) -> None:
        self.last_page_info = None
        self.total_fetched = 0
        self.store.delete(self.run_id)
