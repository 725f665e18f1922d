import logging
import time

import requests

from inventory_sync.config import Settings
from inventory_sync.exceptions import SquareAPIError
from inventory_sync.square.models import CatalogItem

logger = logging.getLogger(__name__)

SQUARE_BASE_URL = "https://connect.squareup.com/v2"
INVENTORY_CHUNK_SIZE = 100


class SquareClient:
    def __init__(self, settings: Settings, session: requests.Session | None = None):
        settings.require("SQUARE_ACCESS_TOKEN")
        self.token = settings.SQUARE_ACCESS_TOKEN
        self.api_version = settings.SQUARE_API_VERSION
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Square-Version": self.api_version,
            "Content-Type": "application/json",
        }

    def _handle(self, response: requests.Response) -> dict:
        if response.status_code >= 400:
            try:
                errors = response.json().get("errors")
            except ValueError:
                errors = response.text
            logger.error(f"Square API Error (status {response.status_code}): {errors}")
            raise SquareAPIError(response.status_code, errors)
        return response.json()

    def get(self, endpoint: str, params: dict | None = None) -> dict:
        url = f"{SQUARE_BASE_URL}{endpoint}"
        return self._handle(self.session.get(url, headers=self._headers(), params=params, timeout=45))

    def post(self, endpoint: str, payload: dict) -> dict:
        url = f"{SQUARE_BASE_URL}{endpoint}"
        return self._handle(self.session.post(url, headers=self._headers(), json=payload, timeout=45))

    def list_locations(self) -> list[dict]:
        return self.get("/locations").get("locations", [])

    def find_location(self, name: str) -> dict:
        locations = self.list_locations()
        for loc in locations:
            if loc.get("name") == name:
                return loc
        available = ", ".join(f"{loc.get('name')} ({loc.get('id')})" for loc in locations)
        raise SquareAPIError(404, f"Could not find location {name!r}; available: {available}")

    def iter_catalog_objects(self, types: str = "ITEM"):
        """Yield catalog objects, following the `cursor` until Square stops returning one."""
        cursor = None
        while True:
            params = {"types": types}
            if cursor:
                params["cursor"] = cursor
            data = self.get("/catalog/list", params)
            for obj in data.get("objects", []):
                yield obj
            cursor = data.get("cursor")
            if not cursor:
                break

    def list_catalog_items(self) -> list[CatalogItem]:
        items = [
            CatalogItem.from_catalog_object(obj)
            for obj in self.iter_catalog_objects("ITEM")
            if obj.get("type") == "ITEM" and not obj.get("is_deleted")
        ]
        logger.info(f"Found {len(items)} items in Square catalog")
        return items

    def batch_retrieve_inventory_counts(
        self,
        variation_ids: list[str],
        location_id: str | None = None,
        chunk_delay: float = 0.1,
    ) -> dict[str, int]:
        """
        Map catalog object id -> quantity in stock. Ids are requested in
        chunks of 100; ids Square has no count for are absent from the map.
        """
        counts: dict[str, int] = {}
        for start in range(0, len(variation_ids), INVENTORY_CHUNK_SIZE):
            chunk = variation_ids[start:start + INVENTORY_CHUNK_SIZE]
            payload = {"catalog_object_ids": chunk, "states": ["IN_STOCK"]}
            if location_id:
                payload["location_ids"] = [location_id]

            cursor = None
            while True:
                if cursor:
                    payload["cursor"] = cursor
                data = self.post("/inventory/counts/batch-retrieve", payload)
                for count in data.get("counts", []):
                    oid = count.get("catalog_object_id")
                    counts[oid] = counts.get(oid, 0) + _quantity(count.get("quantity"))
                cursor = data.get("cursor")
                if not cursor:
                    break

            if start + INVENTORY_CHUNK_SIZE < len(variation_ids) and chunk_delay:
                time.sleep(chunk_delay)
        return counts


def _quantity(value) -> int:
    # Square sends decimal strings ("3", "2.0")
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0
