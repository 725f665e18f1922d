"""
Shared fixtures: settings without a .env file, a recording sleep, an
in-memory checkpoint store and a Shopify client double.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from inventory_sync.config import Settings


class MemoryCheckpointStore:
    def __init__(self, initial: dict | None = None):
        self.data = dict(initial or {})
        self.sets = []
        self.deletes = []

    def get(self, run_id):
        value = self.data.get(run_id)
        return dict(value) if value is not None else None

    def set(self, run_id, data):
        self.data[run_id] = dict(data)
        self.sets.append((run_id, dict(data)))

    def delete(self, run_id):
        self.data.pop(run_id, None)
        self.deletes.append(run_id)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class PagedShopifyClient:
    """
    Stand-in for ShopifyClient.get that serves REST pages in order and sets
    a Link header pointing at the next one.
    """

    def __init__(self, pages: list[list[dict]], key: str = "products"):
        self.pages = pages
        self.key = key
        self.calls = []
        self.last_response = None
        self.errors = {}

    async def get(self, endpoint, params=None):
        self.calls.append((endpoint, dict(params or {})))
        page_info = (params or {}).get("page_info")
        index = int(page_info.split("-")[1]) if page_info else 0

        error = self.errors.get(len(self.calls))
        if error:
            raise error

        headers = {}
        if index + 1 < len(self.pages):
            headers["Link"] = (
                f'<https://shop.myshopify.com/admin/api/2024-01/{endpoint}'
                f'?limit=250&page_info=page-{index + 1}>; rel="next"'
            )
        self.last_response = SimpleNamespace(headers=headers)
        return {self.key: self.pages[index]}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        SHOPIFY_ACCESS_TOKEN="shpat_test",
        SHOPIFY_SHOP_DOMAIN="test-shop.myshopify.com",
        SHOPIFY_LOCATION_ID="gid://shopify/Location/777",
        SQUARE_ACCESS_TOKEN="sq_test",
        SQUARE_LOCATION_ID="L1",
        ITEM_DELAY=0.5,
        FAILURE_DELAY=1.0,
        BATCH_SIZE=5,
        BATCH_PAUSE=30.0,
        RETRY_MAX_RETRIES=3,
        RETRY_BASE_DELAY=15.0,
    )


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    return MemoryCheckpointStore()


@pytest.fixture
def shopify_client():
    client = AsyncMock()
    client.last_response = None
    return client


@pytest.fixture
def paged_client():
    return PagedShopifyClient
