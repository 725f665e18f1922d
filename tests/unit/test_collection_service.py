import pytest
from unittest.mock import AsyncMock, patch

from inventory_sync.exceptions import ConfigError, InventorySyncError, ShopifyUserError
from inventory_sync.services import collection_service as svc


pytestmark = pytest.mark.unit

COLLECTIONS = [
    {"id": 9, "title": "Custom Black Friday", "handle": "custom-black-friday"},
    {"id": 3, "title": "Sale", "handle": "sale"},
]


def _variant(n, compare_at=None):
    return {"node": {
        "id": f"gid://shopify/ProductVariant/{n}",
        "title": f"Size {n}",
        "sku": f"SKU-{n}",
        "price": "20.00",
        "compareAtPrice": compare_at,
        "inventoryItem": {"id": f"gid://shopify/InventoryItem/{n}0", "tracked": False},
    }}


def _page(products, has_next=False, cursor=None):
    return {"collection": {"products": {
        "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
        "edges": [{"node": p} for p in products],
    }}}


PAGES = [
    _page([{"id": "gid://shopify/Product/1", "title": "Tee", "variants": {"edges": [_variant(1), _variant(2, "30.00")]}}],
          has_next=True, cursor="c1"),
    _page([{"id": "gid://shopify/Product/2", "title": "Hoodie", "variants": {"edges": [_variant(3, "55.00")]}}]),
]


@pytest.fixture
def collections():
    with patch.object(svc, "fetch_collections", AsyncMock(return_value=COLLECTIONS)) as mock:
        yield mock


@pytest.fixture
def collection_client(shopify_client):
    shopify_client.graphql = AsyncMock(side_effect=list(PAGES))
    return shopify_client


@pytest.mark.asyncio
async def test_list_collections(settings, shopify_client, collections, sleep):
    result = await svc.list_collections(settings, client=shopify_client, sleep=sleep)
    assert result == COLLECTIONS


@pytest.mark.asyncio
async def test_unknown_collection(settings, shopify_client, collections, sleep):
    with pytest.raises(InventorySyncError, match="Winter collection not found"):
        await svc.stock_collection(settings, "Winter", client=shopify_client, sleep=sleep)


@pytest.mark.asyncio
async def test_variants_follow_graphql_pages(settings, collection_client, sleep):
    pairs = await svc.fetch_collection_variants(settings, collection_client, COLLECTIONS[0], sleep=sleep)

    assert [(p["title"], v["sku"]) for p, v in pairs] == [("Tee", "SKU-1"), ("Tee", "SKU-2"), ("Hoodie", "SKU-3")]
    first, second = (c.args[1] for c in collection_client.graphql.await_args_list)
    assert first == {"id": "gid://shopify/Collection/9", "first": svc.PAGE_SIZE, "after": None}
    assert second["after"] == "c1"


class TestStockCollection:

    @pytest.mark.asyncio
    async def test_requires_location(self, settings, collection_client, collections, sleep):
        settings.SHOPIFY_LOCATION_ID = None
        with pytest.raises(ConfigError, match="SHOPIFY_LOCATION_ID"):
            await svc.stock_collection(settings, "Custom Black Friday", client=collection_client, sleep=sleep)

    @pytest.mark.asyncio
    async def test_tracks_then_sets_absolute_level(self, settings, collection_client, collections, sleep):
        calls = []
        track = AsyncMock(side_effect=lambda client, vid: calls.append(("track", vid)) or {})
        level = AsyncMock(side_effect=lambda client, item, loc, qty: calls.append(("level", item, loc, qty)) or {})

        with patch.object(svc, "enable_variant_tracking", track), patch.object(svc, "set_inventory_level", level):
            result = await svc.stock_collection(settings, "Custom Black Friday", client=collection_client, sleep=sleep)

        assert calls[:2] == [
            ("track", "gid://shopify/ProductVariant/1"),
            ("level", "gid://shopify/InventoryItem/10", settings.SHOPIFY_LOCATION_ID, 1),
        ]
        assert len(calls) == 6
        assert result["collection"] == "Custom Black Friday"
        assert result["updated"] == 3
        assert sleep.calls == [settings.ITEM_DELAY, settings.ITEM_DELAY]

    @pytest.mark.asyncio
    async def test_failed_variant_does_not_stop_the_run(self, settings, collection_client, collections, sleep):
        async def track(client, variant_id):
            if variant_id.endswith("/2"):
                raise ShopifyUserError([{"message": "Variant is a gift card"}])
            return {}

        with patch.object(svc, "enable_variant_tracking", AsyncMock(side_effect=track)), \
                patch.object(svc, "set_inventory_level", AsyncMock(return_value={})) as level:
            result = await svc.stock_collection(
                settings, "Custom Black Friday", quantity=2, client=collection_client, sleep=sleep
            )

        assert level.await_count == 2
        assert result["failed_keys"] == ["gid://shopify/ProductVariant/2"]
        assert settings.FAILURE_DELAY in sleep.calls


@pytest.mark.asyncio
async def test_remove_sale_prices_only_touches_discounted_variants(settings, collection_client, collections, sleep):
    clear = AsyncMock(return_value={})
    with patch.object(svc, "clear_compare_at_price", clear):
        result = await svc.remove_sale_prices(settings, "Custom Black Friday", client=collection_client, sleep=sleep)

    assert [c.args[1] for c in clear.await_args_list] == [
        "gid://shopify/ProductVariant/2",
        "gid://shopify/ProductVariant/3",
    ]
    assert result["updated"] == 2
    assert result["unchanged"] == 1
    assert result["succeeded"] == 3
