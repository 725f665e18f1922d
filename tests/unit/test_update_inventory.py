import pytest
from unittest.mock import AsyncMock

from inventory_sync.shopify.update_inventory import (
    available_quantity,
    decrement_inventory_by_sku,
    fetch_inventory_levels,
    find_variant_by_sku,
    inventory_level_at,
    set_inventory_by_sku,
    set_inventory_level,
)
from inventory_sync.sync.models import ItemStatus


pytestmark = pytest.mark.unit

LOCATION = "gid://shopify/Location/777"


def _variant(sku="SKU-1", available=3, location="gid://shopify/Location/777"):
    return {
        "id": "gid://shopify/ProductVariant/1",
        "sku": sku,
        "inventoryItem": {
            "id": "gid://shopify/InventoryItem/42",
            "tracked": True,
            "inventoryLevels": {"edges": [{"node": {
                "id": "lvl",
                "quantities": [{"name": "available", "quantity": available}],
                "location": {"id": location, "name": "Store"},
            }}]},
        },
    }


def _lookup(*variants):
    return {"productVariants": {"edges": [{"node": v} for v in variants]}}


def test_available_quantity():
    assert available_quantity({"quantities": [{"name": "available", "quantity": 4}]}) == 4
    assert available_quantity({"available": 2}) == 2
    assert available_quantity({}) == 0


def test_inventory_level_at_matches_numeric_or_gid():
    variant = _variant()
    assert inventory_level_at(variant, "777")["id"] == "lvl"
    assert inventory_level_at(variant, LOCATION)["id"] == "lvl"
    assert inventory_level_at(variant, 999) is None


@pytest.mark.asyncio
async def test_find_variant_requires_exact_sku(shopify_client):
    shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(sku="SKU-10")))
    assert await find_variant_by_sku(shopify_client, "SKU-1") is None

    shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(sku="SKU-1")))
    assert (await find_variant_by_sku(shopify_client, "SKU-1"))["sku"] == "SKU-1"
    assert shopify_client.graphql.await_args.args[1] == {"query": "sku:SKU-1"}


@pytest.mark.asyncio
async def test_set_inventory_level_posts_absolute_numeric_ids(shopify_client):
    shopify_client.post = AsyncMock(return_value={"inventory_level": {"available": 9}})

    level = await set_inventory_level(shopify_client, "gid://shopify/InventoryItem/42", LOCATION, 9)

    assert level == {"available": 9}
    shopify_client.post.assert_awaited_once_with(
        "inventory_levels/set.json",
        {"location_id": 777, "inventory_item_id": 42, "available": 9},
    )


class TestSetInventoryBySku:

    @pytest.mark.asyncio
    async def test_not_found(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup())
        result = await set_inventory_by_sku(shopify_client, "SKU-1", 5, LOCATION)
        assert result.status == ItemStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_no_level_at_location(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(location="gid://shopify/Location/1")))
        result = await set_inventory_by_sku(shopify_client, "SKU-1", 5, LOCATION)
        assert result.status == ItemStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unchanged_skips_write(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(available=5)))
        result = await set_inventory_by_sku(shopify_client, "SKU-1", 5, LOCATION)
        assert result.status == ItemStatus.UNCHANGED
        shopify_client.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_updated(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(available=3)))
        shopify_client.post = AsyncMock(return_value={"inventory_level": {"available": 5}})
        result = await set_inventory_by_sku(shopify_client, "SKU-1", 5, LOCATION)
        assert result.status == ItemStatus.UPDATED

    @pytest.mark.asyncio
    async def test_mismatch_after_write_fails(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(available=3)))
        shopify_client.post = AsyncMock(return_value={"inventory_level": {"available": 4}})
        result = await set_inventory_by_sku(shopify_client, "SKU-1", 5, LOCATION)
        assert result.status == ItemStatus.FAILED
        assert result.detail == "expected 5, got 4"


class TestDecrement:

    @pytest.mark.asyncio
    async def test_subtracts_and_writes_absolute(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(available=3)))
        shopify_client.post = AsyncMock(return_value={"inventory_level": {"available": 1}})

        result = await decrement_inventory_by_sku(shopify_client, "SKU-1", 2, LOCATION)

        assert result.status == ItemStatus.UPDATED
        assert shopify_client.post.await_args.args[1]["available"] == 1

    @pytest.mark.asyncio
    async def test_floors_at_zero(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(available=1)))
        shopify_client.post = AsyncMock(return_value={"inventory_level": {"available": 0}})

        await decrement_inventory_by_sku(shopify_client, "SKU-1", 5, LOCATION)

        assert shopify_client.post.await_args.args[1]["available"] == 0

    @pytest.mark.asyncio
    async def test_already_zero_is_unchanged(self, shopify_client):
        shopify_client.graphql = AsyncMock(return_value=_lookup(_variant(available=0)))
        result = await decrement_inventory_by_sku(shopify_client, "SKU-1", 1, LOCATION)
        assert result.status == ItemStatus.UNCHANGED
        shopify_client.post.assert_not_awaited()


@pytest.mark.asyncio
async def test_fetch_inventory_levels_at_one_location(paged_client, sleep):
    client = paged_client([[{"inventory_item_id": 1, "location_id": 777, "available": 4}]], key="inventory_levels")
    ids = [f"gid://shopify/InventoryItem/{n}" for n in range(1, 52)] + [1, None]

    levels = await fetch_inventory_levels(client, ids, LOCATION, sleep=sleep)

    assert levels == {1: 4}
    assert [c[0] for c in client.calls] == ["inventory_levels.json", "inventory_levels.json"]
    first, second = (c[1] for c in client.calls)
    assert first["inventory_item_ids"] == ",".join(str(n) for n in range(1, 51))
    assert first["location_ids"] == 777
    assert second["inventory_item_ids"] == "51"
