import asyncio
import logging

from inventory_sync.shopify.client import ShopifyClient, from_gid
from inventory_sync.shopify.fetch_products import DEFAULT_RATE_LIMIT_WAIT, collect, iter_rest_pages
from inventory_sync.sync.models import ItemResult, ItemStatus

logger = logging.getLogger(__name__)

LEVELS_PER_REQUEST = 50

VARIANT_BY_SKU_QUERY = """
query VariantBySku($query: String!) {
  productVariants(first: 1, query: $query) {
    edges {
      node {
        id
        sku
        title
        inventoryQuantity
        product { id title }
        inventoryItem {
          id
          tracked
          inventoryLevels(first: 10) {
            edges {
              node {
                id
                quantities(names: ["available"]) { name quantity }
                location { id name }
              }
            }
          }
        }
      }
    }
  }
}
"""


def available_quantity(level: dict) -> int:
    for q in level.get("quantities") or []:
        if q.get("name") == "available":
            return int(q.get("quantity") or 0)
    return int(level.get("available") or 0)


def inventory_level_at(variant: dict, location_id) -> dict | None:
    """The variant's inventory level node at `location_id` (numeric or gid), if stocked there."""
    target = from_gid(location_id)
    edges = (((variant.get("inventoryItem") or {}).get("inventoryLevels") or {}).get("edges")) or []
    for edge in edges:
        node = edge.get("node") or {}
        loc = (node.get("location") or {}).get("id")
        if loc and from_gid(loc) == target:
            return node
    return None


async def find_variant_by_sku(client: ShopifyClient, sku: str) -> dict | None:
    data = await client.graphql(VARIANT_BY_SKU_QUERY, {"query": f"sku:{sku}"})
    edges = ((data.get("productVariants") or {}).get("edges")) or []
    for edge in edges:
        node = edge.get("node") or {}
        # the search is fuzzy; only accept an exact SKU
        if node.get("sku") == sku:
            return node
    return None


async def fetch_inventory_levels(
    client: ShopifyClient,
    inventory_item_ids,
    location_id,
    rate_limit_wait: float = DEFAULT_RATE_LIMIT_WAIT,
    sleep=asyncio.sleep,
) -> dict[int, int]:
    """
    Available quantity per inventory item at one location. Items with no
    level there are left out.
    """
    ids = list(dict.fromkeys(from_gid(i) for i in inventory_item_ids if i))
    levels: dict[int, int] = {}
    for start in range(0, len(ids), LEVELS_PER_REQUEST):
        chunk = ids[start:start + LEVELS_PER_REQUEST]
        params = {
            "inventory_item_ids": ",".join(str(i) for i in chunk),
            "location_ids": from_gid(location_id),
        }
        rows = await collect(iter_rest_pages(
            client, "inventory_levels.json", "inventory_levels",
            params=params, rate_limit_wait=rate_limit_wait, sleep=sleep,
        ))
        for row in rows:
            levels[int(row["inventory_item_id"])] = int(row.get("available") or 0)
    return levels


async def set_inventory_level(client: ShopifyClient, inventory_item_id, location_id, available: int) -> dict:
    """Set the absolute `available` quantity of an inventory item at a location."""
    payload = {
        "location_id": from_gid(location_id),
        "inventory_item_id": from_gid(inventory_item_id),
        "available": int(available),
    }
    res = await client.post("inventory_levels/set.json", payload)
    return res.get("inventory_level") or {}


async def set_inventory_by_sku(client: ShopifyClient, sku: str, quantity: int, location_id) -> ItemResult:
    """
    Make the variant with `sku` hold exactly `quantity` at `location_id`.
    UNCHANGED when it already does, NOT_FOUND when no variant or level
    exists, FAILED when Shopify reports a different quantity afterwards.
    """
    variant = await find_variant_by_sku(client, sku)
    if not variant:
        logger.info(f"No variant found for SKU: {sku}")
        return ItemResult(key=sku, status=ItemStatus.NOT_FOUND)

    level = inventory_level_at(variant, location_id)
    if not level:
        logger.info(f"No inventory level found for SKU: {sku}")
        return ItemResult(key=sku, status=ItemStatus.NOT_FOUND, detail="no inventory level at location")

    current = available_quantity(level)
    if current == int(quantity):
        logger.info(f"✓ Inventory already at correct level for SKU {sku}: {current}")
        return ItemResult(key=sku, status=ItemStatus.UNCHANGED)

    new_level = await set_inventory_level(client, variant["inventoryItem"]["id"], location_id, quantity)
    new_qty = new_level.get("available")
    if new_qty is not None and int(new_qty) != int(quantity):
        logger.warning(f"! Failed to update inventory for SKU {sku}. Expected: {quantity}, Got: {new_qty}")
        return ItemResult(key=sku, status=ItemStatus.FAILED, detail=f"expected {quantity}, got {new_qty}")

    logger.info(f"✓ Updated inventory for SKU {sku}: {current} -> {quantity}")
    return ItemResult(key=sku, status=ItemStatus.UPDATED)


async def decrement_inventory_by_sku(client: ShopifyClient, sku: str, sold: int, location_id) -> ItemResult:
    """Subtract `sold` units (floored at zero) and write the result as an absolute level."""
    variant = await find_variant_by_sku(client, sku)
    if not variant:
        logger.info(f"SKU not found in Shopify: {sku}")
        return ItemResult(key=sku, status=ItemStatus.NOT_FOUND)

    level = inventory_level_at(variant, location_id)
    if not level:
        logger.info(f"✗ No inventory level found for SKU {sku}")
        return ItemResult(key=sku, status=ItemStatus.NOT_FOUND, detail="no inventory level at location")

    current = available_quantity(level)
    new_qty = max(0, current - int(sold))
    if new_qty == current:
        return ItemResult(key=sku, status=ItemStatus.UNCHANGED)

    await set_inventory_level(client, variant["inventoryItem"]["id"], location_id, new_qty)
    logger.info(f"✓ Updated inventory for {sku} from {current} to {new_qty}")
    return ItemResult(key=sku, status=ItemStatus.UPDATED)
