import asyncio
import logging

from inventory_sync.config import Settings
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.shopify.create_product import create_shopify_product
from inventory_sync.shopify.fetch_products import fetch_all_products
from inventory_sync.shopify.update_inventory import fetch_inventory_levels, set_inventory_level
from inventory_sync.square.client import SquareClient
from inventory_sync.square.models import CatalogItem
from inventory_sync.sync.matcher import find_variant, match_square_item
from inventory_sync.sync.models import ItemResult, ItemStatus
from inventory_sync.sync.mutator import RateLimitedMutator

logger = logging.getLogger(__name__)


class SquareInventory:
    """Square catalog items that have stock, with their per-variation counts."""

    def __init__(self, location: dict, items: list[CatalogItem], counts: dict[str, int]):
        self.location = location
        self.items = items
        self.counts = counts

    def with_stock(self) -> list[CatalogItem]:
        return [item for item in self.items if item.stock(self.counts) > 0]


def load_square_inventory(settings: Settings, square: SquareClient) -> SquareInventory:
    if settings.SQUARE_LOCATION_ID:
        location = {"id": settings.SQUARE_LOCATION_ID, "name": settings.SQUARE_LOCATION_NAME}
    else:
        location = square.find_location(settings.SQUARE_LOCATION_NAME)
    logger.info(f"Using Square location {location.get('name')} ({location['id']})")

    items = square.list_catalog_items()
    ids = [vid for item in items for vid in item.variation_ids()]
    counts = square.batch_retrieve_inventory_counts(ids, location_id=location["id"])
    inventory = SquareInventory(location, items, counts)
    logger.info(f"Found {len(inventory.with_stock())} Square items with stock")
    return inventory


def plan_sync(inventory: SquareInventory, products: list[dict], levels: dict[int, int] | None = None) -> dict:
    """
    Pair every stocked Square item with a Shopify product.

    - `matched`: (item, product, rule) triples
    - `missing`: items with no Shopify product
    - `mismatched`: variant rows whose Shopify quantity differs from Square

    `levels` maps inventory item id to the available quantity at the synced
    location. Without it the variant's total over all locations is used.
    """
    matched, missing, mismatched = [], [], []
    for item in inventory.with_stock():
        match = match_square_item(item, products)
        if not match:
            missing.append(item)
            continue
        matched.append((item, match.product, match.rule))

        for v in item.variations:
            variant = find_variant(match.product, v.sku, v.name)
            if not variant:
                continue
            square_qty = inventory.counts.get(v.id, 0)
            if levels is None:
                shopify_qty = variant.get("inventory_quantity") or 0
            else:
                shopify_qty = levels.get(variant.get("inventory_item_id"), 0)
            if square_qty != shopify_qty:
                mismatched.append({
                    "name": item.name,
                    "variation": v.name,
                    "sku": v.sku,
                    "square_quantity": square_qty,
                    "shopify_quantity": shopify_qty,
                    "inventory_item_id": variant.get("inventory_item_id"),
                })
    return {"matched": matched, "missing": missing, "mismatched": mismatched}


def _matched_item_ids(matched) -> list:
    ids = []
    for item, product, _ in matched:
        for v in item.variations:
            variant = find_variant(product, v.sku, v.name)
            if variant and variant.get("inventory_item_id"):
                ids.append(variant["inventory_item_id"])
    return ids


async def _plan_at_location(settings, client, inventory, products, sleep) -> dict:
    plan = plan_sync(inventory, products)
    if not settings.SHOPIFY_LOCATION_ID:
        return plan
    levels = await fetch_inventory_levels(
        client,
        _matched_item_ids(plan["matched"]),
        settings.SHOPIFY_LOCATION_ID,
        rate_limit_wait=settings.RATE_LIMIT_WAIT,
        sleep=sleep,
    )
    return plan_sync(inventory, products, levels)


async def _load_both(settings, client, square, sleep):
    client = client or ShopifyClient(settings)
    square = square or SquareClient(settings)
    # requests is blocking; keep it off the event loop
    inventory = await asyncio.to_thread(load_square_inventory, settings, square)
    products = await fetch_all_products(client, rate_limit_wait=settings.RATE_LIMIT_WAIT, sleep=sleep)
    return client, inventory, products


async def compare_inventory(
    settings: Settings,
    client: ShopifyClient | None = None,
    square: SquareClient | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """Read-only report of how Square stock lines up with Shopify."""
    client, inventory, products = await _load_both(settings, client, square, sleep)
    plan = await _plan_at_location(settings, client, inventory, products, sleep)

    report = {
        "square_items_with_stock": len(inventory.with_stock()),
        "shopify_products": len(products),
        "matched": [
            {"name": item.name, "shopify_id": product.get("id"), "rule": rule.value}
            for item, product, rule in plan["matched"]
        ],
        "missing": [
            {"name": item.name, "stock": item.stock(inventory.counts), "skus": [v.sku for v in item.variations]}
            for item in plan["missing"]
        ],
        "mismatched": plan["mismatched"],
    }
    logger.info(
        f"Comparison: {len(report['matched'])} matched, {len(report['missing'])} missing, "
        f"{len(report['mismatched'])} quantity mismatches"
    )
    return report


async def sync_inventory_levels(
    settings: Settings,
    client: ShopifyClient | None = None,
    square: SquareClient | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """Set Shopify's available quantity to Square's for every mismatched variant."""
    settings.require("SHOPIFY_LOCATION_ID")
    client, inventory, products = await _load_both(settings, client, square, sleep)
    plan = await _plan_at_location(settings, client, inventory, products, sleep)
    rows = [r for r in plan["mismatched"] if r["inventory_item_id"]]
    logger.info(f"Syncing {len(rows)} inventory levels from Square")

    async def apply(row: dict) -> ItemResult:
        await set_inventory_level(client, row["inventory_item_id"], settings.SHOPIFY_LOCATION_ID, row["square_quantity"])
        logger.info(f"✓ {row['name']} / {row['variation']}: {row['shopify_quantity']} -> {row['square_quantity']}")
        return ItemResult(key=_row_key(row), status=ItemStatus.UPDATED)

    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep)
    summary = await mutator.run(rows, apply, key=_row_key)
    return summary.as_dict()


def _row_key(row: dict) -> str:
    return row.get("sku") or f"{row['name']} / {row['variation']}"


async def add_missing_items(
    settings: Settings,
    client: ShopifyClient | None = None,
    square: SquareClient | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """Create a Shopify product for each stocked Square item Shopify does not have."""
    client, inventory, products = await _load_both(settings, client, square, sleep)
    missing = plan_sync(inventory, products)["missing"]
    logger.info(f"Creating {len(missing)} products missing from Shopify")

    async def apply(item: CatalogItem) -> ItemStatus:
        await create_shopify_product(client, item, inventory.counts)
        return ItemStatus.UPDATED

    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep)
    summary = await mutator.run(missing, apply, key=lambda item: item.name)
    return summary.as_dict()


async def list_square_items(settings: Settings, square: SquareClient | None = None) -> list[dict]:
    """Square catalog items that have stock at the configured location, with per-variation detail."""
    square = square or SquareClient(settings)
    inventory = await asyncio.to_thread(load_square_inventory, settings, square)
    return [
        {
            "id": item.id,
            "name": item.name,
            "stock": item.stock(inventory.counts),
            "variations": [
                {
                    "name": v.name,
                    "sku": v.sku,
                    "price": v.price if v.price_cents is not None else None,
                    "stock": inventory.counts.get(v.id, 0),
                }
                for v in item.variations
            ],
        }
        for item in inventory.with_stock()
    ]
