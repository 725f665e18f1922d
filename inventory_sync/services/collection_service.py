import asyncio
import logging

from inventory_sync.config import Settings
from inventory_sync.exceptions import NotFoundError
from inventory_sync.shopify.client import ShopifyClient, to_gid
from inventory_sync.shopify.fetch_products import collect, fetch_collections, iter_graphql_pages
from inventory_sync.shopify.update_inventory import set_inventory_level
from inventory_sync.shopify.update_product import clear_compare_at_price, enable_variant_tracking
from inventory_sync.sync.models import ItemResult, ItemStatus
from inventory_sync.sync.mutator import RateLimitedMutator

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
STOCK_QUANTITY = 1

COLLECTION_PRODUCTS_QUERY = """
query CollectionProducts($id: ID!, $first: Int!, $after: String) {
  collection(id: $id) {
    products(first: $first, after: $after) {
      pageInfo { hasNextPage endCursor }
      edges {
        node {
          id
          title
          variants(first: 100) {
            edges {
              node {
                id
                title
                sku
                price
                compareAtPrice
                inventoryItem { id tracked }
              }
            }
          }
        }
      }
    }
  }
}
"""


async def list_collections(settings: Settings, client: ShopifyClient | None = None, sleep=asyncio.sleep) -> list[dict]:
    """Smart and custom collections with the fields needed to target one by title."""
    client = client or ShopifyClient(settings)
    collections = await fetch_collections(client, rate_limit_wait=settings.RATE_LIMIT_WAIT, sleep=sleep)
    logger.info(f"Found {len(collections)} collections")
    return [{"id": c.get("id"), "title": c.get("title"), "handle": c.get("handle")} for c in collections]


async def find_collection(settings: Settings, client: ShopifyClient, title: str, sleep=asyncio.sleep) -> dict:
    collections = await fetch_collections(client, rate_limit_wait=settings.RATE_LIMIT_WAIT, sleep=sleep)
    collection = next((c for c in collections if c.get("title") == title), None)
    if not collection:
        raise NotFoundError(f"{title} collection not found")
    return collection


def _variant_nodes(product: dict) -> list[dict]:
    edges = ((product.get("variants") or {}).get("edges")) or []
    return [edge.get("node") or {} for edge in edges]


async def fetch_collection_variants(
    settings: Settings,
    client: ShopifyClient,
    collection: dict,
    sleep=asyncio.sleep,
) -> list[tuple[dict, dict]]:
    """(product, variant) pairs for every variant in the collection, over GraphQL pages."""
    pages = iter_graphql_pages(
        client,
        COLLECTION_PRODUCTS_QUERY,
        ("collection", "products"),
        variables={"id": to_gid("Collection", collection["id"])},
        page_size=PAGE_SIZE,
        rate_limit_wait=settings.RATE_LIMIT_WAIT,
        sleep=sleep,
    )
    products = await collect(pages)
    pairs = [(p, v) for p in products for v in _variant_nodes(p)]
    logger.info(f"Found {len(products)} products ({len(pairs)} variants) in collection {collection.get('title')}")
    return pairs


def _pair_key(pair) -> str:
    return pair[1]["id"]


async def stock_collection(
    settings: Settings,
    collection_title: str,
    quantity: int = STOCK_QUANTITY,
    client: ShopifyClient | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """
    Turn on Shopify inventory tracking for every variant of a collection and
    set its available quantity at SHOPIFY_LOCATION_ID to `quantity`.
    """
    settings.require("SHOPIFY_LOCATION_ID")
    client = client or ShopifyClient(settings)
    location_id = settings.SHOPIFY_LOCATION_ID
    logger.info(f"=== Stocking {collection_title} collection at {quantity} per variant ===")

    collection = await find_collection(settings, client, collection_title, sleep=sleep)
    pairs = await fetch_collection_variants(settings, client, collection, sleep=sleep)

    async def apply(pair) -> ItemResult:
        product, variant = pair
        await enable_variant_tracking(client, variant["id"])
        await set_inventory_level(client, variant["inventoryItem"]["id"], location_id, quantity)
        logger.info(f"✓ {product.get('title')} / {variant.get('title')}: tracking on, {quantity} available")
        return ItemResult(key=variant["id"], status=ItemStatus.UPDATED)

    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep, batch_size=None, batch_pause=0)
    summary = await mutator.run(pairs, apply, key=_pair_key)
    return {"collection": collection["title"], **summary.as_dict()}


async def remove_sale_prices(
    settings: Settings,
    collection_title: str,
    client: ShopifyClient | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """Clear `compareAtPrice` on every variant of a collection that has one."""
    client = client or ShopifyClient(settings)
    logger.info(f"=== Removing sale prices from {collection_title} collection ===")

    collection = await find_collection(settings, client, collection_title, sleep=sleep)
    pairs = await fetch_collection_variants(settings, client, collection, sleep=sleep)

    async def apply(pair) -> ItemStatus:
        product, variant = pair
        if not variant.get("compareAtPrice"):
            return ItemStatus.UNCHANGED
        await clear_compare_at_price(client, variant["id"])
        logger.info(
            f"✓ Sale price removed: {product.get('title')} / {variant.get('title')} "
            f"(price ${variant.get('price')}, was compared at ${variant.get('compareAtPrice')})"
        )
        return ItemStatus.UPDATED

    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep, batch_size=None, batch_pause=0)
    summary = await mutator.run(pairs, apply, key=_pair_key)
    result = {"collection": collection["title"], **summary.as_dict()}
    logger.info(f"=== Price Update Summary === {result['updated']} sale prices removed, {result['failed']} failed")
    return result
