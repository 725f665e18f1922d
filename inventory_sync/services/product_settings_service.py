import asyncio
import logging

from inventory_sync.config import Settings
from inventory_sync.exceptions import NotFoundError
from inventory_sync.services.collection_service import find_collection
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.shopify.fetch_products import fetch_all_products, fetch_collection_products, fetch_product_by_title
from inventory_sync.shopify.update_product import enable_inventory_tracking, enable_pos, enable_tax, update_product_description
from inventory_sync.sync.models import BatchSummary, ItemStatus
from inventory_sync.sync.mutator import RateLimitedMutator

logger = logging.getLogger(__name__)

GROUP_SIZE = 5
GROUP_DELAY = 2.0
PAGE_DELAY = 1.0


def _titles_by_status(products: list[dict], summary: BatchSummary) -> dict:
    titles = {str(p["id"]): p.get("title") for p in products}
    out = {"success": [], "already_enabled": [], "failed": []}
    for r in summary.results:
        title = titles.get(r.key, r.key)
        if r.status == ItemStatus.UNCHANGED:
            out["already_enabled"].append(title)
        elif r.ok:
            out["success"].append(title)
        else:
            out["failed"].append(title)
    return out


async def _apply_to_all_products(settings: Settings, client: ShopifyClient, mutation, sleep) -> dict:
    products = await fetch_all_products(
        client,
        rate_limit_wait=settings.RATE_LIMIT_WAIT,
        page_delay=PAGE_DELAY,
        sleep=sleep,
    )
    mutator = RateLimitedMutator.from_settings(
        settings,
        sleep=sleep,
        concurrency=GROUP_SIZE,
        item_delay=GROUP_DELAY,
        failure_delay=0,
        batch_size=None,
        batch_pause=0,
    )
    summary = await mutator.run(
        products,
        lambda p: mutation(client, p, sleep=sleep),
        key=lambda p: str(p["id"]),
    )
    result = {**summary.as_dict(), **_titles_by_status(products, summary)}
    logger.info(
        f"=== Summary === enabled {len(result['success'])}, "
        f"already enabled {len(result['already_enabled'])}, failed {len(result['failed'])}"
    )
    return result


async def enable_tracking_for_all(settings: Settings, client: ShopifyClient | None = None, sleep=asyncio.sleep) -> dict:
    """Enable Shopify inventory tracking on every product, five at a time."""
    return await _apply_to_all_products(settings, client or ShopifyClient(settings), enable_inventory_tracking, sleep)


async def enable_tax_for_all(settings: Settings, client: ShopifyClient | None = None, sleep=asyncio.sleep) -> dict:
    """Charge tax on every variant of every product, five at a time."""
    return await _apply_to_all_products(settings, client or ShopifyClient(settings), enable_tax, sleep)


async def enable_pos_for_collection(
    settings: Settings,
    collection_title: str,
    client: ShopifyClient | None = None,
    sleep=asyncio.sleep,
) -> dict:
    client = client or ShopifyClient(settings)
    logger.info(f"=== Enabling POS for {collection_title} collection ===")

    collection = await find_collection(settings, client, collection_title, sleep=sleep)

    products = await fetch_collection_products(
        client, collection["id"], rate_limit_wait=settings.RATE_LIMIT_WAIT, sleep=sleep
    )
    logger.info(f"Found {len(products)} products in collection {collection['title']} (ID: {collection['id']})")

    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep, batch_size=None, batch_pause=0)
    summary = await mutator.run(products, lambda p: enable_pos(client, p["id"]), key=lambda p: str(p["id"]))
    return {"collection": collection["title"], **summary.as_dict()}


async def _product_by_title(client: ShopifyClient, title: str) -> dict:
    product = await fetch_product_by_title(client, title)
    if not product:
        raise NotFoundError(f"Product not found: {title}")
    return product


async def get_product_description(settings: Settings, title: str, client: ShopifyClient | None = None) -> dict:
    product = await _product_by_title(client or ShopifyClient(settings), title)
    logger.info(f"Found product: {product.get('title')}")
    return {"id": product["id"], "title": product.get("title"), "body_html": product.get("body_html") or ""}


async def set_product_description(
    settings: Settings,
    title: str,
    body_html: str,
    client: ShopifyClient | None = None,
) -> dict:
    """Replace the HTML description of the product with exactly this title."""
    client = client or ShopifyClient(settings)
    product = await _product_by_title(client, title)
    await update_product_description(client, product["id"], body_html)
    logger.info(f"✓ Description updated for {product.get('title')}")
    return {"id": product["id"], "title": product.get("title"), "body_html": body_html}
