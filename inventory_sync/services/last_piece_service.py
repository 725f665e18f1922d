import asyncio
import logging
from collections import Counter

from inventory_sync.config import Settings
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.shopify.fetch_products import PRODUCTS_QUERY, iter_graphql_pages
from inventory_sync.shopify.update_product import update_product_status, update_product_tags
from inventory_sync.sync.checkpoint import CheckpointStore, CursorCheckpoint, JsonFileCheckpointStore
from inventory_sync.sync.models import ItemResult, ItemStatus
from inventory_sync.sync.mutator import RateLimitedMutator

logger = logging.getLogger(__name__)

LAST_PIECE_TAG = "Last Piece"
LAST_PIECE_MAX = 2
PAGE_SIZE = 50
RUN_ID = "last_piece_tags"


def total_quantity(product: dict) -> int:
    edges = ((product.get("variants") or {}).get("edges")) or []
    return sum((edge.get("node") or {}).get("inventoryQuantity") or 0 for edge in edges)


def plan_product_update(product: dict) -> dict:
    """
    Decide tag and status for one product from its summed variant stock.

    0 units: DRAFT, no tag. 1-2 units: "Last Piece" tag. More: no tag.
    A DRAFT product with stock goes back to ACTIVE.
    """
    total = total_quantity(product)
    current_status = product.get("status")
    tags = list(product.get("tags") or [])
    has_tag = LAST_PIECE_TAG in tags
    should_have_tag = 0 < total <= LAST_PIECE_MAX

    if total == 0:
        target_status = "DRAFT"
    elif current_status == "DRAFT":
        target_status = "ACTIVE"
    else:
        target_status = current_status

    new_tags = None
    if should_have_tag and not has_tag:
        new_tags = tags + [LAST_PIECE_TAG]
    elif not should_have_tag and has_tag:
        new_tags = [t for t in tags if t != LAST_PIECE_TAG]

    return {
        "total": total,
        "should_have_tag": should_have_tag,
        "target_status": target_status,
        "status_change": target_status if target_status != current_status else None,
        "tags": new_tags,
    }


async def run_last_piece_job(
    settings: Settings,
    client: ShopifyClient | None = None,
    store: CheckpointStore | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """
    Walk every product (GraphQL, 50 per page), set DRAFT/ACTIVE from stock
    and add or remove the "Last Piece" tag. The page cursor is checkpointed
    so an interrupted run resumes where it stopped.
    """
    client = client or ShopifyClient(settings)
    store = store or JsonFileCheckpointStore(settings.CHECKPOINT_DIR)
    logger.info(f"=== Product status and tag update for {settings.SHOPIFY_SHOP_DOMAIN} ===")

    counts = Counter()
    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep, batch_size=None, batch_pause=0)

    async def apply(product: dict) -> ItemResult:
        plan = plan_product_update(product)
        title = product.get("title")
        changed = False

        if plan["status_change"]:
            await update_product_status(client, product["id"], plan["status_change"])
            counts["drafted" if plan["status_change"] == "DRAFT" else "activated"] += 1
            logger.info(f"✓ Set to {plan['status_change']}: {title} (Quantity: {plan['total']})")
            changed = True

        if plan["tags"] is not None:
            await update_product_tags(client, product["id"], plan["tags"])
            counts["tagged" if plan["should_have_tag"] else "untagged"] += 1
            verb = "Added" if plan["should_have_tag"] else "Removed"
            logger.info(f"✓ {verb} \"{LAST_PIECE_TAG}\" tag: {title} (Quantity: {plan['total']})")
            changed = True

        return ItemResult(key=product["id"], status=ItemStatus.UPDATED if changed else ItemStatus.UNCHANGED)

    pages = iter_graphql_pages(
        client,
        PRODUCTS_QUERY,
        ("products",),
        page_size=PAGE_SIZE,
        rate_limit_wait=settings.RATE_LIMIT_WAIT,
        checkpoint=CursorCheckpoint(store, RUN_ID),
        sleep=sleep,
    )
    async for products in pages:
        summary = await mutator.run(products, apply, key=lambda p: p["id"])
        counts["processed"] += summary.submitted
        counts["errors"] += summary.failed

    result = {
        "processed": counts["processed"],
        "tagged": counts["tagged"],
        "untagged": counts["untagged"],
        "drafted": counts["drafted"],
        "activated": counts["activated"],
        "errors": counts["errors"],
    }
    logger.info(f"=== Update Summary === {result}")
    return result
