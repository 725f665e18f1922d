import asyncio
import logging

from inventory_sync.config import Settings
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.shopify.update_inventory import (
    available_quantity,
    decrement_inventory_by_sku,
    find_variant_by_sku,
    inventory_level_at,
    set_inventory_by_sku,
)
from inventory_sync.sync.checkpoint import CheckpointStore, JsonFileCheckpointStore, SkuProgress, input_run_id
from inventory_sync.sync.models import InventoryRecord, SoldItem, parse_inventory_text, parse_sold_items_text
from inventory_sync.sync.mutator import RateLimitedMutator

logger = logging.getLogger(__name__)

BULK_RUN_ID = "bulk_inventory"
SOLD_RUN_ID = "sold_items"

CHUNK_SIZE = 50
CHUNK_PAUSE = 120.0
ERROR_PAUSE = 300.0
MAX_CHUNK_RETRIES = 3
VERIFY_DELAY = 1.0


def load_records(path: str) -> list[InventoryRecord]:
    """Read a `SKU<TAB>QTY` file."""
    with open(path, "r", encoding="utf-8") as f:
        return parse_inventory_text(f.read())


def load_sold_items(path: str) -> list[SoldItem]:
    with open(path, "r", encoding="utf-8") as f:
        return parse_sold_items_text(f.read())


def _dedupe(records: list[InventoryRecord]) -> list[InventoryRecord]:
    # last quantity wins for a repeated SKU
    by_sku: dict[str, InventoryRecord] = {}
    for r in records:
        by_sku[r.sku] = r
    return list(by_sku.values())


async def update_bulk_inventory(
    settings: Settings,
    records: list[InventoryRecord],
    client: ShopifyClient | None = None,
    store: CheckpointStore | None = None,
    run_id: str | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """
    Set the absolute available quantity of every SKU at SHOPIFY_LOCATION_ID.

    Progress is kept per SKU under `run_id`, by default derived from the
    records themselves: re-running the same input skips SKUs that already
    succeeded and retries failed ones, while a new input starts fresh.
    """
    settings.require("SHOPIFY_LOCATION_ID")
    client = client or ShopifyClient(settings)
    store = store or JsonFileCheckpointStore(settings.CHECKPOINT_DIR)
    location_id = settings.SHOPIFY_LOCATION_ID

    records = _dedupe(records)
    run_id = run_id or input_run_id(BULK_RUN_ID, [[r.sku, r.quantity] for r in records])
    logger.info(f"Starting bulk inventory update for {len(records)} SKUs at location {location_id}")

    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep, progress=SkuProgress(store, run_id))
    summary = await mutator.run(
        records,
        lambda r: set_inventory_by_sku(client, r.sku, r.quantity, location_id),
        key=lambda r: r.sku,
    )
    return summary.as_dict()


async def run_bulk_inventory_in_chunks(
    settings: Settings,
    records: list[InventoryRecord],
    client: ShopifyClient | None = None,
    store: CheckpointStore | None = None,
    chunk_size: int = CHUNK_SIZE,
    chunk_pause: float = CHUNK_PAUSE,
    error_pause: float = ERROR_PAUSE,
    max_chunk_retries: int = MAX_CHUNK_RETRIES,
    sleep=asyncio.sleep,
) -> dict:
    """
    Long-running variant of `update_bulk_inventory`: works through the
    records `chunk_size` at a time with a pause between chunks. A chunk
    that still has failures is retried after `error_pause`, at most
    `max_chunk_retries` times; only its failed SKUs go again.
    """
    settings.require("SHOPIFY_LOCATION_ID")
    client = client or ShopifyClient(settings)
    store = store or JsonFileCheckpointStore(settings.CHECKPOINT_DIR)

    records = _dedupe(records)
    chunks = [records[i:i + chunk_size] for i in range(0, len(records), chunk_size)]
    totals = {"chunks": len(chunks), "succeeded": 0, "failed": 0, "failed_keys": []}

    for index, chunk in enumerate(chunks, 1):
        logger.info(f"=== Chunk {index}/{len(chunks)} ({len(chunk)} SKUs) ===")
        chunk_ok = 0
        result = {}
        for attempt in range(max_chunk_retries + 1):
            result = await update_bulk_inventory(
                settings, chunk, client=client, store=store, sleep=sleep
            )
            chunk_ok += result["succeeded"]
            if not result["failed"]:
                break
            if attempt < max_chunk_retries:
                logger.warning(
                    f"Chunk {index} had {result['failed']} failures, retrying in {error_pause:.0f}s "
                    f"(attempt {attempt + 1}/{max_chunk_retries})"
                )
                await sleep(error_pause)

        totals["succeeded"] += chunk_ok
        totals["failed"] += result.get("failed", 0)
        totals["failed_keys"].extend(result.get("failed_keys", []))

        if index < len(chunks) and chunk_pause:
            logger.info(f"Waiting {chunk_pause:.0f}s before next chunk...")
            await sleep(chunk_pause)

    logger.info(f"=== Bulk update finished === {totals['succeeded']} succeeded, {totals['failed']} failed")
    return totals


async def apply_sold_items(
    settings: Settings,
    items: list[SoldItem],
    client: ShopifyClient | None = None,
    store: CheckpointStore | None = None,
    sleep=asyncio.sleep,
) -> dict:
    """Subtract sold quantities from Shopify stock, one SKU at a time."""
    settings.require("SHOPIFY_LOCATION_ID")
    client = client or ShopifyClient(settings)
    store = store or JsonFileCheckpointStore(settings.CHECKPOINT_DIR)
    location_id = settings.SHOPIFY_LOCATION_ID

    sold: dict[str, int] = {}
    for item in items:
        sold[item.sku] = sold.get(item.sku, 0) + item.quantity

    pairs = sorted(sold.items())
    progress = SkuProgress(store, input_run_id(SOLD_RUN_ID, pairs))
    mutator = RateLimitedMutator.from_settings(settings, sleep=sleep, progress=progress)
    summary = await mutator.run(
        pairs,
        lambda pair: decrement_inventory_by_sku(client, pair[0], pair[1], location_id),
        key=lambda pair: pair[0],
    )
    return summary.as_dict()


async def verify_inventory(
    settings: Settings,
    skus: list[str],
    client: ShopifyClient | None = None,
    delay: float = VERIFY_DELAY,
    sleep=asyncio.sleep,
) -> dict[str, int | None]:
    """Current available quantity per SKU at SHOPIFY_LOCATION_ID (None when not found)."""
    settings.require("SHOPIFY_LOCATION_ID")
    client = client or ShopifyClient(settings)

    out: dict[str, int | None] = {}
    for i, sku in enumerate(skus):
        variant = await find_variant_by_sku(client, sku)
        level = inventory_level_at(variant, settings.SHOPIFY_LOCATION_ID) if variant else None
        out[sku] = available_quantity(level) if level else None
        logger.info(f"SKU {sku}: {out[sku] if out[sku] is not None else 'not found'}")
        if i < len(skus) - 1:
            await sleep(delay)
    return out
