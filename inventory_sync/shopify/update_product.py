import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from inventory_sync.exceptions import ShopifyUserError
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.sync.models import ItemStatus

logger = logging.getLogger(__name__)

PRODUCT_UPDATE_MUTATION = """
mutation ProductUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id tags status }
    userErrors { field message }
  }
}
"""


async def _product_update(client: ShopifyClient, fields: dict) -> dict:
    data = await client.graphql(PRODUCT_UPDATE_MUTATION, {"input": fields})
    result = data.get("productUpdate") or {}
    if result.get("userErrors"):
        raise ShopifyUserError(result["userErrors"])
    return result.get("product") or {}


async def update_product_tags(client: ShopifyClient, product_id: str, tags: list[str]) -> dict:
    return await _product_update(client, {"id": product_id, "tags": tags})


async def update_product_status(client: ShopifyClient, product_id: str, status: str) -> dict:
    return await _product_update(client, {"id": product_id, "status": status})


def tracking_enabled(variant: dict) -> bool:
    return variant.get("inventory_management") == "shopify"


def tax_enabled(variant: dict) -> bool:
    return variant.get("taxable") is True


def _tracking_fields(v: dict) -> dict:
    return {
        "id": v["id"],
        "inventory_management": "shopify",
        "inventory_policy": "deny",
        "inventory_quantity": v.get("inventory_quantity") or 0,
        "requires_shipping": True,
        "fulfillment_service": "manual",
    }


def _tax_fields(v: dict) -> dict:
    return {"id": v["id"], "taxable": True}


async def _update_variants_and_verify(
    client: ShopifyClient,
    product: dict,
    variant_fields: Callable[[dict], dict],
    is_enabled: Callable[[dict], bool],
    settle_delay: float,
    sleep,
) -> ItemStatus:
    variants = product.get("variants") or []
    if variants and all(is_enabled(v) for v in variants):
        return ItemStatus.UNCHANGED

    pid = product["id"]
    await client.put(f"products/{pid}.json", {
        "product": {"id": pid, "variants": [variant_fields(v) for v in variants]}
    })

    if settle_delay:
        await sleep(settle_delay)

    res = await client.get(f"products/{pid}.json")
    verified = (res.get("product") or {}).get("variants") or []
    if verified and all(is_enabled(v) for v in verified):
        return ItemStatus.UPDATED
    return ItemStatus.FAILED


async def enable_inventory_tracking(client: ShopifyClient, product: dict, settle_delay: float = 1.0, sleep=asyncio.sleep) -> ItemStatus:
    """Turn on Shopify inventory tracking for every variant, then re-read the product to confirm."""
    status = await _update_variants_and_verify(client, product, _tracking_fields, tracking_enabled, settle_delay, sleep)
    logger.info(f"Inventory tracking for {product.get('title')}: {status.value}")
    return status


async def enable_tax(client: ShopifyClient, product: dict, settle_delay: float = 1.0, sleep=asyncio.sleep) -> ItemStatus:
    """Mark every variant taxable, then re-read the product to confirm."""
    status = await _update_variants_and_verify(client, product, _tax_fields, tax_enabled, settle_delay, sleep)
    logger.info(f"Tax charging for {product.get('title')}: {status.value}")
    return status


async def enable_pos(client: ShopifyClient, product_id) -> ItemStatus:
    await client.put(f"products/{product_id}.json", {
        "product": {
            "id": product_id,
            "published_scope": "global",
            "published_status": "published",
            "published_at": datetime.now(timezone.utc).isoformat(),
        }
    })
    logger.info(f"✓ Enabled POS visibility for product {product_id}")
    return ItemStatus.UPDATED


VARIANT_UPDATE_MUTATION = """
mutation VariantUpdate($input: ProductVariantInput!) {
  productVariantUpdate(input: $input) {
    productVariant { id inventoryManagement price compareAtPrice }
    userErrors { field message }
  }
}
"""


async def _variant_update(client: ShopifyClient, fields: dict) -> dict:
    data = await client.graphql(VARIANT_UPDATE_MUTATION, {"input": fields})
    result = data.get("productVariantUpdate") or {}
    if result.get("userErrors"):
        raise ShopifyUserError(result["userErrors"])
    return result.get("productVariant") or {}


async def enable_variant_tracking(client: ShopifyClient, variant_id: str) -> dict:
    return await _variant_update(client, {"id": variant_id, "inventoryManagement": "SHOPIFY"})


async def clear_compare_at_price(client: ShopifyClient, variant_id: str) -> dict:
    """Drop the sale marker; the variant keeps its current price."""
    return await _variant_update(client, {"id": variant_id, "compareAtPrice": None})


async def update_product_description(client: ShopifyClient, product_id, body_html: str) -> dict:
    res = await client.put(f"products/{product_id}.json", {
        "product": {"id": product_id, "body_html": body_html}
    })
    return res.get("product") or {}
