import logging

from inventory_sync.exceptions import InventorySyncError
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.square.models import CatalogItem

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_TYPE = "Apparel"
IMPORT_VENDOR = "Square Import"
IMPORT_TAGS = "Square Import, POS Enabled"


def build_product_payload(item: CatalogItem, counts: dict[str, int]) -> dict:
    """
    Shopify REST product payload for a Square catalog item: one variant per
    Square variation, stock from `counts` (variation id -> quantity),
    tracking on and taxable.
    """
    variants = []
    for v in item.variations:
        variants.append({
            "option1": v.name or "Default",
            "price": v.price,
            "sku": v.sku or "",
            "barcode": v.sku or "",
            "inventory_management": "shopify",
            "inventory_quantity": int(counts.get(v.id, 0)),
            "inventory_policy": "deny",
            "requires_shipping": True,
            "taxable": True,
        })

    return {
        "product": {
            "title": item.name,
            "body_html": item.description or "",
            "vendor": IMPORT_VENDOR,
            "product_type": item.category or DEFAULT_PRODUCT_TYPE,
            "variants": variants,
            "options": [{"name": "Size", "values": [v["option1"] for v in variants]}],
            "status": "active",
            "tags": IMPORT_TAGS,
            "published_scope": "web",
        }
    }


async def create_shopify_product(client: ShopifyClient, item: CatalogItem, counts: dict[str, int]) -> dict:
    res = await client.post("products.json", build_product_payload(item, counts))
    product = (res or {}).get("product")
    if not product:
        raise InventorySyncError(f"Shopify creation failed for {item.name}: {res}")

    logger.info(f"✔ Created Shopify product {item.name} -> {product['id']}")
    return product
