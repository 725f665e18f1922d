import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from inventory_sync.config import Settings, load_settings
from inventory_sync.exceptions import ConfigError, InventorySyncError, NotFoundError
from inventory_sync.services.bulk_inventory_service import apply_sold_items, update_bulk_inventory, verify_inventory
from inventory_sync.services.collection_service import list_collections, remove_sale_prices, stock_collection
from inventory_sync.services.last_piece_service import run_last_piece_job
from inventory_sync.services.product_settings_service import (
    enable_pos_for_collection,
    enable_tax_for_all,
    enable_tracking_for_all,
    get_product_description,
    set_product_description,
)
from inventory_sync.services.square_sync_service import (
    add_missing_items,
    compare_inventory,
    list_square_items,
    sync_inventory_levels,
)
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.sync.models import parse_inventory_text, parse_sold_items_text

logger = logging.getLogger(__name__)

router = APIRouter()

# queued jobs stay referenced until they finish
_running: set = set()


class TextPayload(BaseModel):
    text: str


class SkuList(BaseModel):
    skus: list[str]


class DescriptionPayload(BaseModel):
    title: str
    body_html: str


def get_settings() -> Settings:
    try:
        return load_settings()
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))


def _queue(name: str, coro):
    async def runner():
        try:
            result = await coro
            logger.info(f"✔ {name} Done → {result}")
        except Exception as e:
            logger.error(f"{name} failed: {e}")

    task = asyncio.create_task(runner())
    _running.add(task)
    task.add_done_callback(_running.discard)
    return JSONResponse({"ok": True, "queued": True, "job": name})


@router.post("/last-piece")
async def last_piece(settings: Settings = Depends(get_settings)):
    return _queue("last-piece", run_last_piece_job(settings))


@router.post("/tracking")
async def tracking(settings: Settings = Depends(get_settings)):
    return _queue("tracking", enable_tracking_for_all(settings))


@router.post("/tax")
async def tax(settings: Settings = Depends(get_settings)):
    return _queue("tax", enable_tax_for_all(settings))


@router.post("/pos/{collection_title}")
async def pos(collection_title: str, settings: Settings = Depends(get_settings)):
    return _queue("pos", enable_pos_for_collection(settings, collection_title))


@router.post("/collection-stock/{collection_title}")
async def collection_stock(collection_title: str, quantity: int = 1, settings: Settings = Depends(get_settings)):
    _require(settings, "SHOPIFY_LOCATION_ID")
    return _queue("collection-stock", stock_collection(settings, collection_title, quantity))


@router.post("/sale-prices/{collection_title}")
async def sale_prices(collection_title: str, settings: Settings = Depends(get_settings)):
    return _queue("sale-prices", remove_sale_prices(settings, collection_title))


@router.post("/bulk-inventory")
async def bulk_inventory(payload: TextPayload, settings: Settings = Depends(get_settings)):
    _require(settings, "SHOPIFY_LOCATION_ID")
    records = parse_inventory_text(payload.text)
    return _queue("bulk-inventory", update_bulk_inventory(settings, records))


@router.post("/sold-items")
async def sold_items(payload: TextPayload, settings: Settings = Depends(get_settings)):
    _require(settings, "SHOPIFY_LOCATION_ID")
    items = parse_sold_items_text(payload.text)
    return _queue("sold-items", apply_sold_items(settings, items))


@router.post("/square-levels")
async def square_levels(settings: Settings = Depends(get_settings)):
    _require(settings, "SQUARE_ACCESS_TOKEN", "SHOPIFY_LOCATION_ID")
    return _queue("square-levels", sync_inventory_levels(settings))


@router.post("/square-missing")
async def square_missing(settings: Settings = Depends(get_settings)):
    _require(settings, "SQUARE_ACCESS_TOKEN")
    return _queue("square-missing", add_missing_items(settings))


@router.get("/compare")
async def compare(settings: Settings = Depends(get_settings)):
    _require(settings, "SQUARE_ACCESS_TOKEN")
    try:
        report = await compare_inventory(settings)
    except InventorySyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"message": "Comparison completed", "result": report}


@router.post("/verify")
async def verify(payload: SkuList, settings: Settings = Depends(get_settings)):
    _require(settings, "SHOPIFY_LOCATION_ID")
    result = await verify_inventory(settings, payload.skus)
    return {"message": "Verification completed", "result": result}


@router.get("/collections")
async def collections(settings: Settings = Depends(get_settings)):
    try:
        result = await list_collections(settings)
    except InventorySyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"collections": result}


@router.get("/square-items")
async def square_items(settings: Settings = Depends(get_settings)):
    _require(settings, "SQUARE_ACCESS_TOKEN")
    try:
        result = await list_square_items(settings)
    except InventorySyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"items": result}


@router.get("/description")
async def description(title: str, settings: Settings = Depends(get_settings)):
    try:
        result = await get_product_description(settings, title)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InventorySyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"product": result}


@router.put("/description")
async def update_description(payload: DescriptionPayload, settings: Settings = Depends(get_settings)):
    try:
        result = await set_product_description(settings, payload.title, payload.body_html)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InventorySyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"message": "Description updated", "product": result}


@router.get("/locations")
async def locations(settings: Settings = Depends(get_settings)):
    try:
        result = await ShopifyClient(settings).list_locations()
    except InventorySyncError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"locations": result}


def _require(settings: Settings, *names: str):
    try:
        settings.require(*names)
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))
