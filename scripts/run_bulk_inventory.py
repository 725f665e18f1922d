import asyncio, logging, os, sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from inventory_sync.config import load_settings
from inventory_sync.exceptions import ConfigError
from inventory_sync.services.bulk_inventory_service import (
    apply_sold_items,
    load_records,
    load_sold_items,
    run_bulk_inventory_in_chunks,
    update_bulk_inventory,
    verify_inventory,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("run_bulk_inventory")

USAGE = """Usage:
  python run_bulk_inventory.py set inventory.tsv [--chunked]   (SKU<TAB>QTY)
  python run_bulk_inventory.py sold sold_items.tsv             (TITLE<TAB>SIZE<TAB>SKU<TAB>QTY)
  python run_bulk_inventory.py verify SKU [SKU ...]"""


async def main(argv):
    if len(argv) < 3 or argv[1] not in ("set", "sold", "verify"):
        print(USAGE)
        sys.exit(1)

    try:
        settings = load_settings()
        settings.require("SHOPIFY_LOCATION_ID")
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    command = argv[1]
    if command == "set":
        records = load_records(argv[2])
        if "--chunked" in argv:
            result = await run_bulk_inventory_in_chunks(settings, records)
        else:
            result = await update_bulk_inventory(settings, records)
    elif command == "sold":
        result = await apply_sold_items(settings, load_sold_items(argv[2]))
    else:
        result = await verify_inventory(settings, argv[2:])

    print(f"✔ {command} done → {result}")


if __name__ == "__main__":
    try:
        asyncio.run(main(sys.argv))
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
