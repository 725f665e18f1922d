import asyncio, json, logging, os, sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from inventory_sync.config import load_settings
from inventory_sync.exceptions import ConfigError
from inventory_sync.services.collection_service import list_collections, remove_sale_prices, stock_collection

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("manage_collection")

USAGE = (
    "Usage: python manage_collection.py list\n"
    "       python manage_collection.py stock \"Collection Title\" [quantity]\n"
    "       python manage_collection.py remove-sale \"Collection Title\""
)


async def main(argv):
    command = argv[1] if len(argv) > 1 else "list"
    if command not in ("list", "stock", "remove-sale") or (command != "list" and len(argv) < 3):
        print(USAGE)
        sys.exit(1)

    try:
        settings = load_settings()
        if command == "stock":
            settings.require("SHOPIFY_LOCATION_ID")
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    if command == "list":
        for c in await list_collections(settings):
            print(f"- Title: \"{c['title']}\"\n  Handle: {c['handle']}\n  ID: {c['id']}\n")
        return

    if command == "stock":
        quantity = int(argv[3]) if len(argv) > 3 else 1
        result = await stock_collection(settings, argv[2], quantity)
    else:
        result = await remove_sale_prices(settings, argv[2])
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    try:
        asyncio.run(main(sys.argv))
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
