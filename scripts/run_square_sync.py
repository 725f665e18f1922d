import asyncio, json, logging, os, sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from inventory_sync.config import load_settings
from inventory_sync.exceptions import ConfigError
from inventory_sync.services.square_sync_service import (
    add_missing_items,
    compare_inventory,
    list_square_items,
    sync_inventory_levels,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("run_square_sync")

COMMANDS = {
    "compare": compare_inventory,
    "levels": sync_inventory_levels,
    "add-missing": add_missing_items,
    "items": list_square_items,
}


async def main(argv):
    command = argv[1] if len(argv) > 1 else "compare"
    if command not in COMMANDS:
        print(f"Usage: python run_square_sync.py [{'|'.join(COMMANDS)}]")
        sys.exit(1)

    try:
        settings = load_settings()
        settings.require("SQUARE_ACCESS_TOKEN")
        if command == "levels":
            settings.require("SHOPIFY_LOCATION_ID")
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    result = await COMMANDS[command](settings)
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    try:
        asyncio.run(main(sys.argv))
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
