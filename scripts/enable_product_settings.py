import asyncio, logging, os, sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from inventory_sync.config import load_settings
from inventory_sync.exceptions import ConfigError
from inventory_sync.services.product_settings_service import (
    enable_pos_for_collection,
    enable_tax_for_all,
    enable_tracking_for_all,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("enable_product_settings")


async def main(argv):
    if len(argv) < 2 or argv[1] not in ("tracking", "tax", "pos") or (argv[1] == "pos" and len(argv) < 3):
        print("Usage: python enable_product_settings.py tracking|tax|pos \"Collection Title\"")
        sys.exit(1)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    if argv[1] == "tracking":
        result = await enable_tracking_for_all(settings)
    elif argv[1] == "tax":
        result = await enable_tax_for_all(settings)
    else:
        result = await enable_pos_for_collection(settings, argv[2])

    print(f"✔ {argv[1]} done → {result}")


if __name__ == "__main__":
    try:
        asyncio.run(main(sys.argv))
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
