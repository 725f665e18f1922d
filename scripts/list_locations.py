import asyncio, logging, os, sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from inventory_sync.config import load_settings
from inventory_sync.exceptions import ConfigError
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.square.client import SquareClient

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


async def main():
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    print("Shopify locations:")
    for loc in await ShopifyClient(settings).list_locations():
        print(f"  {loc.get('name')} (ID: {loc.get('id')})")

    if settings.SQUARE_ACCESS_TOKEN:
        print("Square locations:")
        for loc in SquareClient(settings).list_locations():
            print(f"  {loc.get('name')} (ID: {loc.get('id')})")


if __name__ == "__main__":
    asyncio.run(main())
