import asyncio, logging, os, sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from inventory_sync.config import load_settings
from inventory_sync.exceptions import ConfigError
from inventory_sync.services.product_settings_service import get_product_description, set_product_description

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("product_description")


async def main(argv):
    if len(argv) < 3 or argv[1] not in ("get", "set") or (argv[1] == "set" and len(argv) < 4):
        print("Usage: python product_description.py get \"Product Title\"")
        print("       python product_description.py set \"Product Title\" description.html")
        sys.exit(1)

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    if argv[1] == "get":
        product = await get_product_description(settings, argv[2])
    else:
        with open(argv[3], "r", encoding="utf-8") as f:
            product = await set_product_description(settings, argv[2], f.read())

    print(f"Title: {product['title']}")
    print(f"Description: {product['body_html'] or '(No description)'}")


if __name__ == "__main__":
    try:
        asyncio.run(main(sys.argv))
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
