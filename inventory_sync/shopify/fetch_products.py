import asyncio
import logging
import re
from typing import AsyncIterator
from urllib.parse import parse_qs, urlparse

from inventory_sync.exceptions import RateLimitError
from inventory_sync.shopify.client import ShopifyClient
from inventory_sync.sync.checkpoint import CursorCheckpoint

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_WAIT = 10.0

_NEXT_LINK_RE = re.compile(r'<([^>]*)>\s*;\s*rel="?next"?')

PRODUCTS_QUERY = """
query Products($first: Int!, $after: String) {
  products(first: $first, after: $after) {
    pageInfo { hasNextPage endCursor }
    edges {
      node {
        id
        title
        tags
        status
        variants(first: 100) {
          edges { node { id sku title inventoryQuantity } }
        }
      }
    }
  }
}
"""


def parse_next_page_info(link_header: str | None) -> str | None:
    """
    Extract the `page_info` cursor of the rel="next" entry of a Shopify
    `Link` header, or None when there is no next page.
    """
    if not link_header:
        return None
    for part in link_header.split(","):
        m = _NEXT_LINK_RE.search(part)
        if not m:
            continue
        values = parse_qs(urlparse(m.group(1)).query).get("page_info")
        if values:
            return values[0]
    return None


def _last_link_header(client: ShopifyClient) -> str | None:
    headers = getattr(client.last_response, "headers", None) or {}
    return headers.get("Link") or headers.get("link")


async def iter_rest_pages(
    client: ShopifyClient,
    endpoint: str,
    key: str,
    limit: int = 250,
    params: dict | None = None,
    rate_limit_wait: float = DEFAULT_RATE_LIMIT_WAIT,
    page_delay: float = 0,
    max_pages: int | None = None,
    checkpoint: CursorCheckpoint | None = None,
    sleep=asyncio.sleep,
) -> AsyncIterator[list[dict]]:
    """
    Yield each page of a Shopify REST collection (`products.json`, ...)
    following the Link-header cursor. 429 responses wait `rate_limit_wait`
    and re-issue the same request; any other error propagates.

    With a checkpoint, the run resumes from the stored cursor and the cursor
    is saved once the caller has consumed each page.
    """
    page_info = checkpoint.load() if checkpoint else None
    pages = 0

    while True:
        if page_info:
            # Shopify rejects filter params alongside page_info
            query = {"limit": limit, "page_info": page_info}
        else:
            query = {"limit": limit, **(params or {})}

        if page_delay:
            await sleep(page_delay)

        try:
            res = await client.get(endpoint, query)
        except RateLimitError:
            logger.warning(f"Rate limited while fetching {endpoint}, waiting {rate_limit_wait}s...")
            await sleep(rate_limit_wait)
            continue

        batch = res.get(key, [])
        next_page_info = parse_next_page_info(_last_link_header(client))
        pages += 1
        logger.info(f"Fetched page {pages} of {endpoint}: {len(batch)} {key}")

        yield batch

        if checkpoint:
            checkpoint.advance(next_page_info, len(batch))

        if not next_page_info:
            if checkpoint:
                checkpoint.clear()
            return
        if max_pages and pages >= max_pages:
            logger.info(f"Stopping {endpoint} after {pages} pages (max_pages)")
            return
        page_info = next_page_info


def _dig(data: dict, path: tuple[str, ...]) -> dict:
    for part in path:
        data = (data or {}).get(part) or {}
    return data


async def iter_graphql_pages(
    client: ShopifyClient,
    query: str,
    connection_path: tuple[str, ...],
    variables: dict | None = None,
    page_size: int = 50,
    rate_limit_wait: float = DEFAULT_RATE_LIMIT_WAIT,
    max_pages: int | None = None,
    checkpoint: CursorCheckpoint | None = None,
    sleep=asyncio.sleep,
) -> AsyncIterator[list[dict]]:
    """
    Yield node lists from a GraphQL connection using `pageInfo.endCursor`
    and `hasNextPage`. The query must accept `$first` and `$after`.
    """
    cursor = checkpoint.load() if checkpoint else None
    pages = 0

    while True:
        vars_ = {**(variables or {}), "first": page_size, "after": cursor}
        try:
            data = await client.graphql(query, vars_)
        except RateLimitError:
            logger.warning(f"GraphQL throttled, waiting {rate_limit_wait}s...")
            await sleep(rate_limit_wait)
            continue

        connection = _dig(data, connection_path)
        if "edges" in connection:
            nodes = [edge["node"] for edge in connection.get("edges") or []]
        else:
            nodes = list(connection.get("nodes") or [])
        page_info = connection.get("pageInfo") or {}
        has_next = bool(page_info.get("hasNextPage"))
        end_cursor = page_info.get("endCursor")
        pages += 1

        yield nodes

        if checkpoint:
            checkpoint.advance(end_cursor if has_next else None, len(nodes))

        if not has_next or not end_cursor:
            if checkpoint:
                checkpoint.clear()
            return
        if max_pages and pages >= max_pages:
            return
        cursor = end_cursor


async def collect(pages: AsyncIterator[list[dict]]) -> list[dict]:
    out: list[dict] = []
    async for batch in pages:
        out.extend(batch)
    return out


async def fetch_all_products(
    client: ShopifyClient,
    params: dict | None = None,
    **kwargs,
) -> list[dict]:
    """Fetch ALL products over REST, in Shopify's order."""
    products = await collect(iter_rest_pages(client, "products.json", "products", params=params, **kwargs))
    logger.info(f"Found total of {len(products)} products")
    return products


async def fetch_collections(client: ShopifyClient, **kwargs) -> list[dict]:
    smart = await collect(iter_rest_pages(client, "smart_collections.json", "smart_collections", **kwargs))
    custom = await collect(iter_rest_pages(client, "custom_collections.json", "custom_collections", **kwargs))
    return smart + custom


async def fetch_collection_products(client: ShopifyClient, collection_id: int, **kwargs) -> list[dict]:
    return await collect(
        iter_rest_pages(client, f"collections/{collection_id}/products.json", "products", **kwargs)
    )


async def fetch_product_by_title(client: ShopifyClient, title: str) -> dict | None:
    """First product whose title is exactly `title`, body included."""
    res = await client.get("products.json", {"title": title, "limit": 1})
    products = res.get("products") or []
    return products[0] if products else None
