import logging

import aiohttp

from inventory_sync.config import Settings
from inventory_sync.exceptions import RateLimitError, ShopifyAPIError, ShopifyUserError

logger = logging.getLogger(__name__)


def from_gid(value) -> int:
    # "gid://shopify/Product/123" -> 123
    return int(str(value).rsplit("/", 1)[-1])


def to_gid(entity: str, value) -> str:
    value = str(value)
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/{entity}/{value}"


class ShopifyClient:
    def __init__(self, settings: Settings):
        self.shop_domain = settings.SHOPIFY_SHOP_DOMAIN
        self.access_token = settings.SHOPIFY_ACCESS_TOKEN
        self.api_version = settings.SHOPIFY_API_VERSION

        self.base_url = f"https://{self.shop_domain}/admin/api/{self.api_version}"
        self.headers = {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }
        self.last_response = None

    def _url(self, endpoint: str) -> str:
        # endpoint examples: "products.json", "variants/123456789.json"
        if endpoint.startswith(self.base_url):
            return endpoint
        if endpoint.startswith("/"):
            endpoint = endpoint[1:]
        return f"{self.base_url}/{endpoint}"

    async def _request(self, method: str, endpoint: str, params: dict | None = None, payload: dict | None = None) -> dict:
        url = self._url(endpoint)
        async with aiohttp.ClientSession(headers=self.headers) as session:
            async with session.request(method, url, params=params, json=payload) as resp:
                self.last_response = resp  # Store the response
                if resp.status == 429:
                    text = await resp.text()
                    retry_after = resp.headers.get("Retry-After")
                    logger.warning("Shopify %s %s rate limited (Retry-After: %s)", method, url, retry_after)
                    raise RateLimitError(
                        text, method, url,
                        retry_after=float(retry_after) if retry_after else None,
                    )
                if resp.status >= 400:
                    text = await resp.text()
                    logger.error("Shopify %s Error %s: %s", method, resp.status, text)
                    raise ShopifyAPIError(resp.status, text, method, url)
                if resp.status == 204:
                    return {}
                return await resp.json(content_type=None) or {}

    async def get(self, endpoint: str, params: dict | None = None) -> dict:
        return await self._request("GET", endpoint, params=params)

    async def post(self, endpoint: str, payload: dict) -> dict:
        return await self._request("POST", endpoint, payload=payload)

    async def put(self, endpoint: str, payload: dict) -> dict:
        return await self._request("PUT", endpoint, payload=payload)

    async def delete(self, endpoint: str) -> dict:
        return await self._request("DELETE", endpoint)

    async def graphql(self, query: str, variables: dict | None = None) -> dict:
        """
        POST to the Admin GraphQL endpoint and return the `data` object.
        Top-level `errors` raise ShopifyUserError; a THROTTLED error is
        reported as a rate limit so callers back off like a REST 429.
        """
        res = await self.post("graphql.json", {"query": query, "variables": variables or {}})
        errors = res.get("errors")
        if errors:
            codes = {(e.get("extensions") or {}).get("code") for e in errors if isinstance(e, dict)}
            if "THROTTLED" in codes:
                raise RateLimitError(errors, "POST", self._url("graphql.json"))
            raise ShopifyUserError(errors)
        return res.get("data") or {}

    async def list_locations(self) -> list[dict]:
        res = await self.get("locations.json")
        return res.get("locations", [])
