"""
Error types shared by the Shopify/Square clients and the sync jobs.

Rate limits are the only errors the retry policy treats as transient;
everything else marks the current item as failed.
"""


class InventorySyncError(Exception):
    """Base exception for the inventory sync toolkit."""
    pass


class ConfigError(InventorySyncError):
    """Required configuration is missing or invalid."""

    def __init__(self, missing: list[str], detail: str | None = None):
        self.missing = list(missing)
        if self.missing:
            message = "Missing required environment variables: " + ", ".join(self.missing)
        else:
            message = detail or "Invalid configuration"
        super().__init__(message)


class ShopifyAPIError(InventorySyncError):
    """Non-2xx response from the Shopify Admin API."""

    def __init__(self, status: int, body, method: str = "", url: str = ""):
        self.status = status
        self.body = body
        self.method = method
        self.url = url
        super().__init__(f"Shopify {method} {url} failed with {status}: {body}")


class RateLimitError(ShopifyAPIError):
    """HTTP 429 from Shopify."""

    def __init__(self, body=None, method: str = "", url: str = "", retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(429, body, method, url)


class ShopifyUserError(InventorySyncError):
    """GraphQL `userErrors` or top-level `errors` on a 200 response."""

    def __init__(self, errors):
        self.errors = errors or []
        messages = []
        for err in self.errors:
            if isinstance(err, dict):
                messages.append(err.get("message") or str(err))
            else:
                messages.append(str(err))
        super().__init__("; ".join(messages) or "Shopify GraphQL error")


class SquareAPIError(InventorySyncError):
    """Non-2xx response from the Square API."""

    def __init__(self, status: int, errors):
        self.status = status
        self.errors = errors
        super().__init__(f"Square API error {status}: {errors}")


class NotFoundError(InventorySyncError):
    """A product or collection named by the caller does not exist in Shopify."""
    pass
