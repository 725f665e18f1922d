from pydantic import ValidationError
from pydantic_settings import BaseSettings

from inventory_sync.exceptions import ConfigError


class Settings(BaseSettings):
    SHOPIFY_ACCESS_TOKEN: str
    SHOPIFY_SHOP_DOMAIN: str
    SHOPIFY_API_VERSION: str = "2024-01"
    SHOPIFY_LOCATION_ID: str | None = None

    SQUARE_ACCESS_TOKEN: str | None = None
    SQUARE_API_VERSION: str = "2024-01-18"
    SQUARE_LOCATION_ID: str | None = None
    SQUARE_LOCATION_NAME: str = "Gear Locker LA"

    # seconds
    ITEM_DELAY: float = 0.5
    FAILURE_DELAY: float = 120.0
    BATCH_PAUSE: float = 30.0
    RATE_LIMIT_WAIT: float = 10.0

    BATCH_SIZE: int = 5
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY: float = 15.0

    CHECKPOINT_DIR: str = ".checkpoints"

    SCHEDULER_ENABLED: bool = False
    SYNC_INTERVAL_MINUTES: int = 30

    class Config:
        env_file = ".env"
        extra = "ignore"

    def require(self, *names: str) -> None:
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigError(missing)


def load_settings(**overrides) -> Settings:
    """
    Build the per-run settings object. Missing required environment
    variables surface as ConfigError instead of a pydantic traceback.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = [
            str(err["loc"][0])
            for err in e.errors()
            if err.get("type") == "missing" and err.get("loc")
        ]
        if missing:
            raise ConfigError(missing) from e
        raise ConfigError([], str(e)) from e
