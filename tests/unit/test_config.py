import pytest

from inventory_sync.config import Settings, load_settings
from inventory_sync.exceptions import ConfigError


pytestmark = pytest.mark.unit


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ("SHOPIFY_ACCESS_TOKEN", "SHOPIFY_SHOP_DOMAIN", "SHOPIFY_LOCATION_ID", "SQUARE_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    # no stray .env from the working copy
    monkeypatch.chdir(tmp_path)


def test_missing_required_variables(clean_env):
    with pytest.raises(ConfigError) as exc:
        load_settings()
    assert set(exc.value.missing) == {"SHOPIFY_ACCESS_TOKEN", "SHOPIFY_SHOP_DOMAIN"}
    assert "Missing required environment variables" in str(exc.value)


def test_reads_environment(clean_env, monkeypatch):
    monkeypatch.setenv("SHOPIFY_ACCESS_TOKEN", "shpat_env")
    monkeypatch.setenv("SHOPIFY_SHOP_DOMAIN", "env-shop.myshopify.com")
    monkeypatch.setenv("BATCH_SIZE", "10")

    settings = load_settings()

    assert settings.SHOPIFY_ACCESS_TOKEN == "shpat_env"
    assert settings.BATCH_SIZE == 10
    assert settings.SQUARE_LOCATION_NAME == "Gear Locker LA"


def test_reads_dotenv_file(clean_env, tmp_path):
    (tmp_path / ".env").write_text("SHOPIFY_ACCESS_TOKEN=shpat_file\nSHOPIFY_SHOP_DOMAIN=file.myshopify.com\nUNRELATED=1\n")
    assert load_settings().SHOPIFY_SHOP_DOMAIN == "file.myshopify.com"


def test_require_job_scoped(settings):
    settings.SHOPIFY_LOCATION_ID = None
    settings.SQUARE_ACCESS_TOKEN = None
    with pytest.raises(ConfigError) as exc:
        settings.require("SHOPIFY_LOCATION_ID", "SQUARE_ACCESS_TOKEN")
    assert exc.value.missing == ["SHOPIFY_LOCATION_ID", "SQUARE_ACCESS_TOKEN"]


def test_require_passes(settings):
    settings.require("SHOPIFY_LOCATION_ID", "SQUARE_ACCESS_TOKEN")
    assert isinstance(settings, Settings)
