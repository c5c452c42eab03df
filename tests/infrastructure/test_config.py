"""Settings read from the environment."""

import pytest

from storefront.domain.exceptions import ValidationError
from storefront.infrastructure.config import Settings


def test_defaults():
    settings = Settings.from_env({})
    assert settings.database_url == "sqlite:///data/storefront.db"
    assert settings.store_currency == "USD"
    assert settings.momo_target_env == "sandbox"
    assert settings.http_timeout == 30.0
    assert settings.momo_subscription_key is None


def test_overrides():
    settings = Settings.from_env({
        "DATABASE_URL": "postgresql+psycopg://shop@db/shop",
        "STORE_CURRENCY": "rwf",
        "MOMO_BASE_URL": "https://proxy.momo.example/",
        "MOMO_SUBSCRIPTION_KEY": "sub",
        "HTTP_TIMEOUT": "5",
        "LOG_LEVEL": "debug",
    })
    assert settings.database_url.startswith("postgresql")
    assert settings.store_currency == "RWF"
    assert settings.momo_base_url == "https://proxy.momo.example"
    assert settings.momo_subscription_key == "sub"
    assert settings.http_timeout == 5.0
    assert settings.log_level == "DEBUG"


def test_bad_timeout():
    with pytest.raises(ValidationError, match="HTTP_TIMEOUT"):
        Settings.from_env({"HTTP_TIMEOUT": "soon"})
