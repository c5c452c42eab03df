"""Runtime settings, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from storefront.domain.exceptions import ValidationError


@dataclass(frozen=True)
class Settings:

    database_url: str = "sqlite:///data/storefront.db"
    store_currency: str = "USD"
    momo_base_url: str = "https://sandbox.momodeveloper.mtn.com"
    momo_subscription_key: str | None = None
    momo_collection_user: str | None = None
    momo_collection_key: str | None = None
    momo_target_env: str = "sandbox"
    momo_payer_message: str = "Payment for order"
    momo_payee_note: str = "Kapee Shop"
    http_timeout: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        defaults = cls()
        try:
            timeout = float(env.get("HTTP_TIMEOUT", defaults.http_timeout))
        except ValueError as exc:
            raise ValidationError(f"HTTP_TIMEOUT must be a number, got {env['HTTP_TIMEOUT']!r}") from exc
        return cls(
            database_url=env.get("DATABASE_URL", defaults.database_url),
            store_currency=env.get("STORE_CURRENCY", defaults.store_currency).upper(),
            momo_base_url=env.get("MOMO_BASE_URL", defaults.momo_base_url).rstrip("/"),
            momo_subscription_key=env.get("MOMO_SUBSCRIPTION_KEY"),
            momo_collection_user=env.get("MOMO_COLLECTION_USER"),
            momo_collection_key=env.get("MOMO_COLLECTION_KEY"),
            momo_target_env=env.get("MOMO_TARGET_ENV", defaults.momo_target_env),
            momo_payer_message=env.get("MOMO_PAYER_MESSAGE", defaults.momo_payer_message),
            momo_payee_note=env.get("MOMO_PAYEE_NOTE", defaults.momo_payee_note),
            http_timeout=timeout,
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
        )
