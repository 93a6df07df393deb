"""Runtime configuration for the ordering core.

Values come from ``SLICESTREAM_*`` environment variables; anything unset falls
back to the defaults below. ``get_settings()`` caches one instance per
process, ``reset_settings()`` drops the cache (tests that patch the
environment).
"""

import os
from decimal import Decimal
from functools import lru_cache

from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "SLICESTREAM_"


class Settings(BaseModel):
    currency: str = Field(default="USD", min_length=3, max_length=3)
    tax_rate: Decimal = Field(default=Decimal("0.08"), ge=0, lt=1)
    delivery_fee: Decimal = Field(default=Decimal("2.99"), ge=0)

    # Delivery estimates, in minutes
    initial_eta_minutes: int = Field(default=30, gt=0)
    on_the_way_eta_minutes: int = Field(default=15, gt=0)

    order_number_prefix: str = "PIZ"
    order_number_attempts: int = Field(default=5, ge=1)

    gateway_key_id: str = "rzp_test_key"
    gateway_key_secret: str = "test-key-secret"
    webhook_secret: str = "test-webhook-secret"

    @model_validator(mode="after")
    def _currency_upper(self):
        self.currency = self.currency.upper()
        return self

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from ``SLICESTREAM_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def reset_settings() -> None:
    get_settings.cache_clear()
