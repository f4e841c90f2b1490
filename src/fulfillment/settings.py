"""Runtime settings for the fulfillment engine, read from the environment."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class EngineSettings:
    checkout_retries: int = 3
    distance_timeout: float = 5.0
    google_maps_api_key: str | None = None
    delivery_code_ttl_minutes: int = 10

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            checkout_retries=int(os.getenv("FULFILLMENT_CHECKOUT_RETRIES", "3")),
            distance_timeout=float(os.getenv("FULFILLMENT_DISTANCE_TIMEOUT", "5")),
            google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY") or None,
            delivery_code_ttl_minutes=int(os.getenv("FULFILLMENT_DELIVERY_CODE_TTL_MINUTES", "10")),
        )
