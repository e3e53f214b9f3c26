"""
Configuration and settings for the bazaar track backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    port: int = Field(default=3000)
    log_level: str = Field(default="INFO")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Document store. Mongo wins over DATABASE_URL when both are set.
    mongodb_uri: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MONGODB_URI", "DB_URI")
    )
    database_name: str = Field(default="bazaarTrack")
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "BAZAAR_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Identity (Firebase Authentication)
    firebase_service_account_file: Optional[str] = Field(default=None)
    firebase_service_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FB_SERVICE_KEY", "firebase_service_key"),
    )
    dev_identity_tokens: Dict[str, str] = Field(default_factory=dict)

    # Payments (Stripe)
    stripe_secret_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "STRIPE_SECRET_KEY", "PAYMENT_GATEWAY_KEY", "stripe_secret_key"
        ),
    )
    payment_currency: str = Field(default="usd")

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None)
    chat_model: str = Field(default="gemini-2.5-flash")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
