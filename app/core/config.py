from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Inventory Audit Trail"
    env: str = "dev"
    mongo_uri: str = Field("mongodb://localhost:27017", validation_alias="MONGO_URI")
    mongo_db: str = Field("inventory", validation_alias="MONGO_DB")

    audit_collection: str = Field("audit_logs", validation_alias="AUDIT_COLLECTION")
    audit_enabled: bool = Field(True, validation_alias="AUDIT_ENABLED")
    audit_page_size_default: int = Field(20, validation_alias="AUDIT_PAGE_SIZE_DEFAULT")
    audit_page_size_max: int = Field(100, validation_alias="AUDIT_PAGE_SIZE_MAX")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field("json", validation_alias="LOG_FORMAT")

    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        validation_alias="CORS_ORIGINS",
    )

    # gateway-authenticated actor header; only honoured when trusted
    trust_actor_header: bool = Field(False, validation_alias="TRUST_ACTOR_HEADER")
    actor_header: str = Field("X-User-Id", validation_alias="ACTOR_HEADER")


@lru_cache
def get_settings() -> Settings:
    return Settings()
