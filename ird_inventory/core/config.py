"""
IRD Inventory - Configuration

Settings are read from the process environment only; no .env file is loaded
implicitly. A missing DATABASE_URL with the postgres backend does not stop the
process: the API boots in degraded mode and /readyz reports 503 until the
store is reachable.

Environment:
  DATABASE_URL               - Postgres connection string (postgres backend)
  STORE_BACKEND              - postgres | memory (default: postgres)
  MEMORY_STORE_TRANSACTIONS  - memory backend only; false models a standalone
                               deployment without multi-document transactions
  ENVIRONMENT                - dev | staging | prod
  LOG_LEVEL / LOG_JSON       - logging verbosity and output format
  IRD_DELETE_POLICY          - detach | delete (linked equipment on IRD delete)
  IRD_INVENTORY_CORS_ORIGINS - comma/space separated origins
  HOST / PORT                - bind address for `python -m ird_inventory`
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # =========================================================================
    # STORAGE
    # =========================================================================

    DATABASE_URL: str = Field(default="", description="Postgres connection string")
    STORE_BACKEND: Literal["postgres", "memory"] = Field(default="postgres")
    MEMORY_STORE_TRANSACTIONS: bool = Field(default=True)
    DB_POOL_MIN_SIZE: int = Field(default=1, ge=0)
    DB_POOL_MAX_SIZE: int = Field(default=10, ge=1)
    DB_CONNECT_TIMEOUT: float = Field(default=10.0, gt=0)

    # =========================================================================
    # ENVIRONMENT / LOGGING
    # =========================================================================

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(default="dev")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    LOG_JSON: bool = Field(default=True)

    # =========================================================================
    # DOMAIN POLICY
    # =========================================================================

    IRD_DELETE_POLICY: Literal["detach", "delete"] = Field(
        default="detach",
        description="What happens to linked equipment when its IRD is deleted",
    )
    BULK_PREVIEW_ROWS: int = Field(default=5, ge=0)

    # =========================================================================
    # SERVER
    # =========================================================================

    IRD_INVENTORY_CORS_ORIGINS: str | None = Field(default=None)
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8080)

    @model_validator(mode="after")
    def _warn_degraded(self) -> "Settings":
        if self.STORE_BACKEND == "postgres" and not self.DATABASE_URL.strip():
            logger.warning(
                "DATABASE_URL not configured - entering DEGRADED MODE. "
                "Store operations will fail until it is set."
            )
        elif self.STORE_BACKEND == "postgres" and not self.DATABASE_URL.startswith(
            ("postgresql://", "postgres://")
        ):
            logger.warning(
                f"DATABASE_URL has invalid format (expected postgresql://...): "
                f"{self.DATABASE_URL[:12]}..."
            )
        return self

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def database_url(self) -> str:
        return self.DATABASE_URL.strip()

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "prod"

    @property
    def cors_allowed_origins(self) -> list[str]:
        """Parsed CORS origins; empty (deny all) when not configured."""
        if not self.IRD_INVENTORY_CORS_ORIGINS:
            return []
        raw = self.IRD_INVENTORY_CORS_ORIGINS.replace(",", " ")
        return [o.strip().rstrip("/") for o in raw.split() if o.strip().startswith("http")]

    def describe(self) -> dict[str, Any]:
        """Loggable summary (no credentials)."""
        return {
            "environment": self.ENVIRONMENT,
            "store_backend": self.STORE_BACKEND,
            "database_configured": bool(self.database_url),
            "ird_delete_policy": self.IRD_DELETE_POLICY,
            "log_level": self.LOG_LEVEL,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def reset_settings() -> None:
    """Clear the cached settings (for tests or environment switch)."""
    get_settings.cache_clear()
