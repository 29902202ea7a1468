"""
IRD Inventory - Uvicorn Launcher

    python -m ird_inventory

Binds HOST:PORT from settings. Auto-reload is on outside prod.
"""

from __future__ import annotations

import logging

import uvicorn

from .core.config import get_settings

logger = logging.getLogger(__name__)

APP = "ird_inventory.main:app"


def main() -> None:
    settings = get_settings()
    reload = not settings.is_production

    logger.info(
        f"listening host={settings.HOST} port={settings.PORT} env={settings.ENVIRONMENT}",
        extra={"reload": reload},
    )

    uvicorn.run(
        APP,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=reload,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
