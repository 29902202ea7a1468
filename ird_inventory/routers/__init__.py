"""
IRD Inventory - API Routers
"""

from .bulk_irds import router as bulk_irds_router
from .contacts import router as contacts_router
from .equipment import router as equipment_router
from .equipment_types import router as equipment_types_router
from .health import router as health_router
from .irds import router as irds_router

__all__ = [
    "bulk_irds_router",
    "contacts_router",
    "equipment_router",
    "equipment_types_router",
    "health_router",
    "irds_router",
]
