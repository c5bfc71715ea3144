"""API routes."""

import logging
from fastapi import APIRouter

from opsconsole.api.routes import inventory, maintenance, scheduled_maintenance

logger = logging.getLogger(__name__)

api_router = APIRouter()

api_router.include_router(
    scheduled_maintenance.router, prefix="/scheduled-maintenance", tags=["scheduled-maintenance"]
)
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
