"""Inventory maintenance routes."""

import logging

from fastapi import APIRouter, Request

from opsconsole.core.rate_limit import limiter
from opsconsole.core.rbac import RequireManager
from opsconsole.db.session import DbSession
from opsconsole.schemas.maintenance import StatusResyncResult
from opsconsole.services.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/resync-status", response_model=StatusResyncResult)
@limiter.limit("5/minute")
def resync_status(request: Request, db: DbSession, current_user: RequireManager):
    """Recompute every item's stock status from its counters."""
    logger.info(f"Inventory status resync requested by user {current_user.user_id}")
    return {"corrected": InventoryLedger(db).resync_statuses()}
