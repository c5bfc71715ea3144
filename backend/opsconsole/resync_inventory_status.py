#!/usr/bin/env python3
"""
Inventory Status Resync - recompute every item's status from its counters.

Repairs rows written before status was derived centrally, or edited by hand.

Usage:
    opsconsole-resync-status
    opsconsole-resync-status --dry-run
"""

import argparse
import logging
import sys
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from opsconsole.core.logging_config import configure_logging
from opsconsole.db.session import SessionLocal
from opsconsole.models.inventory import InventoryItem, derive_status
from opsconsole.services.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)


def find_stale_items(db: Session) -> List[InventoryItem]:
    return [
        item
        for item in db.query(InventoryItem).order_by(InventoryItem.id).all()
        if item.status
        != derive_status(item.quantity or 0, item.minimum_stock or 0, item.in_maintenance_quantity or 0)
    ]


def main(
    argv: Optional[List[str]] = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> int:
    parser = argparse.ArgumentParser(description="Recompute inventory item statuses")
    parser.add_argument(
        "--dry-run", action="store_true", help="Report stale items without writing"
    )
    args = parser.parse_args(argv)

    db = session_factory()
    try:
        if args.dry_run:
            stale = find_stale_items(db)
            for item in stale:
                print(f"  [{item.id}] {item.sku}: {item.status.value} (stale)")
            print(f"{len(stale)} item(s) would be corrected")
            return 0

        corrected = InventoryLedger(db).resync_statuses()
        print(f"{corrected} item(s) corrected")
        return 0
    finally:
        db.close()


def run() -> None:
    configure_logging()
    sys.exit(main())


if __name__ == "__main__":
    run()
