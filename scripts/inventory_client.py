#!/usr/bin/env python3
"""
Follow the live inventory feed from the command line.
Logs every applied snapshot and every connection state change.
"""
import argparse
import logging
import os
import sys
from pathlib import Path

import socketio

# Allow running from a checkout without installing
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from backend.client.live import connect_live
from backend.client.reconciler import InventoryReconciler
from backend.core.normalize import ProductStatus

SERVER_URL = os.environ.get("SYNC_API_URL", "http://localhost:3000")

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("inventory_client")


def report(reconciler: InventoryReconciler):
    records = reconciler.records
    low = sum(1 for r in records if r.status is not ProductStatus.IN_STOCK)
    logger.info(f"[{reconciler.state.value}] {len(records)} items, {low} low/out of stock")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Follow live inventory updates")
    parser.add_argument("--url", default=SERVER_URL, help=f"Server URL (default: {SERVER_URL})")
    args = parser.parse_args(argv)

    reconciler = InventoryReconciler(listener=report)
    try:
        client = connect_live(args.url, reconciler)
    except socketio.exceptions.ConnectionError as e:
        logger.error(f"Could not connect to {args.url}: {e}")
        return 1

    try:
        client.wait()
    except KeyboardInterrupt:
        logger.info("Stopping client...")
        client.disconnect()
    return 0


if __name__ == "__main__":
    sys.exit(main())
