"""
Reconciliation worker.

Every RECONCILE_INTERVAL seconds, finds content documents whose live body
is behind their newest version (a live update failed after the version
was committed) and replays that version into the live document.

Usage:
    python -m feedstudio.worker
"""

import logging
import time

from .core.config import settings
from .core.logging_config import setup_logging
from .database import SessionLocal
from .services import EditService

logger = logging.getLogger("feedstudio.worker")


def run_repair_pass() -> int:
    """Run one reconciliation pass. Returns the number of repaired documents."""
    db = SessionLocal()
    try:
        repaired = EditService(db).reconcile_all()
        if repaired:
            logger.info(f"Repair pass reconciled {repaired} document(s)")
        return repaired
    finally:
        db.close()


def main() -> None:
    """Run repair passes until interrupted."""
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)
    logger.info(f"Worker started, repairing every {settings.reconcile_interval}s")

    while True:
        try:
            run_repair_pass()
            time.sleep(settings.reconcile_interval)
        except KeyboardInterrupt:
            logger.info("Worker shutting down")
            break
        except Exception as e:
            logger.error(f"Repair pass failed: {e}", exc_info=True)
            time.sleep(settings.reconcile_interval)


if __name__ == "__main__":
    main()
