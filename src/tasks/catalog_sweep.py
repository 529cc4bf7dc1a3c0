"""Celery tasks for catalog reconciliation."""

import logging

from sqlalchemy.orm import Session

from src.celery_app import app as celery_app
from src.config import get_settings
from src.database import SessionLocal
from src.exceptions import UpstreamUnavailable
from src.services.catalog_service import CatalogService
from src.services.presence import get_presence_store

logger = logging.getLogger(__name__)
settings = get_settings()


@celery_app.task(bind=True, max_retries=3)
def sweep_catalog(self) -> dict:
    """Repair catalog state left behind by interrupted multi-step writes.

    Runs periodically via celery-beat. Resumes category deletions that stopped
    partway, removes food items that never received a placement, and prunes
    categoryStatus flags for categories that no longer exist.

    Returns:
        dict with sweep statistics
    """
    db: Session = SessionLocal()
    try:
        service = CatalogService(db, get_presence_store())

        resumed = service.resume_pending_deletions()
        orphans = service.delete_orphan_food_items(settings.orphan_grace_minutes)
        pruned = service.prune_category_status()

        logger.info(
            f"Catalog sweep complete: {len(resumed['completed'])} deletions resumed, "
            f"{len(resumed['failed'])} still pending, {len(orphans)} orphans removed, "
            f"{len(pruned)} flags pruned"
        )
        return {
            "success": True,
            "resumed_deletions": resumed["completed"],
            "pending_deletions": resumed["failed"],
            "orphans_deleted": orphans,
            "flags_pruned": len(pruned),
        }

    except UpstreamUnavailable as e:
        logger.warning(f"Catalog sweep deferred, {e.store} store unavailable")
        raise self.retry(exc=e, countdown=60) from e

    finally:
        db.close()
