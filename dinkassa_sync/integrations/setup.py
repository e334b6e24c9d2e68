"""
Purpose: Handles the initialization and wiring of the EventDispatcher, called during application startup.

Contents:
setup_dispatcher: Builds the Dinkassa.se client from settings, the SQL-backed local stores, the
reconciler and (when LOG_WC_EVENTS is on) the activity logger, then starts the dispatcher's worker
tasks and returns it.
"""

import logging
from typing import Optional

from dinkassa_sync.core.config import Settings, get_settings
from dinkassa_sync.integrations.dispatcher import EventDispatcher
from dinkassa_sync.integrations.locks import get_lock
from dinkassa_sync.services.activity_logger import ActivityLogger
from dinkassa_sync.services.dinkassa.client import DinkassaClient
from dinkassa_sync.services.reconciliation import ResponseReconciler
from dinkassa_sync.store.sql import SqlDeletedItemTracker, SqlMetaStore, SqlStorefront

logger = logging.getLogger(__name__)


def build_reconciler(settings: Optional[Settings] = None) -> ResponseReconciler:
    settings = settings or get_settings()
    return ResponseReconciler(
        product_meta=SqlMetaStore.for_products(),
        category_meta=SqlMetaStore.for_categories(),
        deleted_items=SqlDeletedItemTracker(),
        storefront=SqlStorefront(),
        stock_lock=get_lock(settings.STOCK_LOCK_NAME),
        settings=settings,
    )


async def setup_dispatcher(settings: Optional[Settings] = None) -> EventDispatcher:
    """
    Initialize the dispatcher with the Dinkassa.se client and local stores
    """
    settings = settings or get_settings()

    if not (settings.MACHINE_ID and settings.MACHINE_KEY and settings.INTEGRATOR_ID):
        logger.warning("Dinkassa.se credentials incomplete; requests will be rejected remotely")

    activity_logger = ActivityLogger() if settings.LOG_WC_EVENTS else None
    if activity_logger:
        logger.info("Event logging enabled")

    dispatcher = EventDispatcher(
        client=DinkassaClient(),
        reconciler=build_reconciler(settings),
        activity_logger=activity_logger,
        settings=settings,
    )

    logger.info("Starting dispatcher workers...")
    await dispatcher.start()
    return dispatcher
