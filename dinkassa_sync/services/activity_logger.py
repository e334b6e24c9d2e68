# dinkassa_sync/services/activity_logger.py
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from dinkassa_sync.database import async_session
from dinkassa_sync.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

class ActivityLogger:
    """
    Records every dispatched catalog event with the status Dinkassa.se
    answered and its response, for auditing and troubleshooting failed syncs.

    Only used when LOG_WC_EVENTS is enabled.
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        self.session_factory = session_factory or async_session

    async def log_event(
        self,
        event: str,
        status_code: int,
        response: Optional[Any],
        entity_id: Optional[int] = None,
        dinkassa_id: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        """
        Log one dispatched event.

        Args:
            event: Event kind (product-created, category-deleted, ...)
            status_code: HTTP status of the Dinkassa.se response
            response: Parsed response, or the caller-supplied log context
            entity_id: Local product/category id
            dinkassa_id: Remote id, if known

        Returns:
            The created ActivityLog instance, None if it could not be written
        """
        entity_type = "category" if event.startswith("category-") else "product"
        try:
            log_entry = ActivityLog(
                action=event,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else "",
                platform="dinkassa",
                status_code=status_code,
                details={
                    "dinkassa_id": dinkassa_id,
                    "response": response,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                },
                created_at=datetime.now(timezone.utc)
            )

            async with self.session_factory() as session:
                session.add(log_entry)
                await session.commit()

            logger.debug(
                f"Event logged: {event} {entity_type} {entity_id} -> {status_code}"
            )

            return log_entry

        except Exception as e:
            logger.error(f"Error logging event {event}: {str(e)}")
            # Don't raise, as logging should not interrupt the main flow
            return None
