"""
Purpose: Entry points the storefront calls when a product or category changes.

Contents:
encode_payload: JSON-encodes and URL-encodes a request body the way the form trigger delivers it.
CatalogEvents: Builds an EventDescriptor for each catalog event (inventory items and categories are
separate Dinkassa.se controllers), hands it to the EventDispatcher and returns it. Nothing here waits
for Dinkassa.se.

Stock changes are special: local changes accumulate in a pending quantity-delta field until a sync
succeeds, and only one stock update may be in flight at a time. The named stock lock is taken here and
released by reconciliation once Dinkassa.se has answered.
"""

import json
import logging
from typing import Any, Dict, Optional, Union
from urllib.parse import quote_plus

from dinkassa_sync.core.config import Settings, get_settings
from dinkassa_sync.core.enums import Controller, EventKind, HttpMethod
from dinkassa_sync.core.exceptions import DispatchError
from dinkassa_sync.integrations.dispatcher import EventDispatcher
from dinkassa_sync.integrations.events import EventDescriptor
from dinkassa_sync.store.base import MetaStore

logger = logging.getLogger(__name__)

Payload = Union[None, str, Dict[str, Any]]


def encode_payload(data: Payload) -> Optional[str]:
    if data is None:
        return None
    if not isinstance(data, str):
        data = json.dumps(data)
    return quote_plus(data)


class CatalogEvents:
    def __init__(
        self,
        dispatcher: EventDispatcher,
        product_meta: MetaStore,
        settings: Optional[Settings] = None,
    ):
        self.dispatcher = dispatcher
        self.product_meta = product_meta
        self.settings = settings or get_settings()

    def _dispatch(
        self,
        kind: EventKind,
        local_id: int,
        controller: Controller,
        method: HttpMethod,
        dinkassa_id: Optional[str] = None,
        data: Payload = None,
        headers: Optional[Dict[str, str]] = None,
        secure: bool = False,
        info: Optional[Any] = None,
    ) -> EventDescriptor:
        event = EventDescriptor(
            kind=kind,
            local_id=local_id,
            remote_id=dinkassa_id,
            method=method,
            resource_path=controller.value,
            body=encode_payload(data),
            extra_headers=headers,
            log_context=info,
            secure=secure,
        )
        self.dispatcher.enqueue(event)
        return event

    # Products

    def product_created(self, post_id: int, data: Payload, secure: bool = False, info: Any = None) -> EventDescriptor:
        return self._dispatch(EventKind.PRODUCT_CREATED, post_id, Controller.INVENTORY_ITEM, HttpMethod.POST,
                              data=data, secure=secure, info=info)

    def product_updated(self, post_id: int, dinkassa_id: str, data: Payload, secure: bool = False,
                        info: Any = None) -> EventDescriptor:
        return self._dispatch(EventKind.PRODUCT_UPDATED, post_id, Controller.INVENTORY_ITEM, HttpMethod.PUT,
                              dinkassa_id=dinkassa_id, data=data, secure=secure, info=info)

    def product_deleted(self, post_id: int, dinkassa_id: str, secure: bool = False) -> EventDescriptor:
        return self._dispatch(EventKind.PRODUCT_DELETED, post_id, Controller.INVENTORY_ITEM, HttpMethod.DELETE,
                              dinkassa_id=dinkassa_id, secure=secure)

    # Categories

    def category_created(self, term_id: int, data: Payload, secure: bool = False, info: Any = None) -> EventDescriptor:
        return self._dispatch(EventKind.CATEGORY_CREATED, term_id, Controller.CATEGORY, HttpMethod.POST,
                              data=data, secure=secure, info=info)

    def category_updated(self, term_id: int, dinkassa_id: str, data: Payload, secure: bool = False,
                         info: Any = None) -> EventDescriptor:
        return self._dispatch(EventKind.CATEGORY_UPDATED, term_id, Controller.CATEGORY, HttpMethod.PUT,
                              dinkassa_id=dinkassa_id, data=data, secure=secure, info=info)

    def category_deleted(self, term_id: int, dinkassa_id: str, secure: bool = False) -> EventDescriptor:
        return self._dispatch(EventKind.CATEGORY_DELETED, term_id, Controller.CATEGORY, HttpMethod.DELETE,
                              dinkassa_id=dinkassa_id, secure=secure)

    # Stock

    async def stock_quantity_changed(
        self,
        post_id: int,
        dinkassa_id: str,
        delta: int,
        secure: bool = False,
        lock_timeout: Optional[float] = None,
    ) -> EventDescriptor:
        """
        Record a local stock change and send the accumulated delta to Dinkassa.se.

        The stock lock stays held after this returns; reconciliation of the
        queued event releases it.

        Raises:
            DispatchError: If the lock could not be taken in time or the event could not be queued
            LocalStoreError: If the pending delta could not be read or written
        """
        lock = self.dispatcher.reconciler.stock_lock
        if not await lock.acquire(timeout=lock_timeout):
            raise DispatchError(f"Stock lock '{lock.name}' busy, change of {delta} for product {post_id} not sent")

        try:
            key = self.settings.quantity_change_key
            quantity_change = await self.product_meta.get_int(post_id, key) + delta
            await self.product_meta.set_field(post_id, key, quantity_change)
            logger.info(f"Product {post_id}: pending stock change now {quantity_change}")

            return self._dispatch(
                EventKind.STOCK_QUANTITY_UPDATED, post_id, Controller.INVENTORY_ITEM, HttpMethod.PUT,
                dinkassa_id=dinkassa_id,
                data={"Id": dinkassa_id, "QuantityChange": quantity_change},
                secure=secure,
            )
        except Exception:
            # Nothing was queued, so no reconciliation will release the lock
            lock.release()
            raise
