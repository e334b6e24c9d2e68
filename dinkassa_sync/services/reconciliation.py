# dinkassa_sync/services/reconciliation.py
"""
Applies Dinkassa.se responses to local state.

Every product and category carries a pending-operation mask:

    bit0 (0x1)  create pending
    bit1 (0x2)  update pending
    bit2 (0x4)  stock update pending

A bit is set when the last attempt of its operation failed (status >= 400)
and cleared when a later attempt of the same operation succeeds. Bits are
independent; clearing one never touches the others. The periodic retry
sweep reads these masks to decide what to resend.

Failed deletes cannot be tracked on the entity (it is gone locally), so
they are recorded as deleted-item records on a sentinel term instead.
"""

import logging
from typing import Any, Optional, Union

from dinkassa_sync.core.config import Settings, get_settings
from dinkassa_sync.core.enums import CATALOG_VISIBLE, DeletedItemType, EventKind, PendingOperation
from dinkassa_sync.integrations.locks import NamedLock, get_lock
from dinkassa_sync.store.base import DeletedItem, DeletedItemTracker, MetaStore, Storefront

logger = logging.getLogger(__name__)


class ResponseReconciler:
    def __init__(
        self,
        product_meta: MetaStore,
        category_meta: MetaStore,
        deleted_items: DeletedItemTracker,
        storefront: Optional[Storefront] = None,
        stock_lock: Optional[NamedLock] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.product_meta = product_meta
        self.category_meta = category_meta
        self.deleted_items = deleted_items
        self.storefront = storefront
        self.stock_lock = stock_lock or get_lock(self.settings.STOCK_LOCK_NAME)

        self._handlers = {
            EventKind.PRODUCT_CREATED: self._product_created,
            EventKind.PRODUCT_UPDATED: self._product_updated,
            EventKind.PRODUCT_DELETED: self._item_deleted,
            EventKind.CATEGORY_CREATED: self._category_created,
            EventKind.CATEGORY_UPDATED: self._category_updated,
            EventKind.CATEGORY_DELETED: self._item_deleted,
            EventKind.STOCK_QUANTITY_UPDATED: self._stock_quantity_updated,
        }

    async def reconcile(
        self,
        kind: Union[EventKind, str],
        status: int,
        body: Optional[Any],
        local_id: int,
        remote_id: Optional[str] = None,
    ) -> None:
        """
        Update local state from one Dinkassa.se response.

        Args:
            kind: Event that was sent (product-created, stock-quantity-updated, ...)
            status: HTTP status of the response
            body: Parsed JSON response, None if there was none
            local_id: Id of the product (post) or category (term)
            remote_id: Dinkassa.se inventory item / category id

        Unrecognised kinds are ignored. Store errors propagate.
        """
        try:
            kind = EventKind(kind)
        except ValueError:
            logger.debug(f"Ignoring response for unknown event '{kind}'")
            return

        logger.info(f"Reconciling {kind.value} for entity {local_id} (status {status})")
        await self._handlers[kind](kind, status, body, local_id, remote_id)

    # Mask helpers

    async def _mark_pending(self, store: MetaStore, entity_id: int, key: str, operation: PendingOperation) -> None:
        pending = await store.get_int(entity_id, key)
        # Repeated failures must not rewrite the field
        if (pending & int(operation)) == 0:
            await store.set_field(entity_id, key, pending | int(operation))
            logger.info(f"Entity {entity_id}: {operation.name} pending ({key}={pending | int(operation)})")

    async def _clear_pending(self, store: MetaStore, entity_id: int, key: str, operation: PendingOperation) -> None:
        pending = await store.get_int(entity_id, key)
        if pending & int(operation):
            await store.set_field(entity_id, key, pending & operation.clear_mask())
            logger.info(f"Entity {entity_id}: {operation.name} resolved ({key}={pending & operation.clear_mask()})")

    @staticmethod
    def _item(body: Optional[Any]) -> Optional[dict]:
        if isinstance(body, dict) and isinstance(body.get("Item"), dict):
            return body["Item"]
        return None

    # Products

    async def _product_created(self, kind, status, body, local_id, remote_id):
        key = self.settings.product_pending_crud_key
        if status >= 400:
            await self._mark_pending(self.product_meta, local_id, key, PendingOperation.CREATE)
            return

        item = self._item(body)
        if item is None:
            logger.warning(f"Product {local_id} created on Dinkassa.se but the response carried no Item")
        else:
            custom_fields = {
                'id': item.get('Id'),
                'categoryname': item.get('CategoryName'),
            }
            for field_name, value in custom_fields.items():
                await self.product_meta.set_field(local_id, self.settings.product_field_key(field_name), value)

        await self._clear_pending(self.product_meta, local_id, key, PendingOperation.CREATE)
        await self._make_visible(local_id)

    async def _make_visible(self, product_id: int) -> None:
        """Best effort; a failure here never fails the reconciliation"""
        if self.storefront is None:
            return
        try:
            found = await self.storefront.set_catalog_visibility(product_id, CATALOG_VISIBLE)
            if not found:
                logger.debug(f"Product {product_id} not found in storefront, visibility unchanged")
        except Exception as e:
            logger.warning(f"Could not make product {product_id} visible: {str(e)}")

    async def _product_updated(self, kind, status, body, local_id, remote_id):
        key = self.settings.product_pending_crud_key
        if status >= 400:
            await self._mark_pending(self.product_meta, local_id, key, PendingOperation.UPDATE)
        else:
            await self._clear_pending(self.product_meta, local_id, key, PendingOperation.UPDATE)

    async def _stock_quantity_updated(self, kind, status, body, local_id, remote_id):
        key = self.settings.product_pending_crud_key
        try:
            if status >= 400:
                await self._mark_pending(self.product_meta, local_id, key, PendingOperation.STOCK_UPDATE)
            else:
                await self._clear_pending(self.product_meta, local_id, key, PendingOperation.STOCK_UPDATE)
                # The accumulated delta reached Dinkassa.se
                await self.product_meta.set_field(local_id, self.settings.quantity_change_key, 0)
        finally:
            self.stock_lock.release()

    # Categories

    async def _category_created(self, kind, status, body, local_id, remote_id):
        key = self.settings.CATEGORY_PENDING_CRUD_KEY
        if status >= 400:
            await self._mark_pending(self.category_meta, local_id, key, PendingOperation.CREATE)
            return

        item = self._item(body)
        if item is None:
            logger.warning(f"Category {local_id} created on Dinkassa.se but the response carried no Item")
        else:
            await self.category_meta.set_field(local_id, self.settings.CATEGORY_ID_KEY, item.get('Id'))
        await self._clear_pending(self.category_meta, local_id, key, PendingOperation.CREATE)

    async def _category_updated(self, kind, status, body, local_id, remote_id):
        key = self.settings.CATEGORY_PENDING_CRUD_KEY
        if status >= 400:
            await self._mark_pending(self.category_meta, local_id, key, PendingOperation.UPDATE)
        else:
            await self._clear_pending(self.category_meta, local_id, key, PendingOperation.UPDATE)

    # Deletes

    async def _item_deleted(self, kind, status, body, local_id, remote_id):
        item_type = DeletedItemType.PRODUCT if kind == EventKind.PRODUCT_DELETED else DeletedItemType.CATEGORY
        if not remote_id:
            logger.warning(f"{kind.value} for entity {local_id} has no Dinkassa id, nothing to track")
            return

        deleted_item = DeletedItem(type=item_type, dinkassa_id=str(remote_id))
        sentinel_id = await self.deleted_items.sentinel_id()
        if not await self.deleted_items.exists(sentinel_id, deleted_item):
            if status >= 400:
                await self.deleted_items.attach(sentinel_id, deleted_item)
                logger.info(f"Remote delete of {item_type.value} {remote_id} failed, queued for retry")
        elif status < 400:
            await self.deleted_items.detach(sentinel_id, deleted_item)
            logger.info(f"Remote delete of {item_type.value} {remote_id} completed on retry")
