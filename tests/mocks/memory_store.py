from typing import Any, Dict, List, Set, Tuple

from dinkassa_sync.core.exceptions import LocalStoreError
from dinkassa_sync.store.base import DeletedItem, DeletedItemTracker, MetaStore, Storefront


class InMemoryMetaStore(MetaStore):
    def __init__(self, initial: Dict[Tuple[int, str], Any] = None):
        self.fields: Dict[Tuple[int, str], Any] = dict(initial or {})
        self.writes: List[Tuple[int, str, Any]] = []  # Track calls for testing
        self.should_fail = False  # Toggle to test error scenarios

    async def get_field(self, entity_id: int, key: str) -> Any:
        if self.should_fail:
            raise LocalStoreError("store unavailable")
        return self.fields.get((entity_id, key))

    async def set_field(self, entity_id: int, key: str, value: Any) -> None:
        if self.should_fail:
            raise LocalStoreError("store unavailable")
        self.writes.append((entity_id, key, value))
        self.fields[(entity_id, key)] = value


class InMemoryDeletedItemTracker(DeletedItemTracker):
    SENTINEL_ID = 9000

    def __init__(self):
        self.records: Dict[int, Set[DeletedItem]] = {}

    async def sentinel_id(self) -> int:
        return self.SENTINEL_ID

    async def exists(self, sentinel_id: int, item: DeletedItem) -> bool:
        return item in self.records.get(sentinel_id, set())

    async def attach(self, sentinel_id: int, item: DeletedItem) -> None:
        self.records.setdefault(sentinel_id, set()).add(item)

    async def detach(self, sentinel_id: int, item: DeletedItem) -> None:
        self.records.get(sentinel_id, set()).discard(item)


class MockStorefront(Storefront):
    def __init__(self, product_ids=()):
        self.visibility: Dict[int, str] = {product_id: "hidden" for product_id in product_ids}
        self.should_fail = False

    async def set_catalog_visibility(self, product_id: int, visibility: str) -> bool:
        if self.should_fail:
            raise RuntimeError("storefront rejected visibility change")
        if product_id not in self.visibility:
            return False
        self.visibility[product_id] = visibility
        return True
