"""
Shared enums and constants used across the worker.
"""

from enum import Enum, IntFlag


class EventKind(str, Enum):
    PRODUCT_CREATED = "product-created"
    PRODUCT_UPDATED = "product-updated"
    PRODUCT_DELETED = "product-deleted"
    CATEGORY_CREATED = "category-created"
    CATEGORY_UPDATED = "category-updated"
    CATEGORY_DELETED = "category-deleted"
    STOCK_QUANTITY_UPDATED = "stock-quantity-updated"

    @property
    def is_category(self) -> bool:
        return self.value.startswith("category-")


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class DeletedItemType(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"


class PendingOperation(IntFlag):
    """Bits of the per-entity pending-operation mask."""
    CREATE = 0x1
    UPDATE = 0x2
    STOCK_UPDATE = 0x4

    @classmethod
    def all(cls) -> int:
        return int(cls.CREATE | cls.UPDATE | cls.STOCK_UPDATE)

    def clear_mask(self) -> int:
        """Mask that clears this bit and keeps the other two (0x6, 0x5, 0x3)."""
        return PendingOperation.all() & ~int(self)


class Controller(str, Enum):
    """Dinkassa.se resource path segments"""
    INVENTORY_ITEM = "inventoryitem"
    CATEGORY = "category"


# Status used for attempts that never produced an HTTP response
TRANSPORT_FAILURE_STATUS = 599

CATALOG_VISIBLE = "visible"
