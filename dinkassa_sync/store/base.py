"""
Interfaces to the local collaborators the worker reads and writes:
entity metadata (products and categories), the deleted-item tracker and
the storefront.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict

from dinkassa_sync.core.enums import DeletedItemType
from dinkassa_sync.core.exceptions import LocalStoreError


class DeletedItem(BaseModel):
    """A remote delete that failed and still has to be retried."""
    model_config = ConfigDict(frozen=True)

    type: DeletedItemType
    dinkassa_id: str

    def as_meta_value(self) -> Dict[str, str]:
        return {"type": self.type.value, "dinkassa_id": self.dinkassa_id}


class MetaStore(ABC):
    """Key/value metadata of one entity scope (product posts or category terms)."""

    @abstractmethod
    async def get_field(self, entity_id: int, key: str) -> Any:
        """Return the stored value, or None when the key is absent"""
        pass

    @abstractmethod
    async def set_field(self, entity_id: int, key: str, value: Any) -> None:
        """Create or overwrite the value stored under key"""
        pass

    async def get_int(self, entity_id: int, key: str) -> int:
        """Read a field as an integer; absent or blank values count as 0."""
        value = await self.get_field(entity_id, key)
        if value in (None, ""):
            return 0
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise LocalStoreError(f"Field {key} of entity {entity_id} is not an integer: {value!r}") from e


class DeletedItemTracker(ABC):
    @abstractmethod
    async def sentinel_id(self) -> int:
        """Id of the container entity the records are attached to"""
        pass

    @abstractmethod
    async def exists(self, sentinel_id: int, item: DeletedItem) -> bool:
        pass

    @abstractmethod
    async def attach(self, sentinel_id: int, item: DeletedItem) -> None:
        pass

    @abstractmethod
    async def detach(self, sentinel_id: int, item: DeletedItem) -> None:
        pass


class Storefront(ABC):
    @abstractmethod
    async def set_catalog_visibility(self, product_id: int, visibility: str) -> bool:
        """Returns False when the product does not exist"""
        pass
