"""SQLAlchemy-backed implementations of the local collaborator interfaces."""

import logging
from typing import Any, Callable, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dinkassa_sync.core.config import get_settings
from dinkassa_sync.core.exceptions import LocalStoreError
from dinkassa_sync.database import async_session
from dinkassa_sync.models.meta import PostMeta, Term, TermMeta
from dinkassa_sync.models.product import Product
from dinkassa_sync.store.base import DeletedItem, DeletedItemTracker, MetaStore, Storefront

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class SqlMetaStore(MetaStore):
    """
    Metadata store over `post_meta` or `term_meta`.

    Every call runs in its own session and commits before returning, so a
    reconciliation step never holds a transaction open across the network.
    """

    def __init__(self, model, owner_column: str, session_factory: Optional[SessionFactory] = None):
        self.model = model
        self.owner = getattr(model, owner_column)
        self.owner_column = owner_column
        self.session_factory = session_factory or async_session

    @classmethod
    def for_products(cls, session_factory: Optional[SessionFactory] = None) -> "SqlMetaStore":
        return cls(PostMeta, "post_id", session_factory)

    @classmethod
    def for_categories(cls, session_factory: Optional[SessionFactory] = None) -> "SqlMetaStore":
        return cls(TermMeta, "term_id", session_factory)

    def _select_row(self, entity_id: int, key: str):
        return (
            select(self.model)
            .where(self.owner == entity_id, self.model.meta_key == key)
            .order_by(self.model.id.asc())
            .limit(1)
        )

    async def get_field(self, entity_id: int, key: str) -> Any:
        try:
            async with self.session_factory() as session:
                result = await session.execute(self._select_row(entity_id, key))
                row = result.scalars().first()
                return row.meta_value if row else None
        except SQLAlchemyError as e:
            logger.error(f"Error reading {key} of {self.model.__tablename__} {entity_id}: {str(e)}")
            raise LocalStoreError(f"Could not read {key} for entity {entity_id}: {str(e)}") from e

    async def set_field(self, entity_id: int, key: str, value: Any) -> None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(self._select_row(entity_id, key))
                row = result.scalars().first()
                if row is None:
                    row = self.model(meta_key=key, meta_value=value, **{self.owner_column: entity_id})
                    session.add(row)
                else:
                    row.meta_value = value
                await session.commit()
            logger.debug(f"{self.model.__tablename__}[{entity_id}].{key} = {value!r}")
        except SQLAlchemyError as e:
            logger.error(f"Error writing {key} of {self.model.__tablename__} {entity_id}: {str(e)}")
            raise LocalStoreError(f"Could not write {key} for entity {entity_id}: {str(e)}") from e


class SqlDeletedItemTracker(DeletedItemTracker):
    """Deleted-item records stored as term metadata on a sentinel term."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        settings = get_settings()
        self.session_factory = session_factory or async_session
        self.term_slug = settings.DELETED_ITEMS_TERM
        self.meta_key = settings.DELETED_ITEM_META_KEY
        self._sentinel_id: Optional[int] = None

    async def sentinel_id(self) -> int:
        if self._sentinel_id is not None:
            return self._sentinel_id
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Term).where(Term.slug == self.term_slug))
                term = result.scalars().first()
                if term is None:
                    term = Term(name="Dinkassa deleted items", slug=self.term_slug)
                    session.add(term)
                    await session.commit()
                    logger.info(f"Created deleted-items term '{self.term_slug}' (id={term.id})")
                self._sentinel_id = term.id
                return term.id
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Could not resolve deleted-items term: {str(e)}") from e

    async def _matching_rows(self, session: AsyncSession, sentinel_id: int, item: DeletedItem):
        result = await session.execute(
            select(TermMeta).where(TermMeta.term_id == sentinel_id, TermMeta.meta_key == self.meta_key)
        )
        wanted = item.as_meta_value()
        # JSON equality is dialect specific, compare in Python
        return [row for row in result.scalars().all() if row.meta_value == wanted]

    async def exists(self, sentinel_id: int, item: DeletedItem) -> bool:
        try:
            async with self.session_factory() as session:
                return bool(await self._matching_rows(session, sentinel_id, item))
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Could not look up deleted item {item}: {str(e)}") from e

    async def attach(self, sentinel_id: int, item: DeletedItem) -> None:
        try:
            async with self.session_factory() as session:
                session.add(TermMeta(term_id=sentinel_id, meta_key=self.meta_key, meta_value=item.as_meta_value()))
                await session.commit()
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Could not record deleted item {item}: {str(e)}") from e

    async def detach(self, sentinel_id: int, item: DeletedItem) -> None:
        try:
            async with self.session_factory() as session:
                rows = await self._matching_rows(session, sentinel_id, item)
                if rows:
                    await session.execute(delete(TermMeta).where(TermMeta.id.in_([row.id for row in rows])))
                    await session.commit()
        except SQLAlchemyError as e:
            raise LocalStoreError(f"Could not remove deleted item {item}: {str(e)}") from e


class SqlStorefront(Storefront):
    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory or async_session

    async def set_catalog_visibility(self, product_id: int, visibility: str) -> bool:
        async with self.session_factory() as session:
            product = await session.get(Product, product_id)
            if product is None:
                return False
            product.catalog_visibility = visibility
            await session.commit()
            return True
