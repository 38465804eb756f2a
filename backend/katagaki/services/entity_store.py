"""
Entity store: CRUD and query primitives shared by every collection.

Each collection (titles, users, rights, proposals, categories) is a table
keyed by a store-assigned string id. Writes commit immediately unless the
caller passes ``commit=False`` to group them into its own transaction.

Store failures never get swallowed here:
  - OperationalError / InterfaceError / OSError -> StoreConnectivityError
  - missing configuration surfaces as ConfigurationError from db.session
"""

from typing import Any, Generic, Optional, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import ColumnProperty

from katagaki.core.errors import NotFoundError
from katagaki.core.logging import get_logger
from katagaki.db.session import translate_store_errors
from katagaki.models import Category, Proposal, Right, Title, User

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")


class EntityStore(Generic[ModelT]):
    """Repository over a single model."""

    def __init__(
        self,
        db: AsyncSession,
        model: type[ModelT],
        entity_name: str,
        order_by: Sequence[Any] = (),
    ) -> None:
        self.db = db
        self.model = model
        self.entity_name = entity_name
        self.order_by = tuple(order_by)
        self._pk = model.__mapper__.primary_key[0]
        self._fields = {
            prop.key
            for prop in model.__mapper__.iterate_properties
            if isinstance(prop, ColumnProperty)
        }

    async def get(self, entity_id: str) -> Optional[ModelT]:
        with translate_store_errors(f"{self.entity_name}.get"):
            return await self.db.get(self.model, entity_id)

    async def require(self, entity_id: str) -> ModelT:
        entity = await self.get(entity_id)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    async def list_all(self) -> list[ModelT]:
        return await self.query()

    async def query(self, **filters: Any) -> list[ModelT]:
        """Equality filters, results in the collection's order."""
        stmt = select(self.model)
        for field, value in filters.items():
            self._check_field(field)
            stmt = stmt.where(getattr(self.model, field) == value)
        if self.order_by:
            stmt = stmt.order_by(*self.order_by)
        with translate_store_errors(f"{self.entity_name}.query"):
            result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(self, commit: bool = True, **values: Any) -> ModelT:
        for field in values:
            self._check_field(field)
        entity = self.model(**values)
        self.db.add(entity)
        with translate_store_errors(f"{self.entity_name}.create"):
            await self.db.flush()
            if commit:
                await self.db.commit()
        return entity

    async def update(self, entity_id: str, commit: bool = True, **changes: Any) -> ModelT:
        """Partial merge: fields not named are left untouched."""
        entity = await self.require(entity_id)
        for field, value in changes.items():
            self._check_field(field)
            setattr(entity, field, value)
        with translate_store_errors(f"{self.entity_name}.update"):
            await self.db.flush()
            if commit:
                await self.db.commit()
        return entity

    async def delete(self, entity_id: str, commit: bool = True) -> None:
        entity = await self.get(entity_id)
        if entity is None:
            return
        with translate_store_errors(f"{self.entity_name}.delete"):
            await self.db.delete(entity)
            await self.db.flush()
            if commit:
                await self.db.commit()
        logger.info("entity_deleted", entity=self.entity_name, entity_id=entity_id)

    def _check_field(self, field: str) -> None:
        if field not in self._fields:
            raise ValueError(f"{self.entity_name} has no field {field!r}")


def titles(db: AsyncSession) -> EntityStore[Title]:
    return EntityStore(db, Title, "Title", order_by=(Title.created_at.desc(),))


def categories(db: AsyncSession) -> EntityStore[Category]:
    return EntityStore(db, Category, "Category", order_by=(Category.sort_order.asc(),))


def proposals(db: AsyncSession) -> EntityStore[Proposal]:
    return EntityStore(db, Proposal, "Proposal", order_by=(Proposal.proposed_at.desc(),))


def rights(db: AsyncSession) -> EntityStore[Right]:
    return EntityStore(db, Right, "Right", order_by=(Right.created_at.desc(),))


def users(db: AsyncSession) -> EntityStore[User]:
    return EntityStore(db, User, "User", order_by=(User.created_at.asc(),))
