"""Persistence backend contract and its async SQLAlchemy implementation."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from seedgraph.core.database import Base
from seedgraph.core.exceptions import BackendOperationError, UnknownModelError
from seedgraph.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class SeedBackend(Protocol):
    """What the seeding engine needs from a data store.

    ``get_model`` is synchronous; the three data operations are awaited one
    at a time by the engine.
    """

    def get_model(self, name: str) -> Any:
        """Return the model handle registered under ``name``.

        Raises:
            UnknownModelError: If no model has that name.
        """
        ...

    def collection_name(self, model: Any) -> str:
        """Name of the collection/table backing ``model``."""
        ...

    async def create(self, model: Any, record: dict[str, Any]) -> Any:
        """Persist one record and return it with its generated identifier."""
        ...

    async def drop_collection(self, model: Any) -> None:
        """Remove every record of ``model``."""
        ...

    async def drop_database(self) -> None:
        """Remove every record of every model."""
        ...


def collect_models(base: type[DeclarativeBase]) -> dict[str, type[Any]]:
    """Map model class names and table names to mapped classes.

    Args:
        base: Declarative base whose registry holds the models.

    Returns:
        Lookup of class name and ``__tablename__`` to model class.

    Raises:
        ValueError: If two different models claim the same name.
    """
    models: dict[str, type[Any]] = {}

    def add(key: str, model: type[Any]) -> None:
        if not key:
            return
        existing = models.get(key)
        if existing is not None and existing is not model:
            raise ValueError(
                f"Model name '{key}' is used by both "
                f"{existing.__module__}.{existing.__name__} and "
                f"{model.__module__}.{model.__name__}"
            )
        models[key] = model

    for mapper in base.registry.mappers:
        cls = mapper.class_
        add(cls.__name__, cls)
        add(getattr(cls, "__tablename__", ""), cls)

    return models


class SQLAlchemyBackend:
    """Seeds mapped models through an ``AsyncSession``.

    Records are flushed, not committed: the session owner decides when the
    transaction ends.
    """

    def __init__(self, session: AsyncSession, base: type[DeclarativeBase] = Base) -> None:
        """Initialize the backend.

        Args:
            session: Async session the records are written through.
            base: Declarative base whose models can be seeded.
        """
        self.session = session
        self.base = base
        self.models = collect_models(base)

    def get_model(self, name: str) -> type[Any]:
        try:
            return self.models[name]
        except KeyError:
            raise UnknownModelError(name, available=sorted(self.models)) from None

    def collection_name(self, model: type[Any]) -> str:
        return str(model.__table__.name)

    async def create(self, model: type[Any], record: dict[str, Any]) -> Any:
        """Insert one row and flush so server-generated keys are populated.

        Args:
            model: Mapped model class.
            record: Resolved field values.

        Returns:
            The persisted model instance.

        Raises:
            BackendOperationError: If the model rejects the fields or the
                insert fails.
        """
        try:
            instance = model(**record)
            self.session.add(instance)
            await self.session.flush()
        except (TypeError, SQLAlchemyError) as e:
            raise BackendOperationError(
                "create",
                str(e),
                details={"model": model.__name__},
            ) from e

        return instance

    async def drop_collection(self, model: type[Any]) -> None:
        table = self.collection_name(model)
        logger.info("seeder.backend.drop_collection", table=table)
        try:
            await self.session.execute(delete(model))
        except SQLAlchemyError as e:
            raise BackendOperationError("drop_collection", str(e), details={"table": table}) from e

    async def drop_database(self) -> None:
        """Delete all rows of every mapped table, children before parents."""
        tables = list(reversed(self.base.metadata.sorted_tables))
        logger.info("seeder.backend.drop_database", tables=len(tables))
        try:
            for table in tables:
                await self.session.execute(table.delete())
        except SQLAlchemyError as e:
            raise BackendOperationError("drop_database", str(e)) from e
