"""Group-by-group, key-by-key record creation."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Any

from seedgraph.core.exceptions import BackendOperationError, MissingModelError, SeedError, SeedSpecError
from seedgraph.core.logging import get_logger
from seedgraph.seeder.backend import SeedBackend
from seedgraph.seeder.references import ResultStore
from seedgraph.seeder.values import ValueResolver

logger = get_logger(__name__)


class CollectionProcessor:
    """Creates the records of each group in declaration order.

    Exactly one backend call is awaited at a time, and a record is only
    resolved after every record declared before it has been created. That
    ordering is what lets ``->group.key`` references see earlier records.
    """

    def __init__(
        self,
        backend: SeedBackend,
        resolver: ValueResolver,
        results: ResultStore,
        *,
        model_key: str = "_model",
        drop_collections: bool = False,
    ) -> None:
        self.backend = backend
        self.resolver = resolver
        self.results = results
        self.model_key = model_key
        self.drop_collections = drop_collections

    async def process(self, spec: Mapping[str, Any]) -> ResultStore:
        """Process every group of a (copied) seed spec.

        Args:
            spec: Seed spec with the dependency declaration already removed.
                Group mappings are modified in place.

        Returns:
            The run's result store.
        """
        for group, group_spec in spec.items():
            await self.process_group(group, group_spec)
        return self.results

    async def process_group(self, group: str, group_spec: Any) -> None:
        """Create all records of one group.

        Raises:
            SeedSpecError: If the group is not a mapping of records.
            MissingModelError: If the group has no model marker.
            UnknownModelError: If the backend does not know the model.
            BackendOperationError: If a drop or create fails.
        """
        if not isinstance(group_spec, MutableMapping):
            raise SeedSpecError(
                f"Group '{group}' must be a mapping of records",
                details={"group": group, "type": type(group_spec).__name__},
            )

        self.results.open_group(group)

        model_name = group_spec.get(self.model_key)
        if not model_name:
            raise MissingModelError(group, self.model_key)
        del group_spec[self.model_key]

        model = self.backend.get_model(model_name)

        logger.info(
            "seeder.group.started",
            group=group,
            model=model_name,
            records=len(group_spec),
        )

        if self.drop_collections:
            await self._call_backend("drop_collection", self.backend.drop_collection(model))

        for key, record in group_spec.items():
            if not isinstance(record, Mapping):
                raise SeedSpecError(
                    f"Record '{group}.{key}' must be a mapping of fields",
                    details={"group": group, "key": key, "type": type(record).__name__},
                )

            data = self.resolver.resolve_record(record)
            created = await self._call_backend("create", self.backend.create(model, data))
            self.results.add(group, key, created)

            logger.debug("seeder.record.created", group=group, key=key)

        logger.info(
            "seeder.group.completed",
            group=group,
            created=len(self.results.group(group)),
        )

    async def _call_backend(self, operation: str, call: Any) -> Any:
        """Await a backend call, wrapping foreign failures."""
        try:
            return await call
        except SeedError:
            raise
        except Exception as e:
            raise BackendOperationError(operation, str(e)) from e
