"""Seeding orchestration."""

from __future__ import annotations

import copy
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from seedgraph.core.config import get_settings
from seedgraph.core.exceptions import BackendOperationError, SeedError, SeedSpecError
from seedgraph.core.logging import get_logger
from seedgraph.seeder.environment import DependencyLoader, ModuleLoader, ScriptEnvironment
from seedgraph.seeder.expressions import ExpressionEvaluator
from seedgraph.seeder.options import SeedOptions
from seedgraph.seeder.processor import CollectionProcessor
from seedgraph.seeder.references import ReferenceResolver, ResultStore
from seedgraph.seeder.values import ValueResolver

if TYPE_CHECKING:
    from seedgraph.core.config import Settings
    from seedgraph.seeder.backend import SeedBackend

logger = get_logger(__name__)

SeedResult = dict[str, dict[str, Any]]


class SeedRun:
    """State of a single seeding run.

    Owns the scripting environment and the result store. A ``SeedRun`` is
    built by ``Seeder.seed`` and discarded when it returns, so concurrent
    runs never share either object.
    """

    def __init__(
        self,
        backend: SeedBackend,
        options: SeedOptions,
        *,
        loader: DependencyLoader,
        bindings: Mapping[str, Any] | None,
        settings: Settings,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.backend = backend
        self.options = options
        self.loader = loader
        self.settings = settings

        self.environment = ScriptEnvironment(bindings)
        self.results = ResultStore()
        self.resolver = ValueResolver(
            ReferenceResolver(self.results, settings.seed_identifier_field),
            ExpressionEvaluator(self.environment),
        )

    async def execute(self, spec: Mapping[str, Any]) -> SeedResult:
        """Apply the database drop policy, then seed a copy of ``spec``."""
        if self.options.drop_database:
            try:
                await self.backend.drop_database()
            except SeedError:
                raise
            except Exception as e:
                raise BackendOperationError("drop_database", str(e)) from e

        data = copy.deepcopy(dict(spec))

        dependencies = data.pop(self.settings.seed_dependencies_key, None)
        self.loader.load(self.environment, dependencies)

        processor = CollectionProcessor(
            self.backend,
            self.resolver,
            self.results,
            model_key=self.settings.seed_model_key,
            drop_collections=self.options.drop_collections,
        )
        await processor.process(data)

        return self.results.as_dict()


class Seeder:
    """Seeds a backend from declarative fixture specs.

    Example::

        seeder = Seeder(SQLAlchemyBackend(session))
        result = await seeder.seed({
            "users": {
                "_model": "User",
                "alice": {"name": "Alice", "email": "=this.name.lower() + '@example.com'"},
            },
            "teams": {
                "_model": "Team",
                "core": {"name": "Core", "owner_id": "->users.alice"},
            },
        })
    """

    def __init__(
        self,
        backend: SeedBackend,
        *,
        loader: ModuleLoader | None = None,
        bindings: Mapping[str, Any] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the seeder.

        Args:
            backend: Persistence backend receiving drops and creates.
            loader: Resolves dependency identifiers; defaults to importlib.
            bindings: Names every run's expressions can see before the
                spec's own dependencies are loaded.
            settings: Marker and identifier names; defaults to app settings.
        """
        self.backend = backend
        self.loader = DependencyLoader(loader)
        self.bindings = dict(bindings or {})
        self.settings = settings or get_settings()

    async def seed(
        self,
        spec: Mapping[str, Any],
        options: SeedOptions | Mapping[str, Any] | None = None,
    ) -> SeedResult:
        """Seed the backend and return the created records.

        Args:
            spec: Seed spec; never modified.
            options: Drop policy flags (``drop_database`` defaults to True,
                ``drop_collections`` to False; collections win if both are set).

        Returns:
            Mapping of group name to record key to created record.

        Raises:
            SeedError: Any seeding failure. Nothing is retried.
        """
        if not isinstance(spec, Mapping):
            raise SeedSpecError(
                "Seed spec must be a mapping of groups",
                details={"type": type(spec).__name__},
            )

        resolved = SeedOptions.coerce(options).resolved()
        run = SeedRun(
            self.backend,
            resolved,
            loader=self.loader,
            bindings=self.bindings,
            settings=self.settings,
        )

        with structlog.contextvars.bound_contextvars(run_id=run.id):
            logger.info(
                "seeder.run.started",
                groups=len(spec),
                drop_policy=resolved.policy.value,
            )
            try:
                result = await run.execute(spec)
            except SeedError as e:
                logger.error("seeder.run.failed", error=e)
                raise

            logger.info(
                "seeder.run.completed",
                groups=len(result),
                records=sum(len(records) for records in result.values()),
            )
            return result
