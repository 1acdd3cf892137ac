"""Service layer for seeding the configured database."""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from seedgraph.core.config import get_settings
from seedgraph.core.database import Base, session_scope
from seedgraph.core.exceptions import SeedError
from seedgraph.core.logging import get_logger
from seedgraph.seeder.backend import SQLAlchemyBackend
from seedgraph.seeder.core import SeedResult, Seeder
from seedgraph.seeder.options import DropPolicy, SeedOptions

logger = get_logger(__name__)


def _check_production_guard(options: SeedOptions) -> None:
    """Refuse to delete data in production unless explicitly allowed.

    Raises:
        SeedError: If running in production with a drop policy and
            ``seed_allow_production`` is not set.
    """
    settings = get_settings()
    if not settings.is_production or settings.seed_allow_production:
        return
    if options.policy is DropPolicy.NONE:
        return
    logger.warning("seeder.database.blocked", reason="production_guard")
    raise SeedError(
        "Dropping data is disabled in production. Set SEED_ALLOW_PRODUCTION=true to override.",
        code="PRODUCTION_GUARD",
        details={"app_env": settings.app_env, "drop_policy": options.policy.value},
    )


async def seed_database(
    spec: Mapping[str, Any],
    options: SeedOptions | Mapping[str, Any] | None = None,
    *,
    base: type[DeclarativeBase] = Base,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    bindings: Mapping[str, Any] | None = None,
) -> SeedResult:
    """Seed the configured database in a single transaction.

    Args:
        spec: Seed spec.
        options: Drop policy flags.
        base: Declarative base whose models can be seeded.
        session_maker: Session factory; built from settings when omitted.
        bindings: Extra names visible to expressions.

    Returns:
        Mapping of group name to record key to created model instance.

    Raises:
        SeedError: If the production guard blocks the run or seeding fails.
            The transaction is rolled back on failure.
    """
    resolved = SeedOptions.coerce(options)
    _check_production_guard(resolved)

    start_time = time.perf_counter()

    async with session_scope(session_maker) as session:
        seeder = Seeder(SQLAlchemyBackend(session, base), bindings=bindings)
        result = await seeder.seed(spec, resolved)

    logger.info(
        "seeder.database.seeded",
        groups=len(result),
        duration_seconds=round(time.perf_counter() - start_time, 3),
    )

    return result
