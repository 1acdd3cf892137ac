#!/usr/bin/env python
"""Seed the demo fixtures into the configured database.

Usage:
    APP_ENV=development python examples/seed_demo_data.py

Creates the demo tables if needed, then seeds ``fixtures.yml`` with the
default policy (every table emptied first).
"""

import asyncio
from pathlib import Path

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from seedgraph.core.database import get_engine, get_session_maker
from seedgraph.core.logging import configure_logging, get_logger
from seedgraph.seeder import load_seed_spec, seed_database

FIXTURES = Path(__file__).with_name("fixtures.yml")

logger = get_logger(__name__)


class DemoBase(DeclarativeBase):
    pass


class User(DemoBase):
    __tablename__ = "demo_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(200), unique=True)
    joined: Mapped[str] = mapped_column(String(10))
    hobbies: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)


class Team(DemoBase):
    __tablename__ = "demo_teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    owner_id: Mapped[int] = mapped_column(ForeignKey("demo_users.id"))
    owner_email: Mapped[str] = mapped_column(String(200))
    favourite_hobby: Mapped[str | None] = mapped_column(String(100), nullable=True)


async def main() -> None:
    configure_logging()

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(DemoBase.metadata.create_all)

    result = await seed_database(
        load_seed_spec(FIXTURES),
        base=DemoBase,
        session_maker=get_session_maker(),
    )

    team = result["teams"]["wonderland"]
    logger.info(
        "demo.seeded",
        users=[user.email for user in result["users"].values()],
        team=team.name,
        owner_id=team.owner_id,
    )
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
