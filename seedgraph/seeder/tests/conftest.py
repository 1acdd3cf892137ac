"""Pytest fixtures for seeder tests."""

import asyncio
import itertools
from typing import Any

import pytest

from seedgraph.core.config import Settings
from seedgraph.core.exceptions import UnknownModelError
from seedgraph.seeder.environment import ScriptEnvironment
from seedgraph.seeder.expressions import ExpressionEvaluator
from seedgraph.seeder.references import ReferenceResolver, ResultStore
from seedgraph.seeder.values import ValueResolver


class InMemoryBackend:
    """Backend double that keeps records in lists and logs every call."""

    def __init__(self, models: tuple[str, ...] = ("User", "Team")) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {name: [] for name in models}
        self.calls: list[tuple[str, ...]] = []
        self.fail_create_on: int | None = None
        self.fail_drop_database = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._ids = itertools.count(1)

    def get_model(self, name: str) -> str:
        if name not in self.collections:
            raise UnknownModelError(name, available=sorted(self.collections))
        return name

    def collection_name(self, model: str) -> str:
        return f"{model.lower()}s"

    async def _enter(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def create(self, model: str, record: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", model))
        await self._enter()
        creates = sum(1 for call in self.calls if call[0] == "create")
        if self.fail_create_on is not None and creates == self.fail_create_on:
            raise RuntimeError("duplicate key value violates unique constraint")
        document = {"id": next(self._ids), **record}
        self.collections[model].append(document)
        return document

    async def drop_collection(self, model: str) -> None:
        self.calls.append(("drop_collection", self.collection_name(model)))
        await self._enter()
        self.collections[model].clear()

    async def drop_database(self) -> None:
        self.calls.append(("drop_database",))
        await self._enter()
        if self.fail_drop_database:
            raise ConnectionError("connection refused")
        for records in self.collections.values():
            records.clear()

    def created(self) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == "create"]


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache between tests."""
    from seedgraph.core.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Settings with the default markers."""
    return Settings(app_env="testing")


@pytest.fixture
def backend():
    """Create an in-memory backend with User and Team models."""
    return InMemoryBackend()


@pytest.fixture
def environment():
    """Create an empty scripting environment."""
    return ScriptEnvironment()


@pytest.fixture
def results():
    """Create an empty result store."""
    return ResultStore()


@pytest.fixture
def resolver(results, environment):
    """Create a value resolver over the result store and environment."""
    return ValueResolver(ReferenceResolver(results), ExpressionEvaluator(environment))


@pytest.fixture
def simple_spec():
    """Seed spec with one group of two users."""
    return {
        "users": {
            "_model": "User",
            "foo": {
                "firstName": "Foo",
                "name": "Bar",
                "email": "foo@bar.com",
            },
            "bar": {
                "firstName": "Bar",
                "name": "Baz",
                "email": "bar@baz.com",
            },
        }
    }


@pytest.fixture
def reference_spec():
    """Seed spec where teams reference users created before them."""
    return {
        "users": {
            "_model": "User",
            "foo": {
                "firstName": "Foo",
                "name": "Bar",
                "email": "foo@bar.com",
                "hobbies": ["cycling", "cooking"],
            },
            "bar": {
                "firstName": "Bar",
                "name": "Baz",
                "email": "bar@baz.com",
            },
        },
        "teams": {
            "_model": "Team",
            "teamA": {
                "name": "Team A",
                "users": [
                    {"user": "->users.foo", "email": "->users.foo.email"},
                    {"user": "->users.bar", "hobbies": "->users.foo.hobbies"},
                ],
            },
        },
    }
