"""Per-run scripting environment and dependency loading."""

from __future__ import annotations

import importlib
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from seedgraph.core.exceptions import DependencyNotFound, SeedSpecError
from seedgraph.core.logging import get_logger

logger = get_logger(__name__)

ModuleLoader = Callable[[str], Any]


def import_dependency(identifier: str) -> Any:
    """Resolve a module identifier to a runtime value.

    ``"json"`` returns the module; ``"datetime:date"`` returns the ``date``
    attribute of the ``datetime`` module.

    Args:
        identifier: Dotted module path, optionally followed by ``:attribute``.

    Returns:
        The imported module or attribute.

    Raises:
        ModuleNotFoundError: If the module cannot be imported.
        AttributeError: If the module has no such attribute.
    """
    module_name, _, attribute = identifier.partition(":")
    module = importlib.import_module(module_name)
    if not attribute:
        return module

    value: Any = module
    for part in attribute.split("."):
        value = getattr(value, part)
    return value


class ScriptEnvironment:
    """Names visible to expressions during one seeding run.

    A new environment is built for every run. Bindings handed in at
    construction are copied, so a run never writes into a caller's mapping.
    """

    def __init__(self, bindings: Mapping[str, Any] | None = None) -> None:
        self._bindings: dict[str, Any] = dict(bindings or {})

    def __contains__(self, alias: object) -> bool:
        return alias in self._bindings

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def get(self, alias: str, default: Any = None) -> Any:
        return self._bindings.get(alias, default)

    def bind(self, alias: str, value: Any) -> None:
        self._bindings[alias] = value

    def as_dict(self) -> dict[str, Any]:
        """Return a shallow copy of the bindings."""
        return dict(self._bindings)


class DependencyLoader:
    """Binds the aliases declared by a seed spec into an environment."""

    def __init__(self, loader: ModuleLoader | None = None) -> None:
        self.loader = loader or import_dependency

    def load(self, environment: ScriptEnvironment, dependencies: Mapping[str, Any] | None) -> None:
        """Resolve every unbound alias and bind it into ``environment``.

        Args:
            environment: The run's scripting environment.
            dependencies: Mapping of alias to module identifier.

        Raises:
            SeedSpecError: If the declaration is not a mapping of strings.
            DependencyNotFound: If the loader cannot resolve an identifier.
        """
        if not dependencies:
            return
        if not isinstance(dependencies, Mapping):
            raise SeedSpecError(
                "Dependencies must be a mapping of alias to module identifier",
                details={"type": type(dependencies).__name__},
            )

        for alias, identifier in dependencies.items():
            if alias in environment:
                logger.debug("seeder.dependency.already_bound", alias=alias)
                continue
            if not isinstance(identifier, str):
                raise SeedSpecError(
                    f"Dependency '{alias}' must name a module",
                    details={"alias": alias, "type": type(identifier).__name__},
                )

            try:
                value = self.loader(identifier)
            except (ImportError, AttributeError) as e:
                raise DependencyNotFound(alias, identifier, str(e)) from e

            environment.bind(alias, value)
            logger.debug("seeder.dependency.bound", alias=alias, identifier=identifier)
