"""Result accumulation and ``->path`` reference resolution."""

from __future__ import annotations

import datetime
import uuid
from collections.abc import Iterator, Mapping, Sequence
from decimal import Decimal
from enum import Enum
from numbers import Number
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from seedgraph.core.exceptions import (
    BackendOperationError,
    MissingIdentifier,
    PropertyNotFound,
    ReferenceNotFound,
)

REFERENCE_PREFIX = "->"
PATH_SEPARATOR = "."

_MISSING = object()

# Values that end a walk as-is even though some of them carry a __dict__
_SCALAR_TYPES = (
    str,
    bytes,
    bytearray,
    Number,
    Decimal,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    Enum,
)


def is_reference(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(REFERENCE_PREFIX)


def is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray)


def is_object_like(value: Any) -> bool:
    """Check whether a value is a record-like object rather than a scalar or sequence."""
    if value is None or isinstance(value, _SCALAR_TYPES) or is_sequence(value):
        return False
    return isinstance(value, Mapping) or hasattr(value, "__dict__")


class ResultStore:
    """Records created during one run, keyed by group and record key.

    Append-only: a record key is written once and groups keep the order in
    which they were opened.
    """

    def __init__(self) -> None:
        self._groups: dict[str, dict[str, Any]] = {}

    def __contains__(self, group: object) -> bool:
        return group in self._groups

    def __iter__(self) -> Iterator[str]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def open_group(self, group: str) -> None:
        self._groups.setdefault(group, {})

    def add(self, group: str, key: str, record: Any) -> None:
        self._groups.setdefault(group, {})[key] = record

    def group(self, group: str) -> dict[str, Any]:
        """Records of a group (empty if none were created yet)."""
        return self._groups.get(group, {})

    def as_dict(self) -> dict[str, dict[str, Any]]:
        return {name: dict(records) for name, records in self._groups.items()}


def read_property(value: Any, segment: str) -> Any:
    """Look up one path segment on a mapping, sequence, or object.

    Returns ``_MISSING`` when the segment does not exist.
    """
    if isinstance(value, Mapping):
        return value.get(segment, _MISSING)
    if is_sequence(value):
        try:
            return value[int(segment)]
        except (ValueError, IndexError):
            return _MISSING
    return getattr(value, segment, _MISSING)


class ReferenceResolver:
    """Resolves ``->group.key.field`` paths against a run's ResultStore."""

    def __init__(self, results: ResultStore, identifier_field: str = "id") -> None:
        self.results = results
        self.identifier_field = identifier_field

    def resolve(self, value: str) -> Any:
        """Resolve a reference value (including the ``->`` prefix)."""
        return self.find(value[len(REFERENCE_PREFIX) :])

    def find(self, path: str) -> Any:
        """Walk ``path`` through the records created so far.

        The first segment names a group. Following segments are looked up one
        by one. A walk that ends on an object yields that object's identifier;
        scalars and sequences are returned as they are.

        Args:
            path: Reference path without the ``->`` prefix.

        Returns:
            The referenced value.

        Raises:
            ReferenceNotFound: If the group has no records yet.
            PropertyNotFound: If a segment does not exist.
            MissingIdentifier: If the final object has no identifier.
            BackendOperationError: If reading an attribute hits the database
                layer and fails there.
        """
        group, *segments = path.split(PATH_SEPARATOR)

        current: Any = self.results.group(group)
        if not current:
            raise ReferenceNotFound(path, group)

        for segment in segments:
            current = self._read(current, segment, path)
            if current is _MISSING:
                raise PropertyNotFound(path, segment)

        if is_object_like(current):
            identifier = self._read(current, self.identifier_field, path)
            if identifier is _MISSING or identifier is None or identifier == "":
                raise MissingIdentifier(path, self.identifier_field)
            return identifier

        return current

    @staticmethod
    def _read(value: Any, segment: str, path: str) -> Any:
        try:
            return read_property(value, segment)
        except SQLAlchemyError as e:
            # e.g. an unloaded relationship on an async session
            raise BackendOperationError(
                "read_reference",
                str(e),
                details={"reference": path, "segment": segment},
            ) from e
