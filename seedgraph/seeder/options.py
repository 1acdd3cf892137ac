"""Seeding options and the drop policy derived from them."""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DropPolicy(str, Enum):
    """What gets cleared before records are created."""

    DATABASE = "database"
    COLLECTIONS = "collections"
    NONE = "none"


class SeedOptions(BaseModel):
    """Options for a single seeding run.

    Accepts both the Python field names and the JSON-style aliases, so
    ``{"dropDatabase": False}`` and ``SeedOptions(drop_database=False)`` are
    equivalent.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    drop_database: bool = Field(
        default=True,
        alias="dropDatabase",
        description="Delete every record of every model before seeding",
    )
    drop_collections: bool = Field(
        default=False,
        alias="dropCollections",
        description="Delete the records of each seeded model before its group is created",
    )

    @classmethod
    def coerce(cls, options: "SeedOptions | Mapping[str, Any] | None") -> "SeedOptions":
        """Build options from ``None``, a mapping, or an existing instance."""
        if options is None:
            return cls()
        if isinstance(options, SeedOptions):
            return options
        return cls.model_validate(dict(options))

    def resolved(self) -> "SeedOptions":
        """Return options with the mutual exclusion applied.

        Only one of the two flags can be on. When both are, the collection
        flag was set explicitly by the caller and overrides the database
        default.
        """
        if self.drop_collections and self.drop_database:
            return self.model_copy(update={"drop_database": False})
        return self

    @property
    def policy(self) -> DropPolicy:
        """Drop policy after resolution."""
        options = self.resolved()
        if options.drop_database:
            return DropPolicy.DATABASE
        if options.drop_collections:
            return DropPolicy.COLLECTIONS
        return DropPolicy.NONE
