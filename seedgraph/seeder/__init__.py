"""Fixture seeding engine.

Turns a declarative seed spec into persisted records:
- Groups are created in declaration order, records in key order
- ``->group.key.field`` values reference records created earlier in the run
- ``=expression`` values are computed in a sandbox that sees the record
  (as ``this``) and the spec's ``_dependencies``
- Drop policy clears the whole database or just the seeded collections first
"""

from seedgraph.seeder.backend import SeedBackend, SQLAlchemyBackend
from seedgraph.seeder.callbacks import schedule_seed
from seedgraph.seeder.core import SeedResult, Seeder
from seedgraph.seeder.loader import load_seed_spec
from seedgraph.seeder.options import DropPolicy, SeedOptions
from seedgraph.seeder.service import seed_database

__all__ = [
    "DropPolicy",
    "SQLAlchemyBackend",
    "SeedBackend",
    "SeedOptions",
    "SeedResult",
    "Seeder",
    "load_seed_spec",
    "schedule_seed",
    "seed_database",
]
