"""Tests for reference resolution and the result store."""

import datetime
import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import MissingGreenlet

from seedgraph.core.exceptions import (
    BackendOperationError,
    MissingIdentifier,
    PropertyNotFound,
    ReferenceNotFound,
)
from seedgraph.seeder.references import (
    ReferenceResolver,
    ResultStore,
    is_object_like,
    is_reference,
)


@pytest.fixture
def populated(results):
    """Result store holding two users and a team."""
    results.add("users", "foo", {"id": 1, "email": "foo@bar.com", "hobbies": ["a", "b"]})
    results.add("users", "bar", {"id": 2, "address": {"id": 77, "city": "Ghent"}})
    results.add("teams", "core", SimpleNamespace(id="t-1", name="Core", owner={"city": "x"}))
    return results


class TestResultStore:
    """Tests for ResultStore."""

    def test_open_group_creates_empty_group(self, results):
        """Opened groups appear in the result even without records."""
        results.open_group("users")

        assert results.as_dict() == {"users": {}}
        assert "users" in results

    def test_keeps_insertion_order(self, results):
        """Groups and keys keep the order they were added in."""
        results.add("b", "2", 2)
        results.add("a", "1", 1)
        results.add("b", "1", 3)

        assert list(results) == ["b", "a"]
        assert list(results.group("b")) == ["2", "1"]

    def test_unknown_group_is_empty(self, results):
        """Unknown groups read as empty."""
        assert results.group("nope") == {}

    def test_as_dict_is_a_copy(self, results):
        """The returned tree does not alias internal state."""
        results.add("users", "foo", 1)
        tree = results.as_dict()
        tree["users"]["bar"] = 2

        assert "bar" not in results.group("users")


class TestClassification:
    """Tests for value classification helpers."""

    def test_is_reference(self):
        """Only '->' prefixed strings are references."""
        assert is_reference("->users.foo") is True
        assert is_reference("users.foo") is False
        assert is_reference(None) is False

    @pytest.mark.parametrize(
        "value",
        ["x", 1, 1.5, True, None, datetime.date(2015, 3, 4), uuid.uuid4(), [1], ("a",)],
    )
    def test_not_object_like(self, value):
        """Scalars and sequences are not object-like."""
        assert is_object_like(value) is False

    def test_object_like(self):
        """Mappings and plain objects are object-like."""
        assert is_object_like({"id": 1}) is True
        assert is_object_like(SimpleNamespace(id=1)) is True


class TestReferenceResolver:
    """Tests for ReferenceResolver.find."""

    def test_record_reference_returns_identifier(self, populated):
        """->group.key yields the record's id."""
        resolver = ReferenceResolver(populated)

        assert resolver.resolve("->users.foo") == 1

    def test_object_record_reference(self, populated):
        """Object records are read through attributes."""
        resolver = ReferenceResolver(populated)

        assert resolver.find("teams.core") == "t-1"
        assert resolver.find("teams.core.name") == "Core"

    def test_scalar_field(self, populated):
        """->group.key.field yields the field value."""
        resolver = ReferenceResolver(populated)

        assert resolver.find("users.foo.email") == "foo@bar.com"

    def test_sequence_returned_verbatim(self, populated):
        """Sequences are returned as they are."""
        resolver = ReferenceResolver(populated)

        assert resolver.find("users.foo.hobbies") == ["a", "b"]

    def test_sequence_index(self, populated):
        """Numeric segments index into sequences."""
        resolver = ReferenceResolver(populated)

        assert resolver.find("users.foo.hobbies.1") == "b"

    def test_nested_object_identifier(self, populated):
        """A nested object yields its own identifier."""
        resolver = ReferenceResolver(populated)

        assert resolver.find("users.bar.address") == 77
        assert resolver.find("users.bar.address.city") == "Ghent"

    def test_unknown_group(self, populated):
        """A group without records raises ReferenceNotFound."""
        resolver = ReferenceResolver(populated)

        with pytest.raises(ReferenceNotFound) as exc_info:
            resolver.find("projects.x")

        assert exc_info.value.group == "projects"
        assert exc_info.value.code == "REFERENCE_NOT_FOUND"

    def test_forward_reference_to_opened_group(self, results):
        """An opened group with no records yet is still not found."""
        results.open_group("users")
        resolver = ReferenceResolver(results)

        with pytest.raises(ReferenceNotFound):
            resolver.find("users.foo")

    def test_missing_key(self, populated):
        """A key not created yet raises PropertyNotFound."""
        resolver = ReferenceResolver(populated)

        with pytest.raises(PropertyNotFound) as exc_info:
            resolver.find("users.baz.email")

        assert exc_info.value.segment == "baz"

    def test_missing_intermediate_segment(self, populated):
        """Missing intermediate segments fail fast."""
        resolver = ReferenceResolver(populated)

        with pytest.raises(PropertyNotFound):
            resolver.find("users.foo.profile.avatar")

    def test_missing_attribute_on_object(self, populated):
        """Missing attributes on object records fail fast."""
        resolver = ReferenceResolver(populated)

        with pytest.raises(PropertyNotFound):
            resolver.find("teams.core.budget")

    def test_index_out_of_range(self, populated):
        """Out-of-range indexes raise PropertyNotFound."""
        resolver = ReferenceResolver(populated)

        with pytest.raises(PropertyNotFound):
            resolver.find("users.foo.hobbies.5")

    def test_object_without_identifier(self, populated):
        """An object lacking the identifier raises MissingIdentifier."""
        resolver = ReferenceResolver(populated)

        with pytest.raises(MissingIdentifier) as exc_info:
            resolver.find("teams.core.owner")

        assert exc_info.value.field == "id"

    def test_group_reference_without_key(self, populated):
        """Referencing a whole group has no identifier to return."""
        resolver = ReferenceResolver(populated)

        with pytest.raises(MissingIdentifier):
            resolver.find("users")

    def test_custom_identifier_field(self, results):
        """The identifier field name is configurable."""
        results.add("users", "foo", {"_id": "abc"})
        resolver = ReferenceResolver(results, identifier_field="_id")

        assert resolver.find("users.foo") == "abc"


class UnloadedOwner:
    """Record whose relationship needs IO that an async session cannot do."""

    id = 5

    @property
    def owner(self):
        raise MissingGreenlet("greenlet_spawn has not been called; can't call await_only() here.")


class TestDatabaseAttributeErrors:
    """Tests for reads that fail inside SQLAlchemy."""

    def test_unloaded_relationship_is_wrapped(self, results):
        """An unloaded relationship surfaces as a seeding error."""
        results.add("teams", "a", UnloadedOwner())
        resolver = ReferenceResolver(results)

        with pytest.raises(BackendOperationError) as exc_info:
            resolver.find("teams.a.owner.name")

        assert exc_info.value.operation == "read_reference"
        assert exc_info.value.details["segment"] == "owner"
        assert isinstance(exc_info.value.__cause__, MissingGreenlet)

    def test_loaded_fields_still_resolve(self, results):
        """Plain attributes on the same record are unaffected."""
        results.add("teams", "a", UnloadedOwner())

        assert ReferenceResolver(results).find("teams.a") == 5
