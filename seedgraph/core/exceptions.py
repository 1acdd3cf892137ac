"""Seeding error taxonomy.

Every error aborts the current seeding run. The one failure that is recovered
in place (a broken ``=expression`` degrading to its literal text) never
raises out of the expression sandbox and has no class here.
"""

from typing import Any

# =============================================================================
# Base
# =============================================================================


class SeedError(Exception):
    """Base exception for seeding errors.

    Each subclass carries a machine-readable code so callers can branch on
    the failure kind without matching on messages.
    """

    def __init__(
        self,
        message: str,
        code: str = "SEED_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize seeding error.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    @property
    def title(self) -> str:
        """Short summary of the error kind."""
        return self.code.replace("_", " ").title()


# =============================================================================
# Spec structure
# =============================================================================


class SeedSpecError(SeedError):
    """The seed spec (or the file holding it) is structurally invalid."""

    def __init__(
        self,
        message: str = "Invalid seed spec",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="INVALID_SPEC", details=details)


class MissingModelError(SeedError):
    """A group does not declare which model its records belong to."""

    def __init__(self, group: str, marker: str = "_model") -> None:
        super().__init__(
            message=(
                f"Group '{group}' has no {marker} property describing "
                "which database model should be used"
            ),
            code="MISSING_MODEL",
            details={"group": group, "marker": marker},
        )
        self.group = group


class UnknownModelError(SeedError):
    """The backend does not recognize a model name."""

    def __init__(self, model_name: str, available: list[str] | None = None) -> None:
        super().__init__(
            message=f"Unknown model '{model_name}'",
            code="UNKNOWN_MODEL",
            details={"model": model_name, "available": available or []},
        )
        self.model_name = model_name


class DependencyNotFound(SeedError):
    """A dependency alias could not be resolved by the module loader."""

    def __init__(self, alias: str, identifier: str, reason: str = "") -> None:
        message = f"Cannot find module '{identifier}' for dependency '{alias}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="MODULE_NOT_FOUND",
            details={"alias": alias, "identifier": identifier},
        )
        self.alias = alias
        self.identifier = identifier


# =============================================================================
# References
# =============================================================================


class ReferenceNotFound(SeedError):
    """A reference points at a group with no records created yet."""

    def __init__(self, reference: str, group: str) -> None:
        super().__init__(
            message=(
                f"Reference '->{reference}' points to group '{group}' "
                "which has no records yet"
            ),
            code="REFERENCE_NOT_FOUND",
            details={"reference": reference, "group": group},
        )
        self.reference = reference
        self.group = group


class PropertyNotFound(SeedError):
    """A path segment of a reference does not exist on the walked value."""

    def __init__(self, reference: str, segment: str) -> None:
        super().__init__(
            message=f"Could not read property '{segment}' of reference '->{reference}'",
            code="PROPERTY_NOT_FOUND",
            details={"reference": reference, "segment": segment},
        )
        self.reference = reference
        self.segment = segment


class MissingIdentifier(SeedError):
    """A reference ends on an object that has no generated identifier."""

    def __init__(self, reference: str, field: str = "id") -> None:
        super().__init__(
            message=f"Reference '->{reference}' resolved to an object without '{field}'",
            code="MISSING_IDENTIFIER",
            details={"reference": reference, "field": field},
        )
        self.reference = reference
        self.field = field


# =============================================================================
# Backend
# =============================================================================


class BackendOperationError(SeedError):
    """A drop or create call on the persistence backend failed.

    The original exception is kept in ``__cause__`` by raising with ``from``.
    """

    def __init__(
        self,
        operation: str,
        message: str = "Backend operation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=f"{operation} failed: {message}",
            code="BACKEND_ERROR",
            details={"operation": operation, **(details or {})},
        )
        self.operation = operation
