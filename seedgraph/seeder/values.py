"""Recursive resolution of record values."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from seedgraph.seeder.expressions import ExpressionEvaluator, is_expression
from seedgraph.seeder.references import ReferenceResolver, is_reference


class ValueResolver:
    """Unwinds a raw record into the values handed to the backend.

    Mappings are resolved depth-first and each one is the expression context
    of its own fields. List items keep the enclosing mapping as context.
    Strings are dispatched on their prefix alone: ``=`` goes to the
    expression evaluator, ``->`` to the reference resolver, anything else is
    returned unchanged.
    """

    def __init__(self, references: ReferenceResolver, expressions: ExpressionEvaluator) -> None:
        self.references = references
        self.expressions = expressions

    def resolve_record(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Resolve every field of ``record`` in declared order.

        ``record`` itself is never modified, so expressions always read the
        unresolved form of their siblings.
        """
        return {field: self.resolve_value(value, record) for field, value in record.items()}

    def resolve_value(self, value: Any, parent: Mapping[str, Any]) -> Any:
        if isinstance(value, Mapping):
            return self.resolve_record(value)
        if isinstance(value, list | tuple):
            return [self.resolve_value(item, parent) for item in value]
        if is_expression(value):
            return self.expressions.evaluate(value, parent)
        if is_reference(value):
            return self.references.resolve(value)
        return value
