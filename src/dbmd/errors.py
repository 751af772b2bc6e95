"""
Exception types raised by dbmd.

Errors from the database drivers themselves (oracledb, SQLAlchemy) are not
wrapped and propagate to the caller as raised.
"""

from __future__ import annotations

from typing import Iterable, Optional


class DbmdError(Exception):
    """Base class for all dbmd errors."""


class ConfigError(DbmdError, ValueError):
    """Connection or fetch options could not be parsed or are invalid."""


class RelationNotFoundError(DbmdError, ValueError):
    """A relation id was referenced that is not present in the metadata."""

    def __init__(self, rel_id):
        self.rel_id = rel_id
        super().__init__(f"Relation {rel_id} not found.")


class DuplicateRelationError(DbmdError, ValueError):
    """The same relation id appears more than once in a metadata snapshot."""

    def __init__(self, rel_id):
        self.rel_id = rel_id
        super().__init__(f"Duplicate metadata for relation {rel_id}.")


class AmbiguousForeignKeyError(DbmdError, ValueError):
    """More than one foreign key satisfies a from/to foreign key lookup."""

    def __init__(self, from_rel_id, to_rel_id, field_names: Optional[Iterable[str]] = None):
        self.from_rel_id = from_rel_id
        self.to_rel_id = to_rel_id
        self.field_names = frozenset(field_names) if field_names is not None else None

        if self.field_names is not None:
            detail = f" with the same specified source field set {sorted(self.field_names)}."
        else:
            detail = " and no foreign key field names were specified to disambiguate."

        super().__init__(
            f"Child table {from_rel_id} has multiple foreign keys to parent table {to_rel_id}{detail}"
        )


class MetadataContractError(DbmdError):
    """Rows from an introspection source violate the expected grouping order."""
