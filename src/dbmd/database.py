"""
Database metadata snapshot and its structural query API.

DatabaseMetadata holds the relations and foreign keys fetched from a database
at one point in time, sorted for deterministic output, and answers lookups
such as "which foreign key links these two tables" on top of indexes built
when the snapshot is constructed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from dbmd.errors import AmbiguousForeignKeyError, DuplicateRelationError, RelationNotFoundError
from dbmd.identifiers import normalize_identifier, normalize_names
from dbmd.models import (
    CaseSensitivity,
    ForeignKey,
    ForeignKeyScope,
    RelId,
    RelMetadata,
)

logger = logging.getLogger(__name__)


def _foreign_key_sort_key(fk: ForeignKey) -> Tuple[str, str, List[str], List[str]]:
    # Python list comparison is lexicographic with shorter prefixes first.
    return (
        fk.source_rel_id.id_string,
        fk.target_rel_id.id_string,
        fk.source_field_names,
        fk.target_field_names,
    )


class DatabaseMetadata:
    """
    Immutable snapshot of a database's relations and foreign keys.

    Relations are sorted by relation id string and foreign keys by source id,
    target id, source field names and target field names. Sorting and index
    construction both happen once, in the constructor.
    """

    def __init__(
        self,
        requested_schema: Optional[str],
        relation_metadatas: Iterable[RelMetadata],
        foreign_keys: Iterable[ForeignKey],
        case_sensitivity: CaseSensitivity,
        dbms_name: Optional[str] = None,
        dbms_version: Optional[str] = None,
        dbms_major_version: Optional[int] = None,
        dbms_minor_version: Optional[int] = None,
    ):
        self._requested_schema = requested_schema
        self._case_sensitivity = case_sensitivity
        self._dbms_name = dbms_name
        self._dbms_version = dbms_version
        self._dbms_major_version = dbms_major_version
        self._dbms_minor_version = dbms_minor_version

        self._relation_metadatas: Tuple[RelMetadata, ...] = tuple(
            sorted(relation_metadatas, key=lambda rmd: rmd.rel_id.id_string)
        )
        self._foreign_keys: Tuple[ForeignKey, ...] = tuple(
            sorted(foreign_keys, key=_foreign_key_sort_key)
        )

        self._rel_mds_by_rel_id: Dict[RelId, RelMetadata] = {}
        for rel_md in self._relation_metadatas:
            if rel_md.rel_id in self._rel_mds_by_rel_id:
                raise DuplicateRelationError(rel_md.rel_id)
            self._rel_mds_by_rel_id[rel_md.rel_id] = rel_md

        fks_by_source: Dict[RelId, List[ForeignKey]] = defaultdict(list)
        fks_by_target: Dict[RelId, List[ForeignKey]] = defaultdict(list)
        for fk in self._foreign_keys:
            fks_by_source[fk.source_rel_id].append(fk)
            fks_by_target[fk.target_rel_id].append(fk)

        self._fks_by_source_rel_id: Dict[RelId, Tuple[ForeignKey, ...]] = {
            k: tuple(v) for k, v in fks_by_source.items()
        }
        self._fks_by_target_rel_id: Dict[RelId, Tuple[ForeignKey, ...]] = {
            k: tuple(v) for k, v in fks_by_target.items()
        }

        logger.debug(
            f"Indexed {len(self._relation_metadatas)} relations and "
            f"{len(self._foreign_keys)} foreign keys"
        )

    # ------------------------------------------------------------------
    # Properties

    @property
    def requested_schema(self) -> Optional[str]:
        return self._requested_schema

    @property
    def case_sensitivity(self) -> CaseSensitivity:
        return self._case_sensitivity

    @property
    def dbms_name(self) -> Optional[str]:
        return self._dbms_name

    @property
    def dbms_version(self) -> Optional[str]:
        return self._dbms_version

    @property
    def dbms_major_version(self) -> Optional[int]:
        return self._dbms_major_version

    @property
    def dbms_minor_version(self) -> Optional[int]:
        return self._dbms_minor_version

    @property
    def relation_metadatas(self) -> Tuple[RelMetadata, ...]:
        return self._relation_metadatas

    @property
    def foreign_keys(self) -> Tuple[ForeignKey, ...]:
        return self._foreign_keys

    def get_relation_ids(self) -> List[RelId]:
        return [rmd.rel_id for rmd in self._relation_metadatas]

    # ------------------------------------------------------------------
    # Relation lookups

    def get_relation_metadata(self, rel_id: RelId) -> Optional[RelMetadata]:
        return self._rel_mds_by_rel_id.get(rel_id)

    def get_field_names(self, rel_id: RelId, alias: Optional[str] = None) -> List[str]:
        """
        Get the field names of a relation, optionally qualified by an alias.

        Raises:
            RelationNotFoundError: If the relation is not in the metadata.
        """
        return self._require_relation_metadata(rel_id).get_field_names(alias)

    def get_primary_key_field_names(self, rel_id: RelId, alias: Optional[str] = None) -> List[str]:
        """
        Get the primary key field names of a relation in key part order.

        Raises:
            RelationNotFoundError: If the relation is not in the metadata.
        """
        return self._require_relation_metadata(rel_id).get_primary_key_field_names(alias)

    def _require_relation_metadata(self, rel_id: RelId) -> RelMetadata:
        rel_md = self.get_relation_metadata(rel_id)
        if rel_md is None:
            raise RelationNotFoundError(rel_id)
        return rel_md

    # ------------------------------------------------------------------
    # Foreign key lookups

    def get_foreign_keys_from_to(
        self,
        child_rel_id: Optional[RelId] = None,
        parent_rel_id: Optional[RelId] = None,
        scope: ForeignKeyScope = ForeignKeyScope.REGISTERED_TABLES_ONLY,
    ) -> List[ForeignKey]:
        """
        Get foreign keys by their source (child) and/or target (parent) relation.

        With neither relation given all foreign keys are returned; with both,
        only keys from the child to the parent, of which there may be several.

        Args:
            child_rel_id: Source relation of the foreign keys (optional)
            parent_rel_id: Target relation of the foreign keys (optional)
            scope: REGISTERED_TABLES_ONLY drops keys with either endpoint
                missing from this metadata

        Returns:
            Matching foreign keys in sorted order
        """
        if child_rel_id is None and parent_rel_id is None:
            fks = list(self._foreign_keys)
        elif child_rel_id is not None and parent_rel_id is not None:
            fks = [
                fk for fk in self._fks_by_source_rel_id.get(child_rel_id, ())
                if fk.target_rel_id == parent_rel_id
            ]
        elif child_rel_id is not None:
            fks = list(self._fks_by_source_rel_id.get(child_rel_id, ()))
        else:
            fks = list(self._fks_by_target_rel_id.get(parent_rel_id, ()))

        if scope == ForeignKeyScope.REGISTERED_TABLES_ONLY:
            fks = [
                fk for fk in fks
                if fk.source_rel_id in self._rel_mds_by_rel_id
                and fk.target_rel_id in self._rel_mds_by_rel_id
            ]

        return fks

    def get_foreign_keys_to_parents_from(
        self,
        rel_id: RelId,
        scope: ForeignKeyScope = ForeignKeyScope.REGISTERED_TABLES_ONLY,
    ) -> List[ForeignKey]:
        return self.get_foreign_keys_from_to(rel_id, None, scope)

    def get_foreign_keys_from_children_to(
        self,
        rel_id: RelId,
        scope: ForeignKeyScope = ForeignKeyScope.REGISTERED_TABLES_ONLY,
    ) -> List[ForeignKey]:
        return self.get_foreign_keys_from_to(None, rel_id, scope)

    def get_foreign_key_from_to(
        self,
        from_rel_id: RelId,
        to_rel_id: RelId,
        field_names: Optional[Iterable[str]] = None,
        scope: ForeignKeyScope = ForeignKeyScope.REGISTERED_TABLES_ONLY,
    ) -> Optional[ForeignKey]:
        """
        Get the single foreign key from one relation to another.

        When field names are given, only a key whose source field names are
        exactly that set (after normalization) qualifies.

        Returns:
            The foreign key, or None if no key satisfies the requirements

        Raises:
            AmbiguousForeignKeyError: If more than one key satisfies them.
        """
        normd_field_names = normalize_names(field_names, self._case_sensitivity)
        if normd_field_names is not None:
            normd_field_names = frozenset(normd_field_names)

        sought_fk: Optional[ForeignKey] = None
        # All candidates are checked so that ambiguity is always detected.
        for fk in self.get_foreign_keys_from_to(from_rel_id, to_rel_id, scope):
            if normd_field_names is None or fk.source_field_names_set_equals(normd_field_names):
                if sought_fk is not None:
                    raise AmbiguousForeignKeyError(from_rel_id, to_rel_id, normd_field_names)
                sought_fk = fk

        return sought_fk

    def get_foreign_key_field_names(self, rel_id: RelId, alias: Optional[str] = None) -> List[str]:
        """Return the distinct field names of a relation taking part in foreign keys to parents."""
        names: List[str] = []
        for fk in self.get_foreign_keys_to_parents_from(rel_id):
            for comp in fk.components:
                name = f"{alias}.{comp.fk_field_name}" if alias else comp.fk_field_name
                if name not in names:
                    names.append(name)
        return names

    def get_foreign_key_having_field_set_among(
        self,
        field_names: Iterable[str],
        fks: Iterable[ForeignKey],
    ) -> Optional[ForeignKey]:
        """Return the first of the given foreign keys whose source fields are exactly field_names."""
        normd_field_names = frozenset(normalize_names(field_names, self._case_sensitivity))
        for fk in fks:
            if fk.source_field_names_set_equals(normd_field_names):
                return fk
        return None

    def get_multiply_referencing_child_tables_for_parent(self, parent_rel_id: RelId) -> Set[RelId]:
        """Return child relations having more than one foreign key to the parent."""
        return _repeated(fk.source_rel_id for fk in self.get_foreign_keys_from_children_to(parent_rel_id))

    def get_multiply_referenced_parent_tables_for_child(self, child_rel_id: RelId) -> Set[RelId]:
        """Return parent relations referenced by more than one foreign key of the child."""
        return _repeated(fk.target_rel_id for fk in self.get_foreign_keys_to_parents_from(child_rel_id))

    # ------------------------------------------------------------------
    # Identifier normalization

    def normalize_id(self, id: Optional[str]) -> Optional[str]:
        return normalize_identifier(id, self._case_sensitivity)

    def normalize_names(self, names: Optional[Iterable[str]]) -> Optional[Set[str]]:
        return normalize_names(names, self._case_sensitivity)

    def to_rel_id(self, catalog: Optional[str], schema: Optional[str], name: str) -> RelId:
        """Make a relation id from user supplied names, normalizing each part."""
        return RelId(
            self.normalize_id(catalog),
            self.normalize_id(schema),
            self.normalize_id(name),
        )

    def rel_id(self, schema: Optional[str], name: str) -> RelId:
        return self.to_rel_id(None, schema, name)

    def parse_rel_id(self, possibly_schema_qualified_name: str) -> RelId:
        """
        Make a relation id from "schema.name" or "name".

        An unqualified name takes the schema that was requested when the
        metadata was fetched, if any.
        """
        schema, dot, name = possibly_schema_qualified_name.partition(".")
        if not dot:
            schema, name = self._requested_schema, possibly_schema_qualified_name
        return self.to_rel_id(None, schema, name)

    # ------------------------------------------------------------------
    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "requested_schema": self._requested_schema,
            "case_sensitivity": self._case_sensitivity.value,
            "dbms_name": self._dbms_name,
            "dbms_version": self._dbms_version,
            "dbms_major_version": self._dbms_major_version,
            "dbms_minor_version": self._dbms_minor_version,
            "relation_metadatas": [rmd.to_dict() for rmd in self._relation_metadatas],
            "foreign_keys": [fk.to_dict() for fk in self._foreign_keys],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DatabaseMetadata:
        """Create from dictionary."""
        return cls(
            requested_schema=data.get("requested_schema"),
            relation_metadatas=[RelMetadata.from_dict(r) for r in data.get("relation_metadatas", [])],
            foreign_keys=[ForeignKey.from_dict(fk) for fk in data.get("foreign_keys", [])],
            case_sensitivity=CaseSensitivity(data["case_sensitivity"]),
            dbms_name=data.get("dbms_name"),
            dbms_version=data.get("dbms_version"),
            dbms_major_version=data.get("dbms_major_version"),
            dbms_minor_version=data.get("dbms_minor_version"),
        )

    def save(self, path: Path, fmt: Optional[str] = None) -> None:
        """Save to a JSON or XML file (format taken from the suffix if not given)."""
        from dbmd.serialization import save_metadata
        save_metadata(self, path, fmt)

    @classmethod
    def load(cls, path: Path, fmt: Optional[str] = None) -> DatabaseMetadata:
        """Load from a JSON or XML file written by save()."""
        from dbmd.serialization import load_metadata
        return load_metadata(path, fmt)

    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DatabaseMetadata):
            return NotImplemented
        return (
            self._requested_schema == other._requested_schema
            and self._case_sensitivity == other._case_sensitivity
            and self._relation_metadatas == other._relation_metadatas
            and self._foreign_keys == other._foreign_keys
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"DatabaseMetadata(requested_schema={self._requested_schema!r}, "
            f"relations={len(self._relation_metadatas)}, "
            f"foreign_keys={len(self._foreign_keys)}, "
            f"case_sensitivity={self._case_sensitivity.value})"
        )


def _repeated(rel_ids: Iterable[RelId]) -> Set[RelId]:
    seen: Set[RelId] = set()
    repeated: Set[RelId] = set()
    for rel_id in rel_ids:
        if rel_id in seen:
            repeated.add(rel_id)
        seen.add(rel_id)
    return repeated
