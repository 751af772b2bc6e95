"""
Introspection source contract.

A MetadataSource enumerates relations, columns, primary keys and imported
foreign keys from a database catalog as flat rows. The fetcher assembles
these rows into a DatabaseMetadata snapshot; sources never build model
objects themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

# Nullability codes reported for columns.
COLUMN_NO_NULLS = 0
COLUMN_NULLABLE = 1
COLUMN_NULLABLE_UNKNOWN = 2


@dataclass(frozen=True)
class RelationRow:
    catalog: Optional[str]
    schema: Optional[str]
    name: str
    kind: str  # e.g. "TABLE", "VIEW"
    comment: Optional[str] = None


@dataclass(frozen=True)
class ColumnRow:
    catalog: Optional[str]
    schema: Optional[str]
    relation_name: str
    column_name: str
    type_code: int
    type_name: str
    column_size: Optional[int] = None
    decimal_digits: Optional[int] = None
    radix: Optional[int] = None
    nullable_code: int = COLUMN_NULLABLE_UNKNOWN
    remarks: Optional[str] = None


@dataclass(frozen=True)
class PrimaryKeyRow:
    column_name: str
    sequence_number: int  # 1-based


@dataclass(frozen=True)
class ForeignKeyRow:
    fk_catalog: Optional[str]
    fk_schema: Optional[str]
    fk_relation: str
    fk_column: str
    pk_catalog: Optional[str]
    pk_schema: Optional[str]
    pk_relation: str
    pk_column: str
    sequence_number: int  # 1-based component number within the key


@dataclass(frozen=True)
class DbmsInfo:
    name: Optional[str] = None
    version: Optional[str] = None
    major_version: Optional[int] = None
    minor_version: Optional[int] = None


class MetadataSource(ABC):
    """
    Catalog access for one database connection.

    Row ordering requirements:
    - list_columns: all rows of one relation are contiguous
    - list_imported_foreign_keys: all components of one key are contiguous,
      starting with the component numbered 1
    """

    def connect(self) -> None:
        """Open the underlying connection if the source manages one."""

    def disconnect(self) -> None:
        """Close the underlying connection if the source manages one."""

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    @abstractmethod
    def list_relations(
        self,
        schema: Optional[str],
        relation_types: Sequence[str],
    ) -> Iterable[RelationRow]:
        """List relations of the given kinds ("TABLE", "VIEW") in a schema (all schemas if None)."""

    @abstractmethod
    def list_columns(self, schema: Optional[str]) -> Iterable[ColumnRow]:
        """List the columns of all relations in a schema, grouped by relation."""

    @abstractmethod
    def list_primary_keys(
        self,
        catalog: Optional[str],
        schema: Optional[str],
        relation_name: str,
    ) -> Iterable[PrimaryKeyRow]:
        """List the primary key columns of one relation."""

    @abstractmethod
    def list_imported_foreign_keys(self, schema: Optional[str]) -> Iterable[ForeignKeyRow]:
        """List foreign key components of relations in a schema, one row per component."""

    @abstractmethod
    def stores_lower_case_identifiers(self) -> bool:
        ...

    @abstractmethod
    def stores_upper_case_identifiers(self) -> bool:
        ...

    @abstractmethod
    def stores_mixed_case_identifiers(self) -> bool:
        ...

    def dbms_info(self) -> DbmsInfo:
        return DbmsInfo()
