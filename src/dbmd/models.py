"""
Core data models for the dbmd package.

Defines the value types making up a database metadata snapshot: relation
identifiers, fields, relation metadata and foreign keys, together with the
enumerations shared across fetching, querying and serialization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class CaseSensitivity(str, Enum):
    """How a database stores unquoted identifiers."""
    INSENSITIVE_STORED_LOWER = "INSENSITIVE_STORED_LOWER"
    INSENSITIVE_STORED_UPPER = "INSENSITIVE_STORED_UPPER"
    INSENSITIVE_STORED_MIXED = "INSENSITIVE_STORED_MIXED"
    SENSITIVE = "SENSITIVE"


class RelType(str, Enum):
    """Kind of relation."""
    TABLE = "Table"
    VIEW = "View"
    UNKNOWN = "Unknown"


class ForeignKeyScope(str, Enum):
    """Which foreign keys a lookup considers."""
    REGISTERED_TABLES_ONLY = "REGISTERED_TABLES_ONLY"  # Both endpoints present in the metadata
    ALL_FKS = "ALL_FKS"


class EquationStyle(str, Enum):
    """Which side of a foreign key is written first in a join equation."""
    SOURCE_ON_LEFTHAND_SIDE = "SOURCE_ON_LEFTHAND_SIDE"
    TARGET_ON_LEFTHAND_SIDE = "TARGET_ON_LEFTHAND_SIDE"


class DateMapping(str, Enum):
    """How columns with a native DATE type are reported."""
    DATES_AS_DRIVER_REPORTED = "DATES_AS_DRIVER_REPORTED"
    DATES_AS_TIMESTAMPS = "DATES_AS_TIMESTAMPS"
    DATES_AS_DATES = "DATES_AS_DATES"


class SqlType(IntEnum):
    """Portable SQL type codes (same numbering as java.sql.Types)."""
    BIT = -7
    TINYINT = -6
    SMALLINT = 5
    INTEGER = 4
    BIGINT = -5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    NUMERIC = 2
    DECIMAL = 3
    CHAR = 1
    VARCHAR = 12
    LONGVARCHAR = -1
    NCHAR = -15
    NVARCHAR = -9
    LONGNVARCHAR = -16
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    TIME_WITH_TIMEZONE = 2013
    TIMESTAMP_WITH_TIMEZONE = 2014
    BINARY = -2
    VARBINARY = -3
    LONGVARBINARY = -4
    ROWID = -8
    NULL = 0
    OTHER = 1111
    JAVA_OBJECT = 2000
    DISTINCT = 2001
    STRUCT = 2002
    ARRAY = 2003
    BLOB = 2004
    CLOB = 2005
    REF = 2006
    DATALINK = 70
    BOOLEAN = 16
    NCLOB = 2011
    SQLXML = 2009


NUMERIC_TYPES: FrozenSet[int] = frozenset({
    SqlType.TINYINT,
    SqlType.SMALLINT,
    SqlType.INTEGER,
    SqlType.BIGINT,
    SqlType.FLOAT,
    SqlType.REAL,
    SqlType.DOUBLE,
    SqlType.DECIMAL,
    SqlType.NUMERIC,
})

CHARACTER_TYPES: FrozenSet[int] = frozenset({
    SqlType.CHAR,
    SqlType.VARCHAR,
    SqlType.LONGVARCHAR,
    SqlType.NCHAR,
    SqlType.NVARCHAR,
    SqlType.LONGNVARCHAR,
})


def is_numeric_type(type_code: Optional[int]) -> bool:
    return type_code in NUMERIC_TYPES


def is_char_type(type_code: Optional[int]) -> bool:
    return type_code in CHARACTER_TYPES


def type_code_name(type_code: int) -> str:
    """Return the textual name of a type code, e.g. 12 -> 'VARCHAR'."""
    try:
        return SqlType(type_code).name
    except ValueError:
        return f"unknown[{type_code}]"


@dataclass(frozen=True)
class RelId:
    """
    Identifies a relation (table or view) by optional catalog, optional schema
    and name.

    The values are stored as reported by the database or as already
    normalized by the caller; no case folding happens here.
    """
    catalog: Optional[str]
    schema: Optional[str]
    name: str

    @property
    def id_string(self) -> str:
        """Return the canonical [catalog]schema.name form."""
        cat = f"[{self.catalog}]" if self.catalog is not None else ""
        sch = f"{self.schema}." if self.schema is not None else ""
        return f"{cat}{sch}{self.name}"

    def __str__(self) -> str:
        return self.id_string

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "catalog": self.catalog,
            "schema": self.schema,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RelId:
        """Create from dictionary."""
        return cls(
            catalog=data.get("catalog"),
            schema=data.get("schema"),
            name=data["name"],
        )


@dataclass(frozen=True)
class Field:
    """Metadata for a single column of a relation."""
    name: str
    type_code: int
    database_type: str
    length: Optional[int] = None             # Character types only
    precision: Optional[int] = None          # Numeric types only
    fractional_digits: Optional[int] = None  # Numeric types only
    radix: Optional[int] = None              # Numeric types only
    nullable: Optional[bool] = None          # None when the database doesn't know
    primary_key_part_num: Optional[int] = None
    comment: Optional[str] = None

    @property
    def is_numeric_type(self) -> bool:
        return is_numeric_type(self.type_code)

    @property
    def is_character_type(self) -> bool:
        return is_char_type(self.type_code)

    @property
    def type_name(self) -> str:
        return type_code_name(self.type_code)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "type_code": self.type_code,
            "database_type": self.database_type,
            "length": self.length,
            "precision": self.precision,
            "fractional_digits": self.fractional_digits,
            "radix": self.radix,
            "nullable": self.nullable,
            "primary_key_part_num": self.primary_key_part_num,
            "comment": self.comment,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Field:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            type_code=int(data["type_code"]),
            database_type=data["database_type"],
            length=data.get("length"),
            precision=data.get("precision"),
            fractional_digits=data.get("fractional_digits"),
            radix=data.get("radix"),
            nullable=data.get("nullable"),
            primary_key_part_num=data.get("primary_key_part_num"),
            comment=data.get("comment"),
        )


@dataclass(frozen=True)
class RelDescr:
    """Relation description as listed by the catalog, before fields are fetched."""
    rel_id: RelId
    rel_type: RelType
    comment: Optional[str] = None


@dataclass(frozen=True)
class RelMetadata:
    """Metadata for a relation and its fields."""
    rel_id: RelId
    rel_type: RelType
    comment: Optional[str] = None
    fields: Tuple[Field, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.fields, tuple):
            object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def primary_key_fields(self) -> List[Field]:
        """Return primary key fields ordered by their part number."""
        pk_fields = [f for f in self.fields if f.primary_key_part_num is not None]
        return sorted(pk_fields, key=lambda f: f.primary_key_part_num)

    def get_primary_key_field_names(self, alias: Optional[str] = None) -> List[str]:
        return [_qualify(f.name, alias) for f in self.primary_key_fields]

    def get_field_names(self, alias: Optional[str] = None) -> List[str]:
        return [_qualify(f.name, alias) for f in self.fields]

    def get_field(self, name: str) -> Optional[Field]:
        """Get field by exact name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "rel_id": self.rel_id.to_dict(),
            "rel_type": self.rel_type.value,
            "comment": self.comment,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RelMetadata:
        """Create from dictionary."""
        return cls(
            rel_id=RelId.from_dict(data["rel_id"]),
            rel_type=RelType(data.get("rel_type", RelType.UNKNOWN.value)),
            comment=data.get("comment"),
            fields=tuple(Field.from_dict(f) for f in data.get("fields", [])),
        )


@dataclass(frozen=True)
class ForeignKeyComponent:
    """One column pair of a (possibly composite) foreign key."""
    fk_field_name: str
    pk_field_name: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "fk_field_name": self.fk_field_name,
            "pk_field_name": self.pk_field_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ForeignKeyComponent:
        """Create from dictionary."""
        return cls(
            fk_field_name=data["fk_field_name"],
            pk_field_name=data["pk_field_name"],
        )


@dataclass(frozen=True)
class ForeignKey:
    """
    A foreign key from a source (child) relation to a target (parent) relation.

    Components are kept in the order reported by the database, so the N-th
    source field corresponds to the N-th target field.
    """
    source_rel_id: RelId
    target_rel_id: RelId
    components: Tuple[ForeignKeyComponent, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.components, tuple):
            object.__setattr__(self, "components", tuple(self.components))

    @property
    def source_field_names(self) -> List[str]:
        return [c.fk_field_name for c in self.components]

    @property
    def target_field_names(self) -> List[str]:
        return [c.pk_field_name for c in self.components]

    def source_field_names_set_equals(self, normalized_names: FrozenSet[str]) -> bool:
        """Check whether the source field names are exactly the given (normalized) names."""
        if len(self.components) != len(normalized_names):
            return False
        return set(self.source_field_names) == set(normalized_names)

    def as_equation(
        self,
        source_alias: Optional[str],
        target_alias: Optional[str],
        style: EquationStyle = EquationStyle.SOURCE_ON_LEFTHAND_SIDE,
    ) -> str:
        """
        Render the foreign key as a join condition.

        Example:
            >>> fk.as_equation("o", "c")
            'o.customer_id = c.id'
        """
        source_first = style == EquationStyle.SOURCE_ON_LEFTHAND_SIDE

        clauses = []
        for comp in self.components:
            src = _qualify(comp.fk_field_name, source_alias)
            tgt = _qualify(comp.pk_field_name, target_alias)
            clauses.append(f"{src} = {tgt}" if source_first else f"{tgt} = {src}")

        return " and ".join(clauses)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source_rel_id": self.source_rel_id.to_dict(),
            "target_rel_id": self.target_rel_id.to_dict(),
            "components": [c.to_dict() for c in self.components],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ForeignKey:
        """Create from dictionary."""
        return cls(
            source_rel_id=RelId.from_dict(data["source_rel_id"]),
            target_rel_id=RelId.from_dict(data["target_rel_id"]),
            components=tuple(ForeignKeyComponent.from_dict(c) for c in data.get("components", [])),
        )


def _qualify(name: str, alias: Optional[str]) -> str:
    return f"{alias}.{name}" if alias else name
