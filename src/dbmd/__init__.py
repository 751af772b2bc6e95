"""
dbmd - Database Metadata Snapshots

Captures the structural metadata of a relational database schema (tables,
views, columns, primary keys and foreign keys) into an immutable snapshot
that can be queried, and saved to or loaded from JSON and XML documents.

Features:
- Metadata fetching from Oracle (oracledb) or any SQLAlchemy-supported database
- Identifier normalization following the database's case sensitivity
- Foreign key lookups between child and parent relations, with join equations
- Deterministic (sorted) JSON and XML output
"""

__version__ = "0.1.0"

from dbmd.models import (
    CaseSensitivity,
    DateMapping,
    EquationStyle,
    Field,
    ForeignKey,
    ForeignKeyComponent,
    ForeignKeyScope,
    RelDescr,
    RelId,
    RelMetadata,
    RelType,
    SqlType,
)
from dbmd.errors import (
    AmbiguousForeignKeyError,
    ConfigError,
    DbmdError,
    DuplicateRelationError,
    MetadataContractError,
    RelationNotFoundError,
)
from dbmd.identifiers import normalize_identifier, normalize_names
from dbmd.database import DatabaseMetadata

# Import fetching module
from dbmd.metadata import (
    DatabaseMetadataFetcher,
    MetadataSource,
    OracleMetadataSource,
    SqlAlchemyMetadataSource,
)

__all__ = [
    # Core models
    "CaseSensitivity",
    "DateMapping",
    "EquationStyle",
    "Field",
    "ForeignKey",
    "ForeignKeyComponent",
    "ForeignKeyScope",
    "RelDescr",
    "RelId",
    "RelMetadata",
    "RelType",
    "SqlType",
    "DatabaseMetadata",
    # Errors
    "AmbiguousForeignKeyError",
    "ConfigError",
    "DbmdError",
    "DuplicateRelationError",
    "MetadataContractError",
    "RelationNotFoundError",
    # Identifiers
    "normalize_identifier",
    "normalize_names",
    # Fetching
    "DatabaseMetadataFetcher",
    "MetadataSource",
    "OracleMetadataSource",
    "SqlAlchemyMetadataSource",
]
