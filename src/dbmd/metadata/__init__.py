"""
Metadata introspection module for Oracle and SQLAlchemy-supported databases.

Provides a common source interface over database catalogs and the fetcher
that assembles catalog rows into a DatabaseMetadata snapshot.
"""

from dbmd.metadata.source import (
    ColumnRow,
    DbmsInfo,
    ForeignKeyRow,
    MetadataSource,
    PrimaryKeyRow,
    RelationRow,
)
from dbmd.metadata.fetcher import DatabaseMetadataFetcher
from dbmd.metadata.oracle import OracleMetadataSource
from dbmd.metadata.sqlalchemy import SqlAlchemyMetadataSource

__all__ = [
    "ColumnRow",
    "DbmsInfo",
    "ForeignKeyRow",
    "MetadataSource",
    "PrimaryKeyRow",
    "RelationRow",
    "DatabaseMetadataFetcher",
    "OracleMetadataSource",
    "SqlAlchemyMetadataSource",
]
