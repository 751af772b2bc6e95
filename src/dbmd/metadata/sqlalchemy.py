"""
Metadata source for any database SQLAlchemy can reflect.

Uses the SQLAlchemy Inspector to list tables, views, columns and constraints,
and maps reflected SQLAlchemy types onto SqlType codes.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy import create_engine, inspect
from sqlalchemy import types as sqltypes
from sqlalchemy.engine import Engine
from sqlalchemy.engine.reflection import Inspector

from dbmd.metadata.source import (
    COLUMN_NO_NULLS,
    COLUMN_NULLABLE,
    ColumnRow,
    DbmsInfo,
    ForeignKeyRow,
    MetadataSource,
    PrimaryKeyRow,
    RelationRow,
)
from dbmd.models import SqlType, is_numeric_type

logger = logging.getLogger(__name__)


# Dialects whose unquoted identifiers compare case-insensitively but keep their case.
MIXED_CASE_DIALECTS = {"sqlite", "mysql", "mariadb", "mssql"}

# Checked in order, so subclasses come before their bases.
SQLALCHEMY_TYPE_MAP = [
    (sqltypes.Boolean, SqlType.BOOLEAN),
    (sqltypes.SmallInteger, SqlType.SMALLINT),
    (sqltypes.BigInteger, SqlType.BIGINT),
    (sqltypes.Integer, SqlType.INTEGER),
    (sqltypes.REAL, SqlType.REAL),
    (sqltypes.Double, SqlType.DOUBLE),
    (sqltypes.Float, SqlType.FLOAT),
    (sqltypes.DECIMAL, SqlType.DECIMAL),
    (sqltypes.Numeric, SqlType.NUMERIC),
    (sqltypes.Date, SqlType.DATE),
    (sqltypes.Time, SqlType.TIME),
    (sqltypes.CLOB, SqlType.CLOB),
    (sqltypes.Text, SqlType.LONGVARCHAR),
    (sqltypes.NCHAR, SqlType.NCHAR),
    (sqltypes.NVARCHAR, SqlType.NVARCHAR),
    (sqltypes.CHAR, SqlType.CHAR),
    (sqltypes.String, SqlType.VARCHAR),
    (sqltypes.BLOB, SqlType.BLOB),
    (sqltypes.LargeBinary, SqlType.LONGVARBINARY),
    (sqltypes.BINARY, SqlType.BINARY),
    (sqltypes.VARBINARY, SqlType.VARBINARY),
    (sqltypes.ARRAY, SqlType.ARRAY),
]


def sqlalchemy_type_code(col_type: sqltypes.TypeEngine) -> int:
    """Map a reflected SQLAlchemy column type to a SqlType code."""
    if isinstance(col_type, sqltypes.DateTime):
        if getattr(col_type, "timezone", False):
            return int(SqlType.TIMESTAMP_WITH_TIMEZONE)
        return int(SqlType.TIMESTAMP)

    for sa_type, code in SQLALCHEMY_TYPE_MAP:
        if isinstance(col_type, sa_type):
            return int(code)

    return int(SqlType.OTHER)


def sqlalchemy_type_name(col_type: sqltypes.TypeEngine) -> str:
    """Return the database type name of a reflected type, without length or precision."""
    return getattr(col_type, "__visit_name__", type(col_type).__name__).upper()


class SqlAlchemyMetadataSource(MetadataSource):
    """
    Metadata source backed by a SQLAlchemy engine.

    A schema of None means the connection's default schema; rows are then
    reported without a schema, following SQLAlchemy's own convention.
    """

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        """
        Initialize source with a database URL or an existing engine.

        Args:
            url: SQLAlchemy database URL
            engine: Existing engine; not disposed by disconnect()
        """
        if url is None and engine is None:
            raise ValueError("Either a database URL or an engine is required.")

        self.url = url
        self._engine = engine
        self._owns_engine = False
        self._inspector: Optional[Inspector] = None

    def connect(self) -> None:
        """Create the engine if needed and an inspector over it."""
        if self._engine is None:
            self._engine = create_engine(self.url)
            self._owns_engine = True
            logger.info(f"Created engine for {self._engine.url.render_as_string(hide_password=True)}")

        if self._inspector is None:
            self._inspector = inspect(self._engine)

    def disconnect(self) -> None:
        self._inspector = None
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None
            self._owns_engine = False

    @property
    def inspector(self) -> Inspector:
        if self._inspector is None:
            self.connect()
        return self._inspector

    @property
    def dialect(self):
        return self.inspector.dialect

    def list_relations(
        self,
        schema: Optional[str],
        relation_types: Sequence[str],
    ) -> List[RelationRow]:
        rows = []
        if "TABLE" in relation_types:
            for name in sorted(self.inspector.get_table_names(schema=schema)):
                rows.append(RelationRow(None, schema, name, "TABLE", self._table_comment(name, schema)))
        if "VIEW" in relation_types:
            for name in sorted(self.inspector.get_view_names(schema=schema)):
                rows.append(RelationRow(None, schema, name, "VIEW", self._table_comment(name, schema)))
        return rows

    def _table_comment(self, name: str, schema: Optional[str]) -> Optional[str]:
        if not getattr(self.dialect, "supports_comments", False):
            return None
        return self.inspector.get_table_comment(name, schema=schema).get("text")

    def list_columns(self, schema: Optional[str]) -> List[ColumnRow]:
        relation_names = sorted(
            set(self.inspector.get_table_names(schema=schema))
            | set(self.inspector.get_view_names(schema=schema))
        )

        rows = []
        for rel_name in relation_names:
            for col in self.inspector.get_columns(rel_name, schema=schema):
                col_type = col["type"]
                type_code = sqlalchemy_type_code(col_type)
                numeric = is_numeric_type(type_code)

                if numeric:
                    size = getattr(col_type, "precision", None)
                else:
                    size = getattr(col_type, "length", None)

                rows.append(ColumnRow(
                    catalog=None,
                    schema=schema,
                    relation_name=rel_name,
                    column_name=col["name"],
                    type_code=type_code,
                    type_name=sqlalchemy_type_name(col_type),
                    column_size=size,
                    decimal_digits=getattr(col_type, "scale", None) if numeric else None,
                    radix=10 if numeric else None,
                    nullable_code=COLUMN_NULLABLE if col.get("nullable", True) else COLUMN_NO_NULLS,
                    remarks=col.get("comment"),
                ))

        return rows

    def list_primary_keys(
        self,
        catalog: Optional[str],
        schema: Optional[str],
        relation_name: str,
    ) -> List[PrimaryKeyRow]:
        pk = self.inspector.get_pk_constraint(relation_name, schema=schema) or {}
        return [
            PrimaryKeyRow(column_name=name, sequence_number=i)
            for i, name in enumerate(pk.get("constrained_columns") or [], start=1)
        ]

    def list_imported_foreign_keys(self, schema: Optional[str]) -> List[ForeignKeyRow]:
        """
        List foreign key components of the tables in a schema.

        A key whose referred schema is not reported is taken to refer to a
        table in the same schema.
        """
        rows = []
        for table_name in sorted(self.inspector.get_table_names(schema=schema)):
            for fk in self.inspector.get_foreign_keys(table_name, schema=schema):
                pk_schema = fk.get("referred_schema") or schema
                pairs = zip(fk["constrained_columns"], fk["referred_columns"])
                for seq, (fk_col, pk_col) in enumerate(pairs, start=1):
                    rows.append(ForeignKeyRow(
                        fk_catalog=None,
                        fk_schema=schema,
                        fk_relation=table_name,
                        fk_column=fk_col,
                        pk_catalog=None,
                        pk_schema=pk_schema,
                        pk_relation=fk["referred_table"],
                        pk_column=pk_col,
                        sequence_number=seq,
                    ))
        return rows

    def stores_lower_case_identifiers(self) -> bool:
        # Name-normalizing dialects (e.g. Oracle) present case-insensitive names in lower case.
        return bool(self.dialect.requires_name_normalize) or self.dialect.name == "postgresql"

    def stores_upper_case_identifiers(self) -> bool:
        return False

    def stores_mixed_case_identifiers(self) -> bool:
        return self.dialect.name in MIXED_CASE_DIALECTS

    def dbms_info(self) -> DbmsInfo:
        version_info = getattr(self.dialect, "server_version_info", None)
        if not version_info:
            return DbmsInfo(name=self.dialect.name)

        numbers = [v for v in version_info if isinstance(v, int)]
        return DbmsInfo(
            name=self.dialect.name,
            version=".".join(str(v) for v in version_info),
            major_version=numbers[0] if numbers else None,
            minor_version=numbers[1] if len(numbers) > 1 else None,
        )
