"""
Oracle metadata source using oracledb.

Lists relations, columns, primary keys and foreign keys from the Oracle data
dictionary views, reporting column types with the codes the Oracle JDBC
driver uses.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

from dbmd.metadata.source import (
    COLUMN_NO_NULLS,
    COLUMN_NULLABLE,
    COLUMN_NULLABLE_UNKNOWN,
    ColumnRow,
    DbmsInfo,
    ForeignKeyRow,
    MetadataSource,
    PrimaryKeyRow,
    RelationRow,
)
from dbmd.models import SqlType, is_char_type, is_numeric_type

logger = logging.getLogger(__name__)


# Oracle type mapping
ORACLE_TYPE_MAP = {
    "NUMBER": SqlType.DECIMAL,
    "INTEGER": SqlType.DECIMAL,
    "FLOAT": SqlType.FLOAT,
    "BINARY_FLOAT": SqlType.REAL,
    "BINARY_DOUBLE": SqlType.DOUBLE,
    "VARCHAR2": SqlType.VARCHAR,
    "VARCHAR": SqlType.VARCHAR,
    "NVARCHAR2": SqlType.NVARCHAR,
    "CHAR": SqlType.CHAR,
    "NCHAR": SqlType.NCHAR,
    "LONG": SqlType.LONGVARCHAR,
    "CLOB": SqlType.CLOB,
    "NCLOB": SqlType.NCLOB,
    "DATE": SqlType.DATE,
    "RAW": SqlType.VARBINARY,
    "LONG RAW": SqlType.LONGVARBINARY,
    "BLOB": SqlType.BLOB,
    "BFILE": SqlType.BLOB,
    "ROWID": SqlType.ROWID,
    "UROWID": SqlType.ROWID,
    "XMLTYPE": SqlType.OTHER,
}


def oracle_type_code(data_type: str) -> int:
    """Map an Oracle data dictionary type name to a SqlType code."""
    data_type = data_type.upper()

    if data_type.startswith("TIMESTAMP"):
        if data_type.endswith("WITH TIME ZONE") and "LOCAL" not in data_type:
            return int(SqlType.TIMESTAMP_WITH_TIMEZONE)
        return int(SqlType.TIMESTAMP)
    if data_type.startswith("INTERVAL"):
        return int(SqlType.OTHER)

    return int(ORACLE_TYPE_MAP.get(data_type, SqlType.OTHER))


class OracleMetadataSource(MetadataSource):
    """
    Metadata source over the Oracle data dictionary.

    Uses Oracle data dictionary views:
    - ALL_TABLES / ALL_VIEWS / ALL_TAB_COMMENTS
    - ALL_TAB_COLUMNS / ALL_COL_COMMENTS
    - ALL_CONSTRAINTS / ALL_CONS_COLUMNS
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        connection: Optional[Any] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        dsn: Optional[str] = None,
    ):
        """
        Initialize source with credentials, a connection string or an open connection.

        Args:
            connection_string: Oracle connection string (user/pwd@host:port/service)
            connection: Existing oracledb connection; not closed by disconnect()
            user: Database user, used with password and dsn instead of a connection string
            password: Password for user, passed to oracledb unparsed
            dsn: Oracle DSN or Easy Connect string (host:port/service)
        """
        if connection_string is None and connection is None and (user is None or dsn is None):
            raise ValueError("Either a connection string, a user and dsn, or a connection is required.")

        self.connection_string = connection_string
        self.user = user
        self.password = password
        self.dsn = dsn
        self._conn = connection
        self._owns_conn = False

    def connect(self) -> None:
        """Establish database connection."""
        if self._conn is not None:
            return

        import oracledb

        if self.connection_string is not None:
            user, password, dsn = self._parse_connection_string(oracledb, self.connection_string)
        else:
            user, password, dsn = self.user, self.password or "", self.dsn

        self._conn = oracledb.connect(user=user, password=password, dsn=dsn)
        self._owns_conn = True
        logger.info(f"Connected to Oracle database as {user}")

    @staticmethod
    def _parse_connection_string(oracledb, connection_string: str) -> Tuple[str, str, str]:
        # Parse connection string: user/pwd@host:port/service
        # Only the last '@' ends the credentials; a password may contain '@'.
        if "@" in connection_string:
            user_pwd, host_service = connection_string.rsplit("@", 1)
        else:
            user_pwd, host_service = connection_string, ""

        user, password = user_pwd.split("/", 1) if "/" in user_pwd else (user_pwd, "")

        # Build DSN
        if ":" in host_service:
            host_port, service = host_service.rsplit("/", 1) if "/" in host_service else (host_service, "")
            host, port = host_port.split(":") if ":" in host_port else (host_port, "1521")
            dsn = oracledb.makedsn(host, int(port), service_name=service)
        else:
            dsn = host_service

        return user, password, dsn

    def disconnect(self) -> None:
        """Close database connection if this source opened it."""
        if self._conn is not None and self._owns_conn:
            self._conn.close()
            self._conn = None
            self._owns_conn = False

    def _query(self, sql: str, **params) -> List[Tuple]:
        if self._conn is None:
            self.connect()

        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, **params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def list_relations(
        self,
        schema: Optional[str],
        relation_types: Sequence[str],
    ) -> List[RelationRow]:
        """List tables and/or views, ordered by owner and name."""
        selects = []
        if "TABLE" in relation_types:
            selects.append("""
                SELECT t.owner, t.table_name, 'TABLE', c.comments
                FROM all_tables t
                LEFT JOIN all_tab_comments c
                    ON t.owner = c.owner AND t.table_name = c.table_name
                WHERE (:owner IS NULL OR t.owner = :owner)
            """)
        if "VIEW" in relation_types:
            selects.append("""
                SELECT v.owner, v.view_name, 'VIEW', c.comments
                FROM all_views v
                LEFT JOIN all_tab_comments c
                    ON v.owner = c.owner AND v.view_name = c.table_name
                WHERE (:owner IS NULL OR v.owner = :owner)
            """)

        if not selects:
            return []

        sql = " UNION ALL ".join(selects) + " ORDER BY 1, 2"

        return [
            RelationRow(catalog=None, schema=owner, name=name, kind=kind, comment=comment)
            for owner, name, kind, comment in self._query(sql, owner=schema)
        ]

    def list_columns(self, schema: Optional[str]) -> List[ColumnRow]:
        """List columns of all tables and views, grouped by relation."""
        rows = self._query("""
            SELECT
                col.owner,
                col.table_name,
                col.column_name,
                col.data_type,
                col.data_length,
                col.char_length,
                col.data_precision,
                col.data_scale,
                col.nullable,
                cc.comments
            FROM all_tab_columns col
            LEFT JOIN all_col_comments cc
                ON col.owner = cc.owner
                AND col.table_name = cc.table_name
                AND col.column_name = cc.column_name
            WHERE (:owner IS NULL OR col.owner = :owner)
            ORDER BY col.owner, col.table_name, col.column_id
        """, owner=schema)

        columns = []
        for row in rows:
            owner, table_name, col_name, data_type, data_length, char_length, precision, scale, nullable, comment = row

            type_code = oracle_type_code(data_type)

            if is_char_type(type_code):
                size = char_length if char_length else data_length
                radix = None
            elif is_numeric_type(type_code):
                size = precision
                radix = 10
            else:
                size = data_length
                radix = None

            if nullable == "Y":
                nullable_code = COLUMN_NULLABLE
            elif nullable == "N":
                nullable_code = COLUMN_NO_NULLS
            else:
                nullable_code = COLUMN_NULLABLE_UNKNOWN

            columns.append(ColumnRow(
                catalog=None,
                schema=owner,
                relation_name=table_name,
                column_name=col_name,
                type_code=type_code,
                type_name=data_type,
                column_size=size,
                decimal_digits=scale,
                radix=radix,
                nullable_code=nullable_code,
                remarks=comment,
            ))

        return columns

    def list_primary_keys(
        self,
        catalog: Optional[str],
        schema: Optional[str],
        relation_name: str,
    ) -> List[PrimaryKeyRow]:
        """Get primary key columns for a table."""
        rows = self._query("""
            SELECT cc.column_name, cc.position
            FROM all_constraints c
            JOIN all_cons_columns cc
                ON c.owner = cc.owner
                AND c.constraint_name = cc.constraint_name
            WHERE c.owner = :owner
                AND c.table_name = :table_name
                AND c.constraint_type = 'P'
            ORDER BY cc.position
        """, owner=schema, table_name=relation_name)

        return [PrimaryKeyRow(column_name=name, sequence_number=int(pos)) for name, pos in rows]

    def list_imported_foreign_keys(self, schema: Optional[str]) -> List[ForeignKeyRow]:
        """List foreign key components, one row per column pair, grouped by constraint."""
        rows = self._query("""
            SELECT
                c.owner,
                c.table_name,
                cc.column_name,
                rc.owner,
                rc.table_name,
                rcc.column_name,
                cc.position
            FROM all_constraints c
            JOIN all_cons_columns cc
                ON c.owner = cc.owner
                AND c.constraint_name = cc.constraint_name
            JOIN all_constraints rc
                ON c.r_owner = rc.owner
                AND c.r_constraint_name = rc.constraint_name
            JOIN all_cons_columns rcc
                ON rc.owner = rcc.owner
                AND rc.constraint_name = rcc.constraint_name
                AND cc.position = rcc.position
            WHERE c.constraint_type = 'R'
                AND (:owner IS NULL OR c.owner = :owner)
            ORDER BY c.owner, c.table_name, c.constraint_name, cc.position
        """, owner=schema)

        return [
            ForeignKeyRow(
                fk_catalog=None,
                fk_schema=fk_owner,
                fk_relation=fk_table,
                fk_column=fk_col,
                pk_catalog=None,
                pk_schema=pk_owner,
                pk_relation=pk_table,
                pk_column=pk_col,
                sequence_number=int(pos),
            )
            for fk_owner, fk_table, fk_col, pk_owner, pk_table, pk_col, pos in rows
        ]

    def stores_lower_case_identifiers(self) -> bool:
        return False

    def stores_upper_case_identifiers(self) -> bool:
        return True

    def stores_mixed_case_identifiers(self) -> bool:
        return False

    def dbms_info(self) -> DbmsInfo:
        if self._conn is None:
            self.connect()

        version = getattr(self._conn, "version", None)
        if not isinstance(version, str):
            version = None
        major, minor = _parse_version(version)
        return DbmsInfo(name="Oracle", version=version, major_version=major, minor_version=minor)


def _parse_version(version: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    if not version:
        return None, None
    parts = version.split(".")
    try:
        major = int(parts[0])
        minor = int(parts[1]) if len(parts) > 1 else None
    except ValueError:
        return None, None
    return major, minor
