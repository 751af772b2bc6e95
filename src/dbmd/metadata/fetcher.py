"""
Database metadata fetcher.

Walks a MetadataSource and assembles its relation, column, primary key and
foreign key rows into a DatabaseMetadata snapshot.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern, Set, Union

from dbmd.database import DatabaseMetadata
from dbmd.errors import MetadataContractError
from dbmd.identifiers import normalize_identifier
from dbmd.metadata.source import (
    COLUMN_NO_NULLS,
    COLUMN_NULLABLE,
    ColumnRow,
    ForeignKeyRow,
    MetadataSource,
)
from dbmd.models import (
    CaseSensitivity,
    DateMapping,
    Field,
    ForeignKey,
    ForeignKeyComponent,
    RelDescr,
    RelId,
    RelMetadata,
    RelType,
    SqlType,
    is_char_type,
    is_numeric_type,
)

logger = logging.getLogger(__name__)


# Native type names of proprietary XML column types.
XML_TYPE_NAMES = {"XMLTYPE", "SYS.XMLTYPE", "XML"}

ExcludePattern = Optional[Union[str, Pattern[str]]]


class _RelationFieldsAccumulator:
    """
    Groups a stream of fields into RelMetadata objects, one per relation.

    The stream must deliver all fields of a relation contiguously. Starting a
    relation whose group was already closed is a contract violation.
    """

    def __init__(self):
        self._current: Optional[RelDescr] = None
        self._fields: List[Field] = []
        self._closed_rel_ids: Set[RelId] = set()
        self._completed: List[RelMetadata] = []

    @property
    def current_rel_id(self) -> Optional[RelId]:
        return self._current.rel_id if self._current is not None else None

    def start(self, rel_descr: RelDescr) -> None:
        self._close_current()

        if rel_descr.rel_id in self._closed_rel_ids:
            raise MetadataContractError(
                f"Columns of relation {rel_descr.rel_id} are not contiguous in the column listing."
            )

        self._current = rel_descr
        self._fields = []

    def add(self, field: Field) -> None:
        self._fields.append(field)

    def finish(self) -> List[RelMetadata]:
        self._close_current()
        return self._completed

    def _close_current(self) -> None:
        if self._current is None:
            return
        self._completed.append(RelMetadata(
            rel_id=self._current.rel_id,
            rel_type=self._current.rel_type,
            comment=self._current.comment,
            fields=tuple(self._fields),
        ))
        self._closed_rel_ids.add(self._current.rel_id)
        self._current = None
        self._fields = []


class _ForeignKeyAccumulator:
    """
    Groups foreign key component rows into ForeignKey objects.

    A row with component number 1 starts a new key; any other row extends the
    key in progress.
    """

    def __init__(self):
        self._source_rel_id: Optional[RelId] = None
        self._target_rel_id: Optional[RelId] = None
        self._components: Optional[List[ForeignKeyComponent]] = None
        self._completed: List[ForeignKey] = []

    def accept(self, row: ForeignKeyRow) -> None:
        component = ForeignKeyComponent(row.fk_column, row.pk_column)

        if row.sequence_number == 1:
            self._close_current()
            self._source_rel_id = RelId(row.fk_catalog, row.fk_schema, row.fk_relation)
            self._target_rel_id = RelId(row.pk_catalog, row.pk_schema, row.pk_relation)
            self._components = [component]
        else:
            if self._components is None:
                raise MetadataContractError(
                    f"Foreign key component {row.sequence_number} of {row.fk_relation} "
                    f"reported before its first component."
                )
            self._components.append(component)

    def finish(self) -> List[ForeignKey]:
        self._close_current()
        return self._completed

    def _close_current(self) -> None:
        if self._components is None:
            return
        self._completed.append(ForeignKey(
            source_rel_id=self._source_rel_id,
            target_rel_id=self._target_rel_id,
            components=tuple(self._components),
        ))
        self._source_rel_id = None
        self._target_rel_id = None
        self._components = None


class DatabaseMetadataFetcher:
    """
    Fetches database metadata from an introspection source.

    A fetch is a one-shot operation over the source's connection: errors
    raised by the source propagate as-is and no partial metadata is returned.
    """

    def __init__(self, date_mapping: DateMapping = DateMapping.DATES_AS_DRIVER_REPORTED):
        """
        Initialize fetcher.

        Args:
            date_mapping: How to report columns whose native type is DATE
        """
        self.date_mapping = date_mapping

    def fetch_metadata(
        self,
        source: MetadataSource,
        schema: Optional[str] = None,
        include_tables: bool = True,
        include_views: bool = True,
        include_fields: bool = True,
        include_foreign_keys: bool = True,
        exclude_pattern: ExcludePattern = None,
    ) -> DatabaseMetadata:
        """
        Fetch a complete metadata snapshot.

        Args:
            source: Introspection source for the database
            schema: Schema to fetch (all visible schemas if None); normalized
                according to the database's case sensitivity
            include_tables: Include tables
            include_views: Include views
            include_fields: Fetch fields of relations
            include_foreign_keys: Fetch foreign keys
            exclude_pattern: Regular expression for relation id strings to leave out

        Returns:
            DatabaseMetadata snapshot
        """
        exclude = _compile(exclude_pattern)

        case_sens = self.get_case_sensitivity(source)
        schema = normalize_identifier(schema, case_sens)

        logger.info(f"Fetching metadata for schema {schema or '<any>'} ({case_sens.value})")

        rel_descrs = self.fetch_relation_descriptions(
            source, schema, include_tables, include_views, exclude
        )

        if include_fields:
            rel_mds = self.fetch_relation_metadatas(rel_descrs, schema, source)
        else:
            rel_mds = [RelMetadata(d.rel_id, d.rel_type, d.comment) for d in rel_descrs]

        fks = self.fetch_foreign_keys(source, schema, exclude) if include_foreign_keys else []

        dbms = source.dbms_info()

        return DatabaseMetadata(
            requested_schema=schema,
            relation_metadatas=rel_mds,
            foreign_keys=fks,
            case_sensitivity=case_sens,
            dbms_name=dbms.name,
            dbms_version=dbms.version,
            dbms_major_version=dbms.major_version,
            dbms_minor_version=dbms.minor_version,
        )

    def get_case_sensitivity(self, source: MetadataSource) -> CaseSensitivity:
        if source.stores_lower_case_identifiers():
            return CaseSensitivity.INSENSITIVE_STORED_LOWER
        elif source.stores_upper_case_identifiers():
            return CaseSensitivity.INSENSITIVE_STORED_UPPER
        elif source.stores_mixed_case_identifiers():
            return CaseSensitivity.INSENSITIVE_STORED_MIXED
        else:
            return CaseSensitivity.SENSITIVE

    def fetch_relation_descriptions(
        self,
        source: MetadataSource,
        schema: Optional[str],
        include_tables: bool = True,
        include_views: bool = True,
        exclude_pattern: ExcludePattern = None,
    ) -> List[RelDescr]:
        """
        Fetch descriptions of the relations in a schema.

        Relations reported with a kind other than "table" are classified as
        views, which includes kinds such as synonyms or materialized views.
        """
        exclude = _compile(exclude_pattern)

        relation_types = []
        if include_tables:
            relation_types.append("TABLE")
        if include_views:
            relation_types.append("VIEW")

        rel_descrs = []
        for row in source.list_relations(schema, relation_types):
            rel_id = RelId(row.catalog, row.schema, row.name)

            if exclude is not None and exclude.fullmatch(rel_id.id_string):
                logger.debug(f"Excluding relation {rel_id}")
                continue

            rel_type = RelType.TABLE if row.kind.lower() == "table" else RelType.VIEW
            rel_descrs.append(RelDescr(rel_id, rel_type, row.comment))

        logger.info(f"Fetched {len(rel_descrs)} relation descriptions")
        return rel_descrs

    def fetch_relation_metadatas(
        self,
        rel_descrs: Iterable[RelDescr],
        schema: Optional[str],
        source: MetadataSource,
    ) -> List[RelMetadata]:
        """
        Fetch fields for the described relations.

        Column rows of relations not among rel_descrs are skipped. The source
        must list the columns of each relation contiguously.

        Raises:
            MetadataContractError: If a relation's columns are not contiguous.
        """
        rel_descrs_by_rel_id: Dict[RelId, RelDescr] = {d.rel_id: d for d in rel_descrs}

        accumulator = _RelationFieldsAccumulator()
        pk_seq_nums_by_name: Dict[str, int] = {}
        skipped = 0

        for row in source.list_columns(schema):
            rel_id = RelId(row.catalog, row.schema, row.relation_name)

            rel_descr = rel_descrs_by_rel_id.get(rel_id)
            if rel_descr is None:
                skipped += 1
                continue

            if rel_id != accumulator.current_rel_id:
                accumulator.start(rel_descr)
                pk_seq_nums_by_name = {
                    pk.column_name: pk.sequence_number
                    for pk in source.list_primary_keys(row.catalog, row.schema, row.relation_name)
                }

            accumulator.add(self._make_field(row, pk_seq_nums_by_name))

        rel_mds = accumulator.finish()

        if skipped:
            logger.debug(f"Skipped {skipped} columns of relations not requested")
        logger.info(f"Fetched fields for {len(rel_mds)} relations")

        return rel_mds

    def fetch_foreign_keys(
        self,
        source: MetadataSource,
        schema: Optional[str],
        exclude_pattern: ExcludePattern = None,
    ) -> List[ForeignKey]:
        """
        Fetch foreign keys of relations in a schema.

        Keys with either endpoint matching exclude_pattern are left out.

        Raises:
            MetadataContractError: If a key's components are reported out of order.
        """
        exclude = _compile(exclude_pattern)

        accumulator = _ForeignKeyAccumulator()
        for row in source.list_imported_foreign_keys(schema):
            accumulator.accept(row)

        fks = []
        for fk in accumulator.finish():
            if exclude is not None and (
                exclude.fullmatch(fk.source_rel_id.id_string)
                or exclude.fullmatch(fk.target_rel_id.id_string)
            ):
                logger.debug(f"Excluding foreign key {fk.source_rel_id} -> {fk.target_rel_id}")
                continue
            fks.append(fk)

        logger.info(f"Fetched {len(fks)} foreign keys")
        return fks

    def resolve_type_code(self, type_code: int, type_name: Optional[str]) -> int:
        """
        Apply the date mapping and XML type detection to a reported type code.

        Some drivers report DATE columns which also store a time of day as SQL
        DATE, others report them as TIMESTAMP; the date mapping settles which.
        """
        native = type_name.upper() if type_name is not None else None

        if native in XML_TYPE_NAMES and type_code != SqlType.SQLXML:
            return int(SqlType.SQLXML)

        if type_code in (SqlType.DATE, SqlType.TIMESTAMP) and native == "DATE":
            if self.date_mapping == DateMapping.DATES_AS_TIMESTAMPS:
                return int(SqlType.TIMESTAMP)
            elif self.date_mapping == DateMapping.DATES_AS_DATES:
                return int(SqlType.DATE)

        return type_code

    def _make_field(self, row: ColumnRow, pk_seq_nums_by_name: Dict[str, int]) -> Field:
        type_code = self.resolve_type_code(row.type_code, row.type_name)

        numeric = is_numeric_type(type_code)

        if row.nullable_code == COLUMN_NO_NULLS:
            nullable = False
        elif row.nullable_code == COLUMN_NULLABLE:
            nullable = True
        else:
            nullable = None

        return Field(
            name=row.column_name,
            type_code=type_code,
            database_type=row.type_name,
            length=row.column_size if is_char_type(type_code) else None,
            precision=row.column_size if numeric else None,
            fractional_digits=row.decimal_digits if numeric else None,
            radix=row.radix if numeric else None,
            nullable=nullable,
            primary_key_part_num=pk_seq_nums_by_name.get(row.column_name),
            comment=row.remarks,
        )


def _compile(pattern: ExcludePattern) -> Optional[Pattern[str]]:
    if pattern is None or isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)
