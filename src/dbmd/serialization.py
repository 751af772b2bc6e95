"""
JSON and XML documents for database metadata snapshots.

The JSON form is DatabaseMetadata.to_dict() as is. The XML form uses a
database-metadata root element in the http://nctr.fda.gov/dbmd namespace with
relation-metadatas and foreign-keys sections; optional values that are absent
are left out of the document rather than written as placeholders. Comments
are attributes so that carriage returns in them survive parsing.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from dbmd.database import DatabaseMetadata
from dbmd.models import (
    CaseSensitivity,
    Field,
    ForeignKey,
    ForeignKeyComponent,
    RelId,
    RelMetadata,
    RelType,
)

logger = logging.getLogger(__name__)

DBMD_NAMESPACE = "http://nctr.fda.gov/dbmd"
ROOT_TAG = f"{{{DBMD_NAMESPACE}}}database-metadata"

FORMATS = ("json", "xml")

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

ET.register_namespace("dbmd", DBMD_NAMESPACE)


# ----------------------------------------------------------------------
# JSON

def to_json(metadata: DatabaseMetadata, indent: int = 2) -> str:
    return json.dumps(metadata.to_dict(), indent=indent)


def from_json(text: str) -> DatabaseMetadata:
    return DatabaseMetadata.from_dict(json.loads(text))


# ----------------------------------------------------------------------
# XML

def to_xml(metadata: DatabaseMetadata) -> str:
    """Render metadata as an XML document."""
    root = ET.Element(ROOT_TAG)
    _set_attr(root, "requested-owning-schema-name", metadata.requested_schema)
    _set_attr(root, "case-sensitivity", metadata.case_sensitivity.value)
    _set_attr(root, "dbms-name", metadata.dbms_name)
    _set_attr(root, "dbms-version", metadata.dbms_version)
    _set_attr(root, "dbms-major-version", metadata.dbms_major_version)
    _set_attr(root, "dbms-minor-version", metadata.dbms_minor_version)

    rel_mds_el = ET.SubElement(root, "relation-metadatas")
    for rel_md in metadata.relation_metadatas:
        rel_mds_el.append(_rel_md_element(rel_md))

    fks_el = ET.SubElement(root, "foreign-keys")
    for fk in metadata.foreign_keys:
        fks_el.append(_foreign_key_element(fk))

    ET.indent(root)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


def from_xml(text: str) -> DatabaseMetadata:
    """Parse an XML document written by to_xml()."""
    root = ET.fromstring(text)
    if root.tag != ROOT_TAG:
        raise ValueError(f"Not a database metadata document: root element is {root.tag}")

    rel_mds = [_parse_rel_md(el) for el in root.iterfind("relation-metadatas/rel-md")]
    fks = [_parse_foreign_key(el) for el in root.iterfind("foreign-keys/foreign-key")]

    return DatabaseMetadata(
        requested_schema=root.get("requested-owning-schema-name"),
        relation_metadatas=rel_mds,
        foreign_keys=fks,
        case_sensitivity=CaseSensitivity(root.get("case-sensitivity")),
        dbms_name=root.get("dbms-name"),
        dbms_version=root.get("dbms-version"),
        dbms_major_version=_int_attr(root, "dbms-major-version"),
        dbms_minor_version=_int_attr(root, "dbms-minor-version"),
    )


def _rel_id_element(tag: str, rel_id: RelId) -> ET.Element:
    el = ET.Element(tag)
    _set_attr(el, "catalog", rel_id.catalog)
    _set_attr(el, "schema", rel_id.schema)
    _set_attr(el, "name", rel_id.name)
    return el


def _rel_md_element(rel_md: RelMetadata) -> ET.Element:
    el = ET.Element("rel-md", {"rel-type": rel_md.rel_type.value})
    _set_attr(el, "comment", rel_md.comment)
    el.append(_rel_id_element("rel-id", rel_md.rel_id))

    fields_el = ET.SubElement(el, "fields")
    for f in rel_md.fields:
        field_el = ET.SubElement(fields_el, "field")
        _set_attr(field_el, "name", f.name)
        _set_attr(field_el, "jdbc-type-code", f.type_code)
        _set_attr(field_el, "db-type-name", f.database_type)
        _set_attr(field_el, "length", f.length)
        _set_attr(field_el, "precision", f.precision)
        _set_attr(field_el, "fractional-digits", f.fractional_digits)
        _set_attr(field_el, "radix", f.radix)
        if f.nullable is not None:
            _set_attr(field_el, "nullable", "true" if f.nullable else "false")
        _set_attr(field_el, "pk-part-num", f.primary_key_part_num)
        _set_attr(field_el, "comment", f.comment)

    return el


def _foreign_key_element(fk: ForeignKey) -> ET.Element:
    el = ET.Element("foreign-key")
    el.append(_rel_id_element("src-rel", fk.source_rel_id))
    el.append(_rel_id_element("tgt-rel", fk.target_rel_id))
    for comp in fk.components:
        ET.SubElement(el, "component", {
            "fk-field": comp.fk_field_name,
            "pk-field": comp.pk_field_name,
        })
    return el


def _parse_rel_id(el: ET.Element) -> RelId:
    return RelId(el.get("catalog"), el.get("schema"), el.get("name"))


def _parse_rel_md(el: ET.Element) -> RelMetadata:
    return RelMetadata(
        rel_id=_parse_rel_id(el.find("rel-id")),
        rel_type=RelType(el.get("rel-type", RelType.UNKNOWN.value)),
        comment=el.get("comment"),
        fields=tuple(_parse_field(f) for f in el.iterfind("fields/field")),
    )


def _parse_field(el: ET.Element) -> Field:
    nullable_attr = el.get("nullable")
    return Field(
        name=el.get("name"),
        type_code=int(el.get("jdbc-type-code")),
        database_type=el.get("db-type-name"),
        length=_int_attr(el, "length"),
        precision=_int_attr(el, "precision"),
        fractional_digits=_int_attr(el, "fractional-digits"),
        radix=_int_attr(el, "radix"),
        nullable=None if nullable_attr is None else nullable_attr == "true",
        primary_key_part_num=_int_attr(el, "pk-part-num"),
        comment=el.get("comment"),
    )


def _parse_foreign_key(el: ET.Element) -> ForeignKey:
    return ForeignKey(
        source_rel_id=_parse_rel_id(el.find("src-rel")),
        target_rel_id=_parse_rel_id(el.find("tgt-rel")),
        components=tuple(
            ForeignKeyComponent(c.get("fk-field"), c.get("pk-field"))
            for c in el.iterfind("component")
        ),
    )


def _set_attr(el: ET.Element, name: str, value) -> None:
    if value is not None:
        el.set(name, str(value))


def _int_attr(el: ET.Element, name: str) -> Optional[int]:
    value = el.get(name)
    return int(value) if value is not None else None


# ----------------------------------------------------------------------
# Files

_WRITERS = {"json": to_json, "xml": to_xml}
_READERS = {"json": from_json, "xml": from_xml}


def format_for_path(path: Path, fmt: Optional[str] = None) -> str:
    """Return the document format to use for a path: explicit, else from the file suffix."""
    fmt = (fmt or Path(path).suffix.lstrip(".")).lower()
    if fmt not in FORMATS:
        raise ValueError(f"Unsupported metadata format: {fmt!r}. Use one of {', '.join(FORMATS)}")
    return fmt


def save_metadata(metadata: DatabaseMetadata, path: Path, fmt: Optional[str] = None) -> None:
    """Write metadata to a JSON or XML file."""
    path = Path(path)
    fmt = format_for_path(path, fmt)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(_WRITERS[fmt](metadata))

    logger.info(f"Saved metadata for {len(metadata.relation_metadatas)} relations to {path}")


def load_metadata(path: Path, fmt: Optional[str] = None) -> DatabaseMetadata:
    """Read metadata from a JSON or XML file."""
    path = Path(path)
    fmt = format_for_path(path, fmt)

    with open(path, "r", encoding="utf-8") as f:
        return _READERS[fmt](f.read())
