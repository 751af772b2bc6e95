"""Tests for the DatabaseMetadata query API."""

import pytest

from conftest import make_fk
from dbmd.database import DatabaseMetadata
from dbmd.errors import AmbiguousForeignKeyError, DbmdError, DuplicateRelationError, RelationNotFoundError
from dbmd.models import (
    CaseSensitivity,
    ForeignKeyScope,
    RelId,
    RelMetadata,
    RelType,
)


@pytest.fixture
def bill_to_fk(orders_id, customers_id):
    return make_fk(orders_id, customers_id, ("BILL_TO_CUSTOMER_ID", "ID"))


@pytest.fixture
def two_fk_metadata(customers, orders, orders_to_customers, bill_to_fk):
    """Orders referencing customers twice, plus a key to a relation outside the snapshot."""
    outside_fk = make_fk(orders.rel_id, RelId(None, "REF", "CURRENCIES"), ("CURRENCY", "CODE"))
    return DatabaseMetadata(
        requested_schema="SALES",
        relation_metadatas=[customers, orders],
        foreign_keys=[bill_to_fk, outside_fk, orders_to_customers],
        case_sensitivity=CaseSensitivity.INSENSITIVE_STORED_UPPER,
    )


class TestConstruction:
    """Tests for sorting and indexing."""

    def test_relations_sorted_by_id_string(self, sales_metadata):
        assert [str(r) for r in sales_metadata.get_relation_ids()] == [
            "SALES.CUSTOMERS",
            "SALES.ORDERS",
        ]

    def test_foreign_keys_sorted(self, two_fk_metadata):
        fks = two_fk_metadata.foreign_keys
        # REF.CURRENCIES sorts before SALES.CUSTOMERS as a target.
        assert [fk.source_field_names for fk in fks] == [
            ["CURRENCY"],
            ["BILL_TO_CUSTOMER_ID"],
            ["CUSTOMER_ID"],
        ]

    def test_sorting_is_idempotent(self, two_fk_metadata):
        rebuilt = DatabaseMetadata(
            two_fk_metadata.requested_schema,
            reversed(two_fk_metadata.relation_metadatas),
            reversed(two_fk_metadata.foreign_keys),
            two_fk_metadata.case_sensitivity,
        )
        assert rebuilt == two_fk_metadata
        assert rebuilt.foreign_keys == two_fk_metadata.foreign_keys

    def test_duplicate_relation_rejected(self, customers):
        with pytest.raises(DuplicateRelationError, match="Duplicate") as exc_info:
            DatabaseMetadata(None, [customers, customers], [], CaseSensitivity.SENSITIVE)
        assert isinstance(exc_info.value, DbmdError)
        assert exc_info.value.rel_id == customers.rel_id

    def test_properties(self, sales_metadata):
        assert sales_metadata.requested_schema == "SALES"
        assert sales_metadata.dbms_name == "Oracle"
        assert sales_metadata.dbms_major_version == 19
        assert sales_metadata.dbms_minor_version == 3
        assert "relations=2" in repr(sales_metadata)


class TestRelationLookups:
    """Tests for field and primary key lookups."""

    def test_field_names(self, sales_metadata, orders_id):
        assert sales_metadata.get_field_names(orders_id) == ["ID", "CUSTOMER_ID", "BILL_TO_CUSTOMER_ID"]
        assert sales_metadata.get_field_names(orders_id, "o")[0] == "o.ID"

    def test_primary_key_field_names(self, sales_metadata, customers_id):
        assert sales_metadata.get_primary_key_field_names(customers_id) == ["ID"]
        assert sales_metadata.get_primary_key_field_names(customers_id, "c") == ["c.ID"]

    def test_unknown_relation(self, sales_metadata):
        missing = RelId(None, "SALES", "MISSING")
        assert sales_metadata.get_relation_metadata(missing) is None
        with pytest.raises(RelationNotFoundError, match="SALES.MISSING"):
            sales_metadata.get_field_names(missing)
        with pytest.raises(RelationNotFoundError):
            sales_metadata.get_primary_key_field_names(missing)


class TestForeignKeyLookups:
    """Tests for foreign key queries."""

    def test_single_key_found(self, sales_metadata, orders_id, customers_id, orders_to_customers):
        fk = sales_metadata.get_foreign_key_from_to(orders_id, customers_id)
        assert fk == orders_to_customers
        assert fk.as_equation("o", "c") == "o.CUSTOMER_ID = c.ID"

    def test_no_key(self, sales_metadata, orders_id, customers_id):
        assert sales_metadata.get_foreign_key_from_to(customers_id, orders_id) is None

    def test_ambiguous_without_field_names(self, two_fk_metadata, orders_id, customers_id):
        with pytest.raises(AmbiguousForeignKeyError) as exc_info:
            two_fk_metadata.get_foreign_key_from_to(orders_id, customers_id)
        assert exc_info.value.field_names is None
        assert "no foreign key field names were specified" in str(exc_info.value)

    def test_disambiguated_by_field_names(self, two_fk_metadata, orders_id, customers_id, bill_to_fk):
        fk = two_fk_metadata.get_foreign_key_from_to(orders_id, customers_id, ["bill_to_customer_id"])
        assert fk == bill_to_fk

    def test_field_names_matching_nothing(self, two_fk_metadata, orders_id, customers_id):
        assert two_fk_metadata.get_foreign_key_from_to(orders_id, customers_id, ["ID"]) is None

    def test_ambiguous_with_same_field_set(self, orders, customers, orders_id, customers_id):
        md = DatabaseMetadata(
            None,
            [orders, customers],
            [
                make_fk(orders_id, customers_id, ("CUSTOMER_ID", "ID")),
                make_fk(orders_id, customers_id, ("CUSTOMER_ID", "ALT_ID")),
            ],
            CaseSensitivity.INSENSITIVE_STORED_UPPER,
        )
        with pytest.raises(AmbiguousForeignKeyError) as exc_info:
            md.get_foreign_key_from_to(orders_id, customers_id, ["customer_id"])
        assert exc_info.value.field_names == frozenset({"CUSTOMER_ID"})
        assert "same specified source field set" in str(exc_info.value)

    def test_scope_filtering(self, two_fk_metadata, orders_id):
        registered = two_fk_metadata.get_foreign_keys_to_parents_from(orders_id)
        everything = two_fk_metadata.get_foreign_keys_to_parents_from(orders_id, ForeignKeyScope.ALL_FKS)
        assert len(registered) == 2
        assert len(everything) == 3
        assert {fk.target_rel_id.name for fk in everything} == {"CUSTOMERS", "CURRENCIES"}

    def test_from_to_combinations(self, two_fk_metadata, orders_id, customers_id):
        assert len(two_fk_metadata.get_foreign_keys_from_to()) == 2
        assert len(two_fk_metadata.get_foreign_keys_from_to(scope=ForeignKeyScope.ALL_FKS)) == 3
        assert len(two_fk_metadata.get_foreign_keys_from_to(orders_id, customers_id)) == 2
        assert len(two_fk_metadata.get_foreign_keys_from_children_to(customers_id)) == 2
        assert two_fk_metadata.get_foreign_keys_from_children_to(orders_id) == []

    def test_foreign_key_field_names(self, two_fk_metadata, orders_id):
        assert two_fk_metadata.get_foreign_key_field_names(orders_id) == [
            "BILL_TO_CUSTOMER_ID",
            "CUSTOMER_ID",
        ]
        assert two_fk_metadata.get_foreign_key_field_names(orders_id, "o") == [
            "o.BILL_TO_CUSTOMER_ID",
            "o.CUSTOMER_ID",
        ]

    def test_key_having_field_set_among(self, two_fk_metadata, orders_id, bill_to_fk):
        fks = two_fk_metadata.get_foreign_keys_to_parents_from(orders_id)
        assert two_fk_metadata.get_foreign_key_having_field_set_among(["Bill_To_Customer_Id"], fks) == bill_to_fk
        assert two_fk_metadata.get_foreign_key_having_field_set_among(["NOPE"], fks) is None

    def test_multiply_referencing_and_referenced(self, two_fk_metadata, orders_id, customers_id):
        assert two_fk_metadata.get_multiply_referencing_child_tables_for_parent(customers_id) == {orders_id}
        assert two_fk_metadata.get_multiply_referenced_parent_tables_for_child(orders_id) == {customers_id}

    def test_singly_referenced(self, sales_metadata, orders_id, customers_id):
        assert sales_metadata.get_multiply_referencing_child_tables_for_parent(customers_id) == set()
        assert sales_metadata.get_multiply_referenced_parent_tables_for_child(orders_id) == set()


class TestRelIdHelpers:
    """Tests for relation id construction from user input."""

    def test_parse_unqualified_uses_requested_schema(self, sales_metadata, orders_id):
        assert sales_metadata.parse_rel_id("orders") == orders_id

    def test_parse_qualified(self, sales_metadata, customers_id):
        assert sales_metadata.parse_rel_id("sales.customers") == customers_id

    def test_parse_without_requested_schema(self):
        md = DatabaseMetadata(None, [], [], CaseSensitivity.INSENSITIVE_STORED_LOWER)
        assert md.parse_rel_id("Orders") == RelId(None, None, "orders")

    def test_to_rel_id_normalizes(self, sales_metadata):
        assert sales_metadata.to_rel_id(None, "Sales", '"Mixed"') == RelId(None, "SALES", '"Mixed"')
        assert sales_metadata.rel_id("<none>", "t") == RelId(None, "", "T")

    def test_normalize_names(self, sales_metadata):
        assert sales_metadata.normalize_id("abc") == "ABC"
        assert sales_metadata.normalize_names(["a", "b"]) == {"A", "B"}
        assert sales_metadata.normalize_names(None) is None


class TestDictConversion:
    """Tests for to_dict/from_dict."""

    def test_round_trip(self, two_fk_metadata):
        restored = DatabaseMetadata.from_dict(two_fk_metadata.to_dict())
        assert restored == two_fk_metadata

    def test_empty_relation(self):
        md = DatabaseMetadata(
            "", [RelMetadata(RelId(None, "", "T"), RelType.VIEW)], [], CaseSensitivity.SENSITIVE
        )
        restored = DatabaseMetadata.from_dict(md.to_dict())
        assert restored == md
        assert restored.requested_schema == ""
        assert restored.relation_metadatas[0].fields == ()
